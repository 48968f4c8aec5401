"""
Line-by-line TCP broadcaster.

Manufactures sample input for the socket-source lessons: listens on a
port, accepts a single client (normally Spark's socket source) and writes
the lines of a text file to it, one at a time, with a fixed pause between
lines.

There is no reconnect, backpressure or framing beyond the
trailing newline. A client that goes away ends the broadcast.
"""

import logging
import socket
import threading
from pathlib import Path
from typing import Iterator, List, Optional, Union

logger = logging.getLogger(__name__)

# accept() wakes up this often to notice stop()
ACCEPT_POLL_SECONDS = 0.5


class LineBroadcaster:
    """Serve the lines of a file to one TCP client."""

    def __init__(
        self,
        path: Union[str, Path],
        host: str = "localhost",
        port: int = 9999,
        delay_seconds: float = 1.0,
        loop: bool = True,
    ):
        """
        Initialize the broadcaster.

        Args:
            path: Text file whose lines are broadcast
            host: Interface to bind
            port: Port to listen on; 0 picks a free port (see ``self.port``)
            delay_seconds: Pause between consecutive lines
            loop: Start again at the first line after the last one
        """
        if delay_seconds < 0:
            raise ValueError("delay_seconds must not be negative")
        if not 0 <= port <= 65535:
            raise ValueError(f"port must be between 0 and 65535, got {port}")

        self.path = Path(path)
        self.host = host
        self.port = port
        self.delay_seconds = delay_seconds
        self.loop = loop

        self.ready = threading.Event()
        self.lines_sent = 0
        self.error: Optional[BaseException] = None
        self._stop = threading.Event()
        self._server: Optional[socket.socket] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"

    def _read_lines(self) -> List[str]:
        if not self.path.is_file():
            raise FileNotFoundError(f"Broadcast source not found: {self.path}")
        with open(self.path, encoding="utf-8") as f:
            return f.read().splitlines()

    def _iter_lines(self, lines: List[str]) -> Iterator[str]:
        while not self._stop.is_set():
            for line in lines:
                if self._stop.is_set():
                    return
                yield line
            if not self.loop:
                return

    def _accept(self, server: socket.socket) -> Optional[socket.socket]:
        """Wait for the single client; returns None if stopped first."""
        server.settimeout(ACCEPT_POLL_SECONDS)
        while not self._stop.is_set():
            try:
                conn, addr = server.accept()
            except socket.timeout:
                continue
            except OSError:
                # Listening socket closed by stop()
                if self._stop.is_set():
                    return None
                raise
            conn.settimeout(None)
            logger.info(f"Client connected from {addr[0]}:{addr[1]}")
            return conn
        return None

    def serve(self) -> int:
        """
        Listen, accept one connection and write the file to it.

        Returns:
            Number of lines sent

        Raises:
            FileNotFoundError: If the source file does not exist
            ValueError: If looping over an empty file
            OSError: If the client disconnects or the port cannot be bound
        """
        lines = self._read_lines()
        if self.loop and not lines:
            raise ValueError(f"Cannot loop over empty file: {self.path}")

        server = socket.create_server((self.host, self.port), backlog=1)
        self._server = server
        self.port = server.getsockname()[1]
        self.ready.set()
        logger.info(
            f"Broadcaster listening on {self.address}",
            extra={"source": str(self.path), "line_count": len(lines), "loop": self.loop},
        )

        try:
            conn = self._accept(server)
            if conn is None:
                return self.lines_sent
            with conn:
                for index, line in enumerate(self._iter_lines(lines)):
                    if index and self.delay_seconds:
                        if self._stop.wait(self.delay_seconds):
                            break
                    try:
                        conn.sendall((line + "\n").encode("utf-8"))
                    except OSError as e:
                        logger.error(
                            "Client connection lost",
                            extra={"error_type": type(e).__name__, "lines_sent": self.lines_sent},
                        )
                        raise
                    self.lines_sent += 1
            logger.info(f"Broadcast finished after {self.lines_sent} lines")
            return self.lines_sent
        finally:
            self._close_server()

    def start(self) -> threading.Thread:
        """Run ``serve()`` on a daemon thread and return the thread."""
        if self._thread is not None and self._thread.is_alive():
            raise RuntimeError("Broadcaster is already running")
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._serve_in_thread,
            name=f"broadcaster-{self.port}",
            daemon=True,
        )
        self._thread.start()
        return self._thread

    def _serve_in_thread(self) -> None:
        try:
            self.serve()
        except Exception as e:
            self.error = e
            logger.error(f"Broadcaster stopped: {type(e).__name__}: {e}", exc_info=True)
        finally:
            # Unblock anyone waiting even if bind failed
            self.ready.set()

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the port is listening; returns False on timeout.

        Also returns once a background ``serve()`` has failed, so check
        ``error`` afterwards.
        """
        return self.ready.wait(timeout)

    def stop(self, join_timeout: Optional[float] = 5.0) -> None:
        """Stop at the next line boundary and close the listening socket."""
        self._stop.set()
        self._close_server()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(join_timeout)

    def _close_server(self) -> None:
        # stop() and serve() may both get here; only one of them closes
        server, self._server = self._server, None
        if server is not None:
            try:
                server.close()
            except OSError as e:
                logger.warning(f"Error closing listening socket: {e}")
