"""Signal-driven shutdown flag shared by the broadcaster CLI and lesson jobs."""

import logging
import signal
import threading
from typing import Optional


class GracefulShutdown:
    """
    Track SIGINT/SIGTERM requests.

    Handlers only record the request; the owner decides when to stop
    (between lines for the broadcaster, after ``awaitTermination`` for a
    streaming query).
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)
        self._event = threading.Event()
        self.signal_received: Optional[int] = None

    @property
    def shutdown_requested(self) -> bool:
        return self._event.is_set()

    def request_shutdown(self, signum: Optional[int] = None) -> None:
        """Record a shutdown request. Safe to call more than once."""
        if self._event.is_set():
            return
        self.signal_received = signum
        if signum is not None:
            self.logger.info(f"Shutdown requested by signal {signal.Signals(signum).name}")
        else:
            self.logger.info("Shutdown requested")
        self._event.set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until shutdown is requested; returns False on timeout."""
        return self._event.wait(timeout)

    def install(self) -> None:
        """Route SIGINT and SIGTERM to ``request_shutdown``.

        Must be called from the main thread.
        """
        for sig in (signal.SIGINT, signal.SIGTERM):
            signal.signal(sig, self._signal_handler)

    def _signal_handler(self, signum, frame):
        self.request_shutdown(signum)
