"""Run the broadcaster from the command line.

    python -m src.broadcaster [path]

Host, port, delay and looping come from BROADCASTER_* environment
variables; an optional positional path overrides BROADCASTER_SOURCE.
"""

import logging
import sys

from src.broadcaster.broadcaster import LineBroadcaster
from src.utils.config import BroadcasterConfig, get_env_str
from src.utils.logging import setup_logging
from src.utils.shutdown import GracefulShutdown


def main(argv=None) -> int:
    """Main entry point for the broadcaster."""
    argv = sys.argv[1:] if argv is None else argv
    setup_logging(level=get_env_str("LOG_LEVEL", "INFO"), json_output=True, job_name="Broadcaster")
    logger = logging.getLogger(__name__)

    try:
        config = BroadcasterConfig.from_env()
        if argv:
            config.source_path = argv[0]
        broadcaster = LineBroadcaster(
            path=config.source_path,
            host=config.host,
            port=config.port,
            delay_seconds=config.delay_seconds,
            loop=config.loop,
        )
    except ValueError as e:
        logger.error(f"Invalid broadcaster configuration: {e}")
        return 2

    shutdown = GracefulShutdown(logger=logger)
    shutdown.install()

    logger.info(f"Starting broadcaster for {config.source_path}")
    thread = broadcaster.start()
    while thread.is_alive() and not shutdown.wait(timeout=0.5):
        pass
    broadcaster.stop()

    if broadcaster.error is not None:
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
