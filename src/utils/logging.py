"""
Structured JSON logging.

Each record is rendered as one JSON object per line so that Spark's own
log4j output and the tutorial's messages can be told apart on stdout.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Optional

# Attributes present on every LogRecord; anything else came from ``extra=``.
_RESERVED_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}


class StructuredFormatter(logging.Formatter):
    """Render log records as single-line JSON objects."""

    def __init__(self, job_name: Optional[str] = None):
        super().__init__()
        self.job_name = job_name

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if self.job_name:
            payload["job"] = self.job_name

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and not key.startswith("_"):
                payload[key] = value

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str)


def setup_logging(level: str = "INFO", json_output: bool = True, job_name: Optional[str] = None) -> None:
    """Configure the root logger with a single stdout handler."""
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(numeric_level)
    if json_output:
        handler.setFormatter(StructuredFormatter(job_name))
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))

    root = logging.getLogger()
    root.setLevel(numeric_level)
    root.handlers.clear()
    root.addHandler(handler)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
