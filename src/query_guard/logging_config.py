"""Logging setup for query_guard.

Every module logs through ``logging.getLogger(__name__)``, so all records
land under the ``query_guard`` logger configured here.
"""

import json
import logging
import sys

logger = logging.getLogger("query_guard")


class JsonFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info and record.exc_info[1]:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry)


def setup_logging(level: str = "INFO", fmt: str = "text") -> None:
    """Configure the package logger with a stdout handler.

    Safe to call more than once; handlers are only installed the first time.

    Args:
        level: Log level name (e.g. "INFO", "DEBUG").
        fmt: "text" for human-readable lines, "json" for structured lines.
    """
    logger.setLevel(level.upper())

    if logger.handlers:
        return

    handler = logging.StreamHandler(sys.stdout)
    if fmt == "json":
        handler.setFormatter(JsonFormatter(datefmt="%Y-%m-%dT%H:%M:%S"))
    else:
        handler.setFormatter(
            logging.Formatter(
                "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                datefmt="%Y-%m-%dT%H:%M:%S",
            )
        )
    logger.addHandler(handler)
