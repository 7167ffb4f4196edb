"""
Logging setup for the launcher.

The library modules only ever call ``logging.getLogger(__name__)``; this
module is where handlers and formats get decided, once, at startup.

    TEXT (default):
        2026-01-15 12:30:45 [INFO] replserver.core.listener: Listening on 127.0.0.1:7000

    JSON (one object per line, for log aggregators):
        {"time": "2026-01-15 12:30:45", "level": "INFO", "logger": "...", "message": "..."}
"""

import json
import logging


TEXT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class JSONFormatter(logging.Formatter):
    """Render each record as a single JSON object."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "time": self.formatTime(record, DATE_FORMAT),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry)


def configure_logging(level: str = "INFO", fmt: str = "text") -> None:
    """
    Configure the root logger and the ``replserver`` logger.

    Args:
        level: Level name (DEBUG, INFO, WARNING, ...). Unknown names fall
               back to INFO.
        fmt: "text" or "json".
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    handler = logging.StreamHandler()
    if fmt == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT, datefmt=DATE_FORMAT))

    logging.basicConfig(level=numeric_level, handlers=[handler])
    logging.getLogger("replserver").setLevel(numeric_level)
