"""
Courier Logging Configuration

Console and rotating-file logging for the ``courier`` logger tree. Records
logged through ``log_structured`` carry a ``structured_data`` mapping that the
StructuredFormatter renders as sorted ``key=value`` pairs after the message.
"""

import json
import logging
import logging.config
import sys
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from .config import LoggingConfig, get_config

LINE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DETAILED_FORMAT = "%(asctime)s [%(levelname)s] %(name)s:%(lineno)d: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Third-party loggers capped at WARNING
QUIET_LOGGERS = ("aiohttp", "asyncio")


def format_structured_data(data: Mapping[str, Any]) -> str:
    """Render structured fields as ``key=value`` pairs in key order."""
    return " ".join(
        f"{key}={json.dumps(value, default=str, ensure_ascii=False)}"
        for key, value in sorted(data.items())
    )


class StructuredFormatter(logging.Formatter):
    """
    Formatter that appends a record's structured data to the message line.

    The record itself is left untouched, so every handler sharing it formats
    the original message.
    """

    def formatMessage(self, record: logging.LogRecord) -> str:
        line = super().formatMessage(record)
        data = getattr(record, "structured_data", None)
        if not data:
            return line
        return f"{line} | {format_structured_data(data)}"


def build_logging_config(
    level: str,
    log_file: Optional[Path] = None,
    enable_structured: bool = True,
    settings: Optional[LoggingConfig] = None,
) -> Dict[str, Any]:
    """
    Build the dictConfig mapping for the given level and destinations.

    Args:
        level: Level for the ``courier`` loggers and handlers
        log_file: Rotating log file, or None for console only
        enable_structured: Render ``structured_data`` on both handlers
        settings: Rotation settings (defaults to LoggingConfig())
    """
    settings = settings or LoggingConfig()
    formatter_class = StructuredFormatter if enable_structured else logging.Formatter

    handlers = ["console"]
    logging_config: Dict[str, Any] = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "line": {
                "()": formatter_class,
                "format": LINE_FORMAT,
                "datefmt": DATE_FORMAT,
            },
            "detailed": {
                "()": formatter_class,
                "format": DETAILED_FORMAT,
                "datefmt": DATE_FORMAT,
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": level,
                "formatter": "line",
                "stream": sys.stderr,
            }
        },
        "loggers": {
            "courier": {"level": level, "handlers": handlers, "propagate": False},
        },
        "root": {"level": "WARNING", "handlers": handlers},
    }

    if log_file is not None:
        logging_config["handlers"]["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "level": level,
            "formatter": "detailed",
            "filename": str(log_file),
            "maxBytes": settings.max_file_size,
            "backupCount": settings.backup_count,
            "encoding": "utf-8",
        }
        handlers.append("file")

    for name in QUIET_LOGGERS:
        logging_config["loggers"][name] = {
            "level": "WARNING",
            "handlers": list(handlers),
            "propagate": False,
        }

    return logging_config


def setup_logging(
    log_level: Optional[str] = None,
    log_file: Optional[Path] = None,
    enable_structured: bool = True,
) -> None:
    """
    Configure logging for Courier.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Path to log file (falls back to ``logging.file_path``)
        enable_structured: Whether to render structured data
    """
    settings = get_config().logging
    level = (log_level or settings.level).upper()

    if log_file is None and settings.file_path:
        log_file = Path(settings.file_path)
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)

    logging.config.dictConfig(
        build_logging_config(level, log_file, enable_structured, settings)
    )


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def log_structured(
    logger: logging.Logger, level: int, message: str, **structured_data: Any
) -> None:
    """
    Log a message with structured fields attached to the record.

    Args:
        logger: Logger instance
        level: Logging level
        message: Log message
        **structured_data: Fields exposed as ``record.structured_data``
    """
    logger.log(level, message, extra={"structured_data": structured_data})
