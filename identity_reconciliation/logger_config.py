"""
Logging configuration for the Identity Reconciliation service.

Builds a dictConfig for the service and the uvicorn server it runs under, so
request handling, reconciliation decisions and server access logs share one
format and one set of handlers.

Environment Variables:
    LOG_LEVEL: DEBUG, INFO, WARNING, ERROR or CRITICAL. Defaults to INFO.
    LOG_FILE: Optional path for a rotating log file.

Usage:
    from identity_reconciliation.logger_config import setup_logging
    setup_logging()
"""

import logging
import logging.config
import os
from typing import Any, Dict, Optional

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Loggers that get their own entry so uvicorn does not install its own handlers
SERVER_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")


def get_log_level() -> int:
    """
    Get log level from LOG_LEVEL environment variable.

    Case-insensitive. Unknown or empty values fall back to INFO.

    Returns:
        Logging level constant (e.g., logging.INFO).
    """
    level_name = os.getenv("LOG_LEVEL", "INFO").strip().upper()
    level = logging.getLevelName(level_name) if level_name else None

    if not isinstance(level, int):
        return logging.INFO

    return level


def build_logging_config(
    level: int,
    format_string: str = DEFAULT_FORMAT,
    log_file: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Build the dictConfig dictionary.

    Args:
        level: Level for the root logger and every handler.
        format_string: Log record format.
        log_file: Optional rotating file destination.

    Returns:
        A dictionary accepted by logging.config.dictConfig.
    """
    handlers = ["console"]
    config: Dict[str, Any] = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "format": format_string,
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": level,
                "formatter": "standard",
                "stream": "ext://sys.stdout",
            },
        },
        "root": {
            "level": level,
            "handlers": handlers,
        },
        "loggers": {
            name: {"level": level, "handlers": [], "propagate": True}
            for name in SERVER_LOGGERS
        },
    }

    if log_file:
        config["handlers"]["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "level": level,
            "formatter": "standard",
            "filename": log_file,
            "maxBytes": 10_485_760,  # 10 MB
            "backupCount": 5,
        }
        handlers.append("file")

    return config


def setup_logging(
    level: Optional[int] = None,
    format_string: Optional[str] = None,
    log_file: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Configure logging for the service. Safe to call more than once.

    Args:
        level: Logging level. If None, reads from LOG_LEVEL (default: INFO).
        format_string: Optional custom format string.
        log_file: Optional log file path. If None, reads from LOG_FILE.

    Returns:
        The applied configuration, which is also handed to uvicorn by `serve`.
    """
    if level is None:
        level = get_log_level()

    if log_file is None:
        log_file = os.getenv("LOG_FILE") or None

    config = build_logging_config(level, format_string or DEFAULT_FORMAT, log_file)
    logging.config.dictConfig(config)
    return config
