"""Logging configuration for the kbot process."""

import logging
import logging.config
from typing import Any, Dict


def get_logging_config(level: str = "WARNING") -> Dict[str, Any]:
    """Get logging configuration routing the kbot logger to stderr."""
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
            }
        },
        "handlers": {
            "default": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                "stream": "ext://sys.stderr"
            }
        },
        "loggers": {
            "kbot": {
                "handlers": ["default"],
                "level": level,
                "propagate": False
            }
        }
    }


def setup_logging(level: int | str = logging.WARNING) -> None:
    """Apply the logging configuration; accepts a level name or number."""
    if isinstance(level, int):
        level = logging.getLevelName(level)
    logging.config.dictConfig(get_logging_config(str(level)))
