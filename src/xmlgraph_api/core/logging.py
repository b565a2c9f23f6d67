#!/usr/bin/env python3

import logging
import logging.config
from pythonjsonlogger.json import JsonFormatter

from .env_utils import env_str


def setup_logging(level: str | None = None, stream: str = "ext://sys.stdout"):
    """Setup JSON logging configuration

    Args:
        level: Root log level; LOG_LEVEL (default INFO) when omitted
        stream: dictConfig reference of the output stream (the CLI logs to stderr)
    """
    level = (level or env_str("LOG_LEVEL") or "INFO").upper()
    logging_config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {
                "()": JsonFormatter,
                "format": "%(asctime)s %(name)s %(levelname)s %(message)s %(locator)s %(path)s"
            }
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "json",
                "stream": stream
            }
        },
        "loggers": {
            "": {
                "handlers": ["console"],
                "level": level,
                "propagate": False
            },
            "uvicorn": {
                "handlers": ["console"],
                "level": "INFO",
                "propagate": False
            },
            "neo4j": {
                "handlers": ["console"],
                "level": "WARNING",
                "propagate": False
            }
        }
    }

    logging.config.dictConfig(logging_config)
