"""
Logging setup for the Location Data Aggregator Service.
JSON lines through python-json-logger, or plain text for local runs.
"""

import logging
import logging.config
import sys
from typing import Any, Dict

from pythonjsonlogger.json import JsonFormatter

from .config import Settings, settings

JSON_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s %(module)s %(funcName)s %(lineno)d"
TEXT_FORMATS = {
    "standard": "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    "detailed": "%(asctime)s [%(levelname)s] %(name)s: %(message)s [in %(pathname)s:%(lineno)d]",
}
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Requests are logged by our middleware and provider calls by the resilience pipeline
QUIET_LOGGERS = ("httpx", "httpcore", "redis", "uvicorn.access")


def build_logging_config(config: Settings = settings) -> Dict[str, Any]:
    """dictConfig schema for the configured format and level."""
    if config.log_format == "json":
        formatter: Dict[str, Any] = {
            "()": JsonFormatter,
            "format": JSON_FORMAT,
            "datefmt": DATE_FORMAT,
            "static_fields": {"service": config.app_name, "version": config.app_version}
        }
    else:
        style = "standard" if config.log_level == "INFO" else "detailed"
        formatter = {"format": TEXT_FORMATS[style], "datefmt": DATE_FORMAT}

    logger_config = {"handlers": ["console"], "level": config.log_level, "propagate": False}

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"default": formatter},
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": config.log_level,
                "formatter": "default",
                "stream": sys.stdout
            }
        },
        "loggers": {
            "": dict(logger_config),
            "app": dict(logger_config)
        }
    }


def setup_logging(config: Settings = settings) -> None:
    """Configure root and ``app.*`` loggers."""
    logging.config.dictConfig(build_logging_config(config))
    logging.getLogger().setLevel(getattr(logging, config.log_level))

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"app.{name}")


def create_logger(module_name: str) -> logging.Logger:
    """Logger for a module, namespaced under ``app``."""
    return get_logger(module_name)
