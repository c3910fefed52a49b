"""Structured logging configuration using dictConfig."""
import logging
import logging.config
import sys
from typing import Dict, Any, Optional

from .settings import get_settings

# Third-party loggers this service talks through, and the level they log at
LIBRARY_LEVELS = {
    "uvicorn": "INFO",
    "uvicorn.access": "WARNING",
    "httpx": "WARNING",
    "sqlalchemy.engine": "WARNING",
}

CONSOLE_FORMAT = "%(asctime)s [%(service)s] [%(levelname)s] %(name)s: %(message)s"
JSON_FORMAT = "%(asctime)s %(levelname)s %(service)s %(name)s %(message)s"


class ServiceFilter(logging.Filter):
    """Stamps every record with the service name."""

    def __init__(self, service: str = "trendsbox"):
        super().__init__()
        self.service = service

    def filter(self, record: logging.LogRecord) -> bool:
        record.service = self.service
        return True


def get_logging_config(service_name: Optional[str] = None) -> Dict[str, Any]:
    """Get logging configuration dictionary."""
    settings = get_settings()
    production = settings.environment == "production"

    def logger_entry(level: str) -> Dict[str, Any]:
        return {"level": level, "handlers": ["console"], "propagate": False}

    loggers = {"trendsbox": logger_entry(settings.log_level)}
    loggers.update({name: logger_entry(level) for name, level in LIBRARY_LEVELS.items()})

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {
            "service": {"()": ServiceFilter, "service": service_name or "trendsbox"},
        },
        "formatters": {
            "json": {
                "class": "pythonjsonlogger.jsonlogger.JsonFormatter",
                "format": JSON_FORMAT,
                "datefmt": "%Y-%m-%dT%H:%M:%S%z",
            },
            "console": {
                "format": CONSOLE_FORMAT,
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": settings.log_level,
                "formatter": "json" if production else "console",
                "filters": ["service"],
                "stream": sys.stdout,
            }
        },
        "loggers": loggers,
        "root": {"level": settings.log_level, "handlers": ["console"]},
    }


def setup_logging(service_name: Optional[str] = None) -> None:
    """Configure structured logging using dictConfig."""
    logging.config.dictConfig(get_logging_config(service_name))


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance."""
    return logging.getLogger(name)
