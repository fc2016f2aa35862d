"""
Process-wide logging setup.

LoggingConfig() is idempotent: the API app, Celery workers and alembic all call
it, only the first call installs the handler.
"""

from __future__ import annotations

import logging
import logging.config

from livechat.config import get_settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
ROOT_LOGGER = "livechat"


class LoggingConfig:
    _configured = False

    def __init__(self, level: str | None = None) -> None:
        if LoggingConfig._configured:
            return
        level = (level or get_settings().log_level or "INFO").upper()
        logging.config.dictConfig(
            {
                "version": 1,
                "disable_existing_loggers": False,
                "formatters": {"default": {"format": LOG_FORMAT}},
                "handlers": {
                    "console": {
                        "class": "logging.StreamHandler",
                        "formatter": "default",
                    }
                },
                "loggers": {
                    ROOT_LOGGER: {
                        "handlers": ["console"],
                        "level": level,
                        "propagate": True,
                    },
                    "sqlalchemy.engine": {"level": "WARNING"},
                },
            }
        )
        LoggingConfig._configured = True


def get_logger(name: str) -> logging.Logger:
    """Logger under the livechat namespace (get_logger("tasks") -> livechat.tasks)."""
    if name.startswith(ROOT_LOGGER):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")
