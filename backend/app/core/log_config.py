from __future__ import annotations

import logging.config

from backend.app.core.config import LOG_LEVEL


def configure_logging(level: str | None = None) -> None:
    """
    Logging console unique pour l'API et les scripts.
    Les modules font simplement logging.getLogger(__name__).
    """
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": {
                    "format": "%(asctime)s %(levelname)s %(name)s: %(message)s",
                },
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                },
            },
            "loggers": {
                "backend": {
                    "handlers": ["console"],
                    "level": level or LOG_LEVEL,
                    "propagate": False,
                },
            },
        }
    )
