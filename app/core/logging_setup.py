"""Настройка логирования приложения.

Один обработчик stdout на корневом логгере, чтобы модульные логгеры
(`logging.getLogger(__name__)`) писали без отдельной настройки. Логгеры
uvicorn остаются видимыми, повторная настройка при перезагрузке не
дублирует обработчики.
"""
import logging
from logging.config import dictConfig

from app.core.config import settings


def _dict_config(level: str) -> dict:
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "format": "%(asctime)s %(levelname)s:%(name)s:%(message)s",
            }
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": level,
                "formatter": "default",
                "stream": "ext://sys.stdout",
            }
        },
        "root": {"level": level, "handlers": ["console"]},
        "loggers": {
            "uvicorn": {"level": "INFO", "handlers": ["console"], "propagate": False},
            "uvicorn.error": {"level": "INFO", "handlers": ["console"], "propagate": False},
            "uvicorn.access": {"level": "INFO", "handlers": ["console"], "propagate": False},
        },
    }


def configure_logging() -> None:
    """Однократная настройка логирования"""
    root = logging.getLogger()
    if root.handlers:
        return
    dictConfig(_dict_config(settings.log_level.upper()))
