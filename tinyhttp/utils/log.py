from __future__ import annotations

import logging
import sys
from logging.config import dictConfig
from typing import TYPE_CHECKING

from tinyhttp.settings import Settings

if TYPE_CHECKING:
    from tinyhttp.settings import BaseSettings


DEFAULT_LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "loggers": {
        "tinyhttp": {"level": "DEBUG"},
    },
}


class TopLevelFormatter(logging.Filter):
    """Keep only top level loggers' name (direct children from root) from
    records.

    This filter will replace tinyhttp loggers' names with 'tinyhttp'. This
    mimics the old behavior of showing just the library name, while still
    letting ``logging.getLogger(__name__)`` be used per module.
    """

    def __init__(self, loggers: list[str] | None = None):
        super().__init__()
        self.loggers: list[str] = loggers or []

    def filter(self, record: logging.LogRecord) -> bool:
        if any(record.name.startswith(logger + ".") for logger in self.loggers):
            record.name = record.name.split(".", 1)[0]
        return True


def configure_logging(
    settings: BaseSettings | dict | None = None, install_root_handler: bool = True
) -> None:
    """
    Initialize logging defaults for tinyhttp.

    :param settings: settings used to create and configure a handler for the
        root logger (default: None).
    :type settings: dict, :class:`~tinyhttp.settings.Settings` object or ``None``

    :param install_root_handler: whether to install root logging handler
        (default: True)
    :type install_root_handler: bool

    This function does:

    - Route warnings through Python logging
    - Set the level of the tinyhttp loggers
    - Create a handler for the root logger according to given settings

    The library never calls this function itself; applications and scripts
    using :class:`tinyhttp.HTTPClient` may call it to get log output.
    """
    if not sys.warnoptions:
        # Route warnings through python logging
        logging.captureWarnings(True)

    dictConfig(DEFAULT_LOGGING)

    if isinstance(settings, dict) or settings is None:
        settings = Settings(settings)

    if install_root_handler:
        install_root_handler_from(settings)


_root_handler: logging.Handler | None = None


def install_root_handler_from(settings: BaseSettings) -> None:
    global _root_handler  # noqa: PLW0603

    if (
        _root_handler is not None
        and _root_handler in logging.root.handlers
    ):
        logging.root.removeHandler(_root_handler)
    logging.root.setLevel(logging.NOTSET)
    _root_handler = _get_handler(settings)
    logging.root.addHandler(_root_handler)


def get_root_handler() -> logging.Handler | None:
    return _root_handler


def _get_handler(settings: BaseSettings) -> logging.Handler:
    """Return a log handler object according to settings"""
    filename = settings.get("LOG_FILE")
    handler: logging.Handler
    if filename:
        mode = "a" if settings.getbool("LOG_FILE_APPEND") else "w"
        encoding = settings.get("LOG_ENCODING")
        handler = logging.FileHandler(filename, mode=mode, encoding=encoding)
    elif settings.getbool("LOG_ENABLED"):
        handler = logging.StreamHandler()
    else:
        handler = logging.NullHandler()

    formatter = logging.Formatter(
        fmt=settings.get("LOG_FORMAT"), datefmt=settings.get("LOG_DATEFORMAT")
    )
    handler.setFormatter(formatter)
    handler.setLevel(settings.get("LOG_LEVEL"))
    if settings.getbool("LOG_SHORT_NAMES"):
        handler.addFilter(TopLevelFormatter(["tinyhttp"]))
    return handler
