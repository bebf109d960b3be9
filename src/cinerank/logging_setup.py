"""Rich logging for cinerank.

The engine modules only call ``logging.getLogger(__name__)``; this module is
where an application (the CLI, or an embedding service) attaches a handler.
"""

from __future__ import annotations

import logging
import os
from enum import Enum
from typing import Final

from rich.console import Console
from rich.logging import RichHandler

__all__ = ["LogLevel", "configure_logging", "console"]

LOG_LEVEL_ENV: Final[str] = "CINERANK_LOG_LEVEL"
_HANDLER_MARKER: Final[str] = "_cinerank_managed"

console = Console()


class LogLevel(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


def resolve_level(level: LogLevel | str | None = None) -> int:
    """Explicit level first, then ``$CINERANK_LOG_LEVEL``, then INFO.

    Unknown names fall back to INFO.
    """
    if isinstance(level, LogLevel):
        name = level.value
    else:
        name = (level or os.getenv(LOG_LEVEL_ENV) or LogLevel.INFO.value).upper()
    return getattr(logging, name, logging.INFO)


def _managed_handler(root_logger: logging.Logger) -> RichHandler | None:
    for handler in root_logger.handlers:
        if isinstance(handler, RichHandler) and getattr(handler, _HANDLER_MARKER, False):
            return handler
    return None


def configure_logging(level: LogLevel | str | None = None) -> None:
    """Attach one Rich handler to the root logger and set the level.

    Repeated calls only change the level.
    """
    root_logger = logging.getLogger()

    if _managed_handler(root_logger) is None:
        root_logger.handlers.clear()
        handler = RichHandler(
            console=console,
            rich_tracebacks=True,
            show_path=False,
            markup=False,
            log_time_format="[%Y-%m-%d %H:%M:%S]",
        )
        handler.setFormatter(logging.Formatter("%(message)s"))
        setattr(handler, _HANDLER_MARKER, True)
        root_logger.addHandler(handler)

    root_logger.setLevel(resolve_level(level))
    logging.captureWarnings(True)
