"""
Logging setup for docs-translator.

Modules log through ``logging.getLogger(__name__)``. Per-document context
(file, path, correlation id) travels with a ContextLoggerAdapter so every
line emitted while translating a document can be traced back to it.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, MutableMapping
from logging.handlers import RotatingFileHandler
from typing import Any

from rich.console import Console
from rich.logging import RichHandler

from docs_translator.config import LoggingConfig

PACKAGE_LOGGER = "docs_translator"

# Third-party loggers that are noisy at INFO
_QUIET_LOGGERS = ("httpx", "httpcore", "openai", "urllib3")


class ContextLoggerAdapter(logging.LoggerAdapter):
    """
    LoggerAdapter that appends bound ``key=value`` fields to each message.

    Fields passed through ``extra=`` at the call site are appended as well,
    so call sites can attach counts and ratios without string formatting.
    """

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> tuple[Any, MutableMapping[str, Any]]:
        fields: dict[str, Any] = dict(self.extra or {})
        call_extra = kwargs.pop("extra", None) or {}
        fields.update(call_extra)
        if fields:
            rendered = " ".join(f"{k}={_render(v)}" for k, v in fields.items())
            msg = f"{msg} [{rendered}]"
        kwargs["extra"] = {"context": fields}
        return msg, kwargs

    def bind(self, **fields: Any) -> ContextLoggerAdapter:
        """Return a child adapter with additional bound fields."""
        merged = {**(self.extra or {}), **fields}
        return ContextLoggerAdapter(self.logger, merged)


def _render(value: Any) -> str:
    if isinstance(value, float):
        return f"{value:.2f}"
    return str(value)


def get_logger(name: str, **fields: Any) -> ContextLoggerAdapter:
    """Get a context-aware logger for a module."""
    return ContextLoggerAdapter(logging.getLogger(name), fields)


def child_logger(parent: logging.Logger | logging.LoggerAdapter | None, **fields: Any) -> ContextLoggerAdapter:
    """
    Create a child logging context.

    Args:
        parent: Logger or adapter to derive from (package logger when None).
        **fields: Context fields bound to every message.

    Returns:
        ContextLoggerAdapter carrying the parent's fields plus ``fields``.
    """
    if isinstance(parent, ContextLoggerAdapter):
        return parent.bind(**fields)
    if isinstance(parent, logging.LoggerAdapter):
        base: Mapping[str, Any] = parent.extra or {}
        return ContextLoggerAdapter(parent.logger, {**base, **fields})
    return ContextLoggerAdapter(parent or logging.getLogger(PACKAGE_LOGGER), fields)


def setup_logging(config: LoggingConfig | None = None, console: Console | None = None) -> None:
    """
    Configure the package logger.

    Installs a rich console handler and, when ``config.file`` is set, a
    size-rotated file handler. Safe to call more than once; handlers from a
    previous call are replaced.

    Args:
        config: Logging configuration (defaults when None).
        console: Rich console to log to (stderr console when None).
    """
    config = config or LoggingConfig()
    level = logging.getLevelName(config.level)
    if not isinstance(level, int):
        level = logging.INFO

    logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    logger.setLevel(level)
    logger.propagate = False

    rich_handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
        markup=False,
    )
    rich_handler.setLevel(level)
    logger.addHandler(rich_handler)

    if config.file is not None:
        config.file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            config.file,
            maxBytes=config.max_file_size_mb * 1024 * 1024,
            backupCount=config.backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter(config.format))
        logger.addHandler(file_handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
