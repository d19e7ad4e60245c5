"""Logging setup for Bidscreen.

Every module asks for its logger with ``get_logger(__name__)``. Storage,
sync and webhook code run inside :func:`log_context` so that each line
they emit ends with the auction or webhook it concerns, for example::

    2024-05-01 10:00:00,000 WARNING bidscreen.services.storage: Remote save failed [event_id=k3j9x0ab mode=remote]
"""

from __future__ import annotations

import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Iterator

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s%(context)s"

NOISY_LOGGERS = ("httpx", "httpcore", "aiohttp", "asyncio", "uvicorn.access")

_context: ContextVar[dict[str, Any]] = ContextVar("bidscreen_log_context", default={})
_handler: logging.Handler | None = None


def current_log_context() -> dict[str, Any]:
    return dict(_context.get())


@contextmanager
def log_context(**fields: Any) -> Iterator[None]:
    """Attach ``fields`` to every record logged inside the block.

    Nested blocks merge their fields; ``None`` values are left out.
    """
    merged = {**_context.get(), **{k: v for k, v in fields.items() if v is not None}}
    token = _context.set(merged)
    try:
        yield
    finally:
        _context.reset(token)


class ContextFilter(logging.Filter):
    """Render the active log context into ``record.context``."""

    def filter(self, record: logging.LogRecord) -> bool:
        fields = _context.get()
        record.context = (
            " [" + " ".join(f"{key}={value}" for key, value in fields.items()) + "]"
            if fields
            else ""
        )
        return True


def _build_handler() -> logging.Handler:
    handler = logging.StreamHandler(sys.stderr)
    handler.addFilter(ContextFilter())
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    return handler


def configure_logging(
    level: int = logging.INFO,
    third_party_level: int = logging.WARNING,
) -> None:
    """Install the Bidscreen handler on the root logger.

    Safe to call more than once; later calls only change the levels, so
    the CLI's ``--verbose`` flag still applies after the API has started.
    """
    global _handler
    root = logging.getLogger()
    if _handler is None:
        _handler = _build_handler()
        for existing in root.handlers[:]:
            root.removeHandler(existing)
        root.addHandler(_handler)
    root.setLevel(level)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(third_party_level)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def log_exception(
    logger: logging.Logger,
    message: str,
    exc: BaseException,
    **context: Any,
) -> None:
    """Log ``exc`` with its traceback under ``message`` and extra context."""

    with log_context(**context):
        logger.error("%s: %s", message, exc, exc_info=exc)
