"""Request ID logging context for tracing scheduler calls across modules.

Provides a request_id-aware logger that attaches a correlation ID to every
log message, so a single booking attempt can be followed from slot lookup
through commit and event fan-out.

Usage:
    from vetscheduler.logging_context import get_request_logger, request_id_scope

    logger = get_request_logger(__name__)
    with request_id_scope("REQ-abc123"):
        logger.info("Committing booking")  # record.request_id == "REQ-abc123"
"""

import logging
from contextlib import contextmanager
from contextvars import ContextVar, Token
from typing import Iterator, Optional

NO_REQUEST_ID = "NO_REQUEST_ID"

_request_id: ContextVar[str] = ContextVar("request_id", default=NO_REQUEST_ID)


def set_request_id(request_id: str) -> Token:
    """Set the correlation ID for the current context.

    Returns the token that ``reset_request_id`` takes to restore the
    previous value.
    """
    return _request_id.set(request_id)


def reset_request_id(token: Token) -> None:
    """Restore the correlation ID that was current before ``set_request_id``."""
    _request_id.reset(token)


@contextmanager
def request_id_scope(request_id: str) -> Iterator[None]:
    """Use ``request_id`` for the duration of the block."""
    token = set_request_id(request_id)
    try:
        yield
    finally:
        reset_request_id(token)


def get_request_id() -> str:
    """Retrieve the current correlation ID."""
    return _request_id.get()


class RequestIdFilter(logging.Filter):
    """Injects request_id into every log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = _request_id.get()  # type: ignore[attr-defined]
        return True


def get_request_logger(name: str) -> logging.Logger:
    """Return a logger with the RequestIdFilter attached.

    The filter adds ``request_id`` to each record so formatters can
    include ``%(request_id)s`` in their format string.
    """
    logger = logging.getLogger(name)
    if not any(isinstance(f, RequestIdFilter) for f in logger.filters):
        logger.addFilter(RequestIdFilter())
    return logger


def install_request_id_filter(logger: Optional[logging.Logger] = None) -> None:
    """Attach a RequestIdFilter to every handler of ``logger`` (the root by default).

    Handler filters see records from every logger that propagates there,
    so a format string using ``%(request_id)s`` works for library loggers too.
    """
    target = logger or logging.getLogger()
    for handler in target.handlers:
        if not any(isinstance(f, RequestIdFilter) for f in handler.filters):
            handler.addFilter(RequestIdFilter())
