"""Logging helpers shared by the core and the HTTP layer."""

from __future__ import annotations

import logging
import sys
from contextvars import ContextVar

_FORMAT = "%(asctime)s %(levelname)s %(name)s [%(correlation_id)s] %(message)s"

# Set per request by the correlation middleware; "-" outside a request.
current_correlation_id: ContextVar[str] = ContextVar("correlation_id", default="-")


def mask_sensitive(value: str | None, keep: int = 4) -> str:
    """Return *value* with everything but the first *keep* characters masked.

    >>> mask_sensitive("0f3c1b9e2d4a", 6)
    '0f3c1b****'
    """
    if not value:
        return "<empty>"
    if len(value) <= keep:
        return "*" * len(value)
    return f"{value[:keep]}****"


class CorrelationIdFilter(logging.Filter):
    """Stamp ``record.correlation_id`` unless the call site already set one."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "correlation_id"):
            record.correlation_id = current_correlation_id.get()
        return True


def setup_logging(level: int | str = logging.INFO, stream=sys.stderr) -> logging.Logger:
    """Configure the ``pecuniator`` logger hierarchy and return its root."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    root = logging.getLogger("pecuniator")
    root.setLevel(level)
    if not root.handlers:
        handler = logging.StreamHandler(stream)
        handler.addFilter(CorrelationIdFilter())
        handler.setFormatter(logging.Formatter(_FORMAT))
        root.addHandler(handler)
    return root
