"""Per-request correlation IDs for tracing one browser round-trip.

An inbound ``X-Correlation-ID`` is honoured when it is a short token of safe
characters; anything else is replaced by a fresh UUID4 hex string so that
client-supplied text never reaches the logs verbatim.

The ID is set on ``request.state.correlation_id`` for handlers, echoed in the
response header and published through
:data:`pecuniator.utils.logging.current_correlation_id` so records logged from
worker threads (the core runs in a threadpool) carry it.
"""

from __future__ import annotations

import logging
import re
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from pecuniator.utils.logging import current_correlation_id

HEADER_NAME = "X-Correlation-ID"
_VALID_ID = re.compile(r"[A-Za-z0-9._-]{1,64}")

_logger = logging.getLogger("pecuniator.servers.correlation")


def accept_correlation_id(candidate: str | None) -> str:
    """Return *candidate* if it is a safe token, else a new UUID4 hex."""
    if candidate and _VALID_ID.fullmatch(candidate):
        return candidate
    return uuid.uuid4().hex


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Attach a correlation ID to every request and its response."""

    def __init__(self, app, header_name: str = HEADER_NAME) -> None:  # type: ignore[override]  # noqa: ANN001
        super().__init__(app)
        self.header_name = header_name

    async def dispatch(self, request: Request, call_next) -> Response:  # type: ignore[override]  # noqa: ANN001
        correlation_id = accept_correlation_id(request.headers.get(self.header_name))
        request.state.correlation_id = correlation_id
        token = current_correlation_id.set(correlation_id)
        try:
            _logger.debug("%s %s", request.method, request.url.path)
            response = await call_next(request)
        finally:
            current_correlation_id.reset(token)
        response.headers[self.header_name] = correlation_id
        return response
