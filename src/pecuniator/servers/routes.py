"""Browser-facing AIS endpoints.

Handlers are intentionally thin:

1. Parse and validate HTTP-layer parameters.
2. Delegate business logic to ``OpenBankingService`` (in a worker thread, so
   one slow bank call never blocks other requests).
3. Return an appropriate Starlette ``Response`` type.

Routes
------
``GET /index``                   start a new session (consent + PKCE)
``GET /oauth/redirect``          bank callback (``code`` + ``state``)
``GET /accounts``                account list
``GET /accounts/balances``       balances of ``resourceId``
``GET /accounts/transactions``   transactions of ``resourceId``

The session handle on account routes is the ``state`` query parameter or,
for browsers, the cookie set by the callback.

SECURITY NOTE
-------------
• No raw secrets (authorization codes, code verifiers, access / refresh
  tokens) are ever logged or rendered.
• Error responses carry the error payload only, never tracebacks.
"""

from __future__ import annotations

import html
import logging
from typing import Any

from starlette.concurrency import run_in_threadpool
from starlette.requests import Request
from starlette.responses import (
    HTMLResponse,
    JSONResponse,
    RedirectResponse,
    Response,
)
from starlette.routing import Route

from pecuniator.open_banking.errors import (
    ConsentRejected,
    DecodeError,
    InvalidTransition,
    OpenBankingError,
    RemoteAPIError,
    TokenExchangeFailed,
    TransportError,
    Unauthorized,
)
from pecuniator.open_banking.service import OpenBankingService
from pecuniator.utils.logging import mask_sensitive

_LOG = logging.getLogger("pecuniator.servers.routes")

SESSION_COOKIE = "pecuniator_state"

_STATUS_BY_ERROR: tuple[tuple[type[OpenBankingError], int], ...] = (
    (Unauthorized, 401),
    (InvalidTransition, 409),
    (TransportError, 504),
    (ConsentRejected, 502),
    (TokenExchangeFailed, 502),
    (RemoteAPIError, 502),
    (DecodeError, 502),
)


def status_for(exc: OpenBankingError) -> int:
    for error_type, status in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status
    return 500


def _html_page(title: str, body: str, status: int = 200) -> HTMLResponse:
    """Return a tiny success / error HTML page (*body* is trusted markup)."""
    content = (
        "<!doctype html><html lang='en'>"
        "<head><meta charset='utf-8'><title>"
        f"{html.escape(title)}</title></head><body><h1>{html.escape(title)}</h1>"
        f"<p>{body}</p></body></html>"
    )
    return HTMLResponse(content, status_code=status)


def _error_json(exc: OpenBankingError) -> JSONResponse:
    return JSONResponse(exc.to_payload(), status_code=status_for(exc))


def _service(request: Request) -> OpenBankingService:
    return request.app.state.service


def _correlation_id(request: Request) -> str:
    return getattr(request.state, "correlation_id", "-")


def _session_state(request: Request) -> str | None:
    return request.query_params.get("state") or request.cookies.get(SESSION_COOKIE)


# --------------------------------------------------------------------------- #
# Handlers                                                                    #
# --------------------------------------------------------------------------- #
async def start_flow(request: Request) -> Response:
    """``GET /index`` – create a session and hand out the bank login link."""
    svc = _service(request)
    accounts = request.query_params.getlist("iban") or None
    try:
        state_id, authorize_url = await run_in_threadpool(
            svc.start_session, accounts, correlation_id=_correlation_id(request)
        )
    except ValueError as exc:
        return JSONResponse({"error": str(exc)}, status_code=400)
    except OpenBankingError as exc:
        _LOG.warning(
            "Session start failed: %s correlation_id=%s",
            exc.__class__.__name__,
            _correlation_id(request),
        )
        return _error_json(exc)

    _LOG.info(
        "Session start state=%s correlation_id=%s",
        mask_sensitive(state_id, 6),
        _correlation_id(request),
    )

    fmt_param = request.query_params.get("format")
    if fmt_param == "json":
        return JSONResponse({"state": state_id, "authorize_url": authorize_url})
    if fmt_param == "redirect":
        # Use 303 See Other for GET safety across methods
        return RedirectResponse(authorize_url, status_code=303)
    return _html_page(
        "Login",
        f'<a href="{html.escape(authorize_url)}">Please login at your bank to proceed</a>',
    )


async def oauth_redirect(request: Request) -> Response:
    """``GET /oauth/redirect`` – validate ``state`` and exchange the code."""
    # Check for provider-side errors first (e.g., access_denied)
    oauth_error = request.query_params.get("error")
    if oauth_error:
        description = request.query_params.get("error_description", "")
        text = f"{oauth_error}: {description}" if description else oauth_error
        return _html_page("Authorization failed", html.escape(text), 400)

    code = request.query_params.get("code")
    state = request.query_params.get("state")
    if not code or not state:
        return _html_page("Authorization failed", "code or state missing", 400)

    svc = _service(request)
    try:
        await run_in_threadpool(
            svc.complete_authorization, state, code, correlation_id=_correlation_id(request)
        )
    except OpenBankingError as exc:
        _LOG.warning(
            "OAuth callback error: %s correlation_id=%s",
            exc.__class__.__name__,
            _correlation_id(request),
        )
        status = 400 if isinstance(exc, Unauthorized) else status_for(exc)
        return _html_page(
            "Authorization failed",
            f'{html.escape(str(exc))}<br><a href="/index">Start</a>',
            status,
        )

    _LOG.info(
        "OAuth success state=%s correlation_id=%s",
        mask_sensitive(state, 6),
        _correlation_id(request),
    )
    accounts_link = f"/accounts?state={html.escape(state)}"
    response = _html_page(
        "Authorization successful",
        f'<a href="{accounts_link}">Get accounts</a>',
    )
    response.set_cookie(
        SESSION_COOKIE,
        state,
        httponly=True,
        samesite="lax",
        secure=request.url.scheme == "https",
    )
    return response


async def _account_data(request: Request, operation, *args: Any, **kwargs: Any) -> Response:
    state = _session_state(request)
    if not state:
        return JSONResponse(
            {"error": "unauthorized", "message": "missing session state"},
            status_code=401,
        )
    try:
        data = await run_in_threadpool(operation, state, *args, **kwargs)
    except OpenBankingError as exc:
        _LOG.warning(
            "Data error %s on %s correlation_id=%s",
            exc.__class__.__name__,
            request.url.path,
            _correlation_id(request),
        )
        return _error_json(exc)
    return Response(content=data, media_type="application/json")


async def accounts(request: Request) -> Response:
    return await _account_data(request, _service(request).accounts)


async def balances(request: Request) -> Response:
    resource_id = request.query_params.get("resourceId")
    if not resource_id:
        return JSONResponse({"error": "missing resourceId"}, status_code=400)
    return await _account_data(request, _service(request).balances, resource_id)


async def transactions(request: Request) -> Response:
    resource_id = request.query_params.get("resourceId")
    if not resource_id:
        return JSONResponse({"error": "missing resourceId"}, status_code=400)
    return await _account_data(
        request,
        _service(request).transactions,
        resource_id,
        date_from=request.query_params.get("dateFrom"),
        booking_status=request.query_params.get("bookingStatus"),
    )


async def health_check(request: Request) -> JSONResponse:
    return JSONResponse({"status": "ok"})


# --------------------------------------------------------------------------- #
# Public API                                                                  #
# --------------------------------------------------------------------------- #
def build_routes() -> list[Route]:
    return [
        Route("/index", start_flow, methods=["GET"]),
        Route("/oauth/redirect", oauth_redirect, methods=["GET"]),
        Route("/accounts", accounts, methods=["GET"]),
        Route("/accounts/balances", balances, methods=["GET"]),
        Route("/accounts/transactions", transactions, methods=["GET"]),
        Route("/healthz", health_check, methods=["GET"]),
    ]
