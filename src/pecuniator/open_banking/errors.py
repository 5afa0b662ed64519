"""Exception types raised by the Open Banking core.

Only lightweight, **data-carrying** exceptions live here so that web/CLI layers
can transform them into HTTP responses or user-friendly messages.  None of
them ever carries a token, verifier or authorization code.
"""

from __future__ import annotations

from typing import Any

_BODY_PREVIEW = 200


def _preview(body: str) -> str:
    return body[:_BODY_PREVIEW]


class OpenBankingError(RuntimeError):
    """Base class for every failure surfaced by the core operations."""

    error_code = "open_banking_error"

    def to_payload(self) -> dict[str, Any]:
        """Return a JSON-serialisable payload **without secrets**."""
        return {"error": self.error_code, "message": str(self)}


class TransportError(OpenBankingError):
    """TLS, connection or timeout failure talking to the bank."""

    error_code = "transport_error"


class DecodeError(OpenBankingError):
    """The bank answered with malformed or incomplete JSON."""

    error_code = "decode_error"


class _RemoteStatusError(OpenBankingError):
    """Non-2xx answer from the bank; keeps status and (truncated) body."""

    def __init__(self, status_code: int, body: str, message: str | None = None) -> None:
        super().__init__(
            message or f"bank returned {status_code}: {_preview(body)}"
        )
        self.status_code: int = status_code
        self.body: str = body

    def to_payload(self) -> dict[str, Any]:
        payload = super().to_payload()
        payload["status"] = self.status_code
        return payload


class ConsentRejected(_RemoteStatusError):
    """Raised when the bank refuses to create a consent."""

    error_code = "consent_rejected"

    def __init__(self, status_code: int, body: str) -> None:
        super().__init__(
            status_code,
            body,
            f"consent rejected with {status_code}: {_preview(body)}",
        )


class RemoteAPIError(_RemoteStatusError):
    """Raised for non-2xx answers on discovery and account-data resources."""

    error_code = "remote_api_error"


class TokenExchangeFailed(_RemoteStatusError):
    """Token endpoint refused the code (verifier mismatch, expired or replayed code).

    Terminal for the authorization code involved; a fresh flow is required.
    """

    error_code = "token_exchange_failed"

    def __init__(self, status_code: int, body: str) -> None:
        super().__init__(
            status_code,
            body,
            f"token exchange failed with {status_code}: {_preview(body)}",
        )


class Unauthorized(OpenBankingError):
    """Unknown state, or account data requested without valid tokens."""

    error_code = "unauthorized"


class SessionNotFound(Unauthorized):
    """No session is registered under the given state identifier."""

    error_code = "session_not_found"

    def __init__(self, state_id: str) -> None:
        super().__init__("unknown or expired authorization state")
        self.state_id: str = state_id


class InvalidTransition(OpenBankingError):
    """A session state-machine transition that is not allowed."""

    error_code = "invalid_transition"
