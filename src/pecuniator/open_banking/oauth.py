"""OAuth 2.0 authorization-code client (PKCE, S256) for the bank's IdP.

Three responsibilities:

1. Discover the authorization and token endpoints once from the well-known
   metadata resource and keep them for the process lifetime.
2. Build the authorization redirect URL (pure, no network).
3. Exchange an authorization code plus the session's own verifier for tokens.

SECURITY NOTE
-------------
Authorization codes, verifiers and tokens are never logged.
"""

from __future__ import annotations

import logging
import threading
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from pecuniator.open_banking.clock import Clock, default_clock
from pecuniator.open_banking.errors import (
    DecodeError,
    RemoteAPIError,
    TokenExchangeFailed,
)
from pecuniator.open_banking.models import S256, Endpoints, Tokens
from pecuniator.open_banking.transport import HttpTransport, is_success

_LOG = logging.getLogger("pecuniator.open_banking.oauth")

_DEFAULT_EXPIRES_IN = 3600


def parse_endpoints(data: object) -> Endpoints:
    """Validate a discovery document into :class:`Endpoints`.

    Raises
    ------
    DecodeError
        If *data* is not an object with non-empty ``authorization`` and
        ``token`` string fields.
    """
    if not isinstance(data, dict):
        raise DecodeError("discovery document is not a JSON object")
    missing = [
        key
        for key in ("authorization", "token")
        if not isinstance(data.get(key), str) or not data[key].strip()
    ]
    if missing:
        raise DecodeError(f"discovery document missing {', '.join(missing)}")
    return Endpoints(
        authorization_url=data["authorization"].strip(),
        token_url=data["token"].strip(),
    )


class OAuthClient:
    """Authorization-code + PKCE client bound to one registered ``client_id``."""

    def __init__(
        self,
        transport: HttpTransport,
        *,
        client_id: str,
        well_known_url: str,
        timeout: float | None = None,
        clock: Clock = default_clock,
    ) -> None:
        if not client_id:
            raise ValueError("client_id is required")
        self.transport = transport
        self.client_id = client_id
        self.well_known_url = well_known_url
        self.timeout = timeout
        self._clock = clock
        self._endpoints: Endpoints | None = None
        self._discovery_lock = threading.Lock()

    # ------------------------------------------------------------------ #
    # Discovery                                                          #
    # ------------------------------------------------------------------ #
    @property
    def endpoints(self) -> Endpoints:
        if self._endpoints is None:
            raise RuntimeError("endpoints not discovered yet")
        return self._endpoints

    def discover_endpoints(self) -> Endpoints:
        """Fetch the metadata document once; later calls reuse the result."""
        if self._endpoints is not None:
            return self._endpoints
        with self._discovery_lock:
            if self._endpoints is not None:
                return self._endpoints
            resp = self.transport.request(
                "GET", self.well_known_url, timeout=self.timeout
            )
            if not is_success(resp):
                raise RemoteAPIError(resp.status_code, resp.text)
            try:
                data = resp.json()
            except ValueError:
                raise DecodeError("discovery document is not valid JSON") from None
            self._endpoints = parse_endpoints(data)
            _LOG.info(
                "Discovered endpoints authorization=%s token=%s",
                self._endpoints.authorization_url,
                self._endpoints.token_url,
            )
        return self._endpoints

    # ------------------------------------------------------------------ #
    # Authorization redirect                                             #
    # ------------------------------------------------------------------ #
    def build_authorization_url(
        self,
        consent_id: str,
        state_id: str,
        challenge: str,
        *,
        endpoints: Endpoints | None = None,
    ) -> str:
        """Return the bank authorization URL for one session."""
        authorize = (endpoints or self.endpoints).authorization_url
        scheme, netloc, path, query, fragment = urlsplit(authorize)
        query_params = parse_qsl(query, keep_blank_values=True)
        query_params += [
            ("responseType", "code"),
            ("clientId", self.client_id),
            ("code_challenge_method", S256),
            ("scope", f"AIS: {consent_id}"),
            ("state", state_id),
            ("code_challenge", challenge),
        ]
        return urlunsplit((scheme, netloc, path, urlencode(query_params), fragment))

    # ------------------------------------------------------------------ #
    # Token exchange                                                     #
    # ------------------------------------------------------------------ #
    def exchange_code(
        self, code: str, verifier: str, *, endpoints: Endpoints | None = None
    ) -> Tokens:
        """Exchange *code* for tokens, proving possession with *verifier*.

        Raises
        ------
        TokenExchangeFailed
            On a non-2xx answer (verifier mismatch, expired or replayed code).
        TransportError
            On TLS/network failure.
        DecodeError
            If the answer is not JSON or lacks ``access_token``.
        """
        if not code:
            raise ValueError("authorization code is required")
        token_url = (endpoints or self.endpoints).token_url
        payload = {
            "code": code,
            "client_id": self.client_id,
            "code_verifier": verifier,
            "grant_type": "authorization_code",
        }
        resp = self.transport.request(
            "POST",
            token_url,
            headers={"Content-Type": "application/x-www-form-urlencoded"},
            data=urlencode(payload),
            timeout=self.timeout,
        )
        if not is_success(resp):
            _LOG.warning("Token endpoint returned %s", resp.status_code)
            raise TokenExchangeFailed(resp.status_code, resp.text)

        try:
            data = resp.json()
        except ValueError:
            raise DecodeError("token response is not valid JSON") from None
        if not isinstance(data, dict):
            raise DecodeError("token response is not a JSON object")

        access_token = data.get("access_token")
        if not isinstance(access_token, str) or not access_token:
            raise DecodeError("token response missing access_token")

        raw_expires_in = data.get("expires_in")
        try:
            expires_in = (
                _DEFAULT_EXPIRES_IN if raw_expires_in is None else int(raw_expires_in)
            )
        except (TypeError, ValueError):
            raise DecodeError("token response has invalid expires_in") from None
        if expires_in < 0:
            raise DecodeError("token response has negative expires_in")

        token_type = data.get("token_type")
        if token_type is None:
            token_type = "Bearer"
        # goes verbatim into the Authorization header
        if not isinstance(token_type, str) or not token_type.isalnum():
            raise DecodeError("token response has invalid token_type")

        refresh_token = data.get("refresh_token")
        if refresh_token is not None and not isinstance(refresh_token, str):
            raise DecodeError("token response has invalid refresh_token")

        obtained_at = int(self._clock())
        tokens = Tokens(
            access_token=access_token,
            token_type=token_type,
            refresh_token=refresh_token,
            obtained_at=obtained_at,
            expires_at=obtained_at + expires_in,
        )
        _LOG.info("Exchanged authorization code (expires in %ss)", tokens.ttl)
        return tokens
