"""Consent- and token-authenticated reads of XS2A account resources.

Payloads are returned as raw bytes; their schema is the bank's business.
"""

from __future__ import annotations

import logging
import uuid
from typing import Mapping
from urllib.parse import quote

from pecuniator.open_banking.errors import RemoteAPIError, Unauthorized
from pecuniator.open_banking.models import Tokens
from pecuniator.open_banking.transport import HttpTransport, is_success

_LOG = logging.getLogger("pecuniator.open_banking.gateway")


class APIGateway:
    """Issue GET requests against ``<api base>/accounts...`` resources."""

    def __init__(
        self,
        transport: HttpTransport,
        *,
        api_base_url: str,
        timeout: float | None = None,
    ) -> None:
        self.transport = transport
        self.api_base_url = api_base_url.rstrip("/")
        self.timeout = timeout

    def get(
        self,
        resource_path: str,
        consent_id: str,
        tokens: Tokens | None,
        query_params: Mapping[str, str] | None = None,
    ) -> bytes:
        """GET *resource_path* on behalf of *consent_id*.

        Raises
        ------
        Unauthorized
            If no *tokens* are supplied; the bank is not contacted.
        RemoteAPIError
            On a non-2xx answer.
        TransportError
            On TLS/network failure.
        """
        if tokens is None:
            raise Unauthorized("no access token available for this consent")

        path = resource_path if resource_path.startswith("/") else f"/{resource_path}"
        headers = {
            "X-Request-ID": str(uuid.uuid4()),
            "Consent-ID": consent_id,
            "Authorization": tokens.authorization_header,
        }
        params = {k: v for k, v in (query_params or {}).items() if v is not None}
        resp = self.transport.request(
            "GET",
            f"{self.api_base_url}{path}",
            headers=headers,
            params=params or None,
            timeout=self.timeout,
        )
        if not is_success(resp):
            _LOG.warning("GET %s returned %s", path, resp.status_code)
            raise RemoteAPIError(resp.status_code, resp.text)
        return resp.content

    # ---------------- convenience ---------------------------------------- #
    def list_accounts(self, consent_id: str, tokens: Tokens | None) -> bytes:
        return self.get("/accounts", consent_id, tokens)

    def get_balances(
        self, resource_id: str, consent_id: str, tokens: Tokens | None
    ) -> bytes:
        return self.get(f"/accounts/{_segment(resource_id)}/balances", consent_id, tokens)

    def get_transactions(
        self,
        resource_id: str,
        consent_id: str,
        tokens: Tokens | None,
        *,
        date_from: str | None = None,
        booking_status: str | None = None,
    ) -> bytes:
        return self.get(
            f"/accounts/{_segment(resource_id)}/transactions",
            consent_id,
            tokens,
            {"dateFrom": date_from, "bookingStatus": booking_status},
        )


def _segment(resource_id: str) -> str:
    if not resource_id:
        raise ValueError("resource_id is required")
    return quote(resource_id, safe="")
