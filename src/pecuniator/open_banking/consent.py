"""AIS consent creation against the bank's XS2A ``/consents`` resource."""

from __future__ import annotations

import json
import logging
import uuid
from datetime import date, timedelta
from typing import Any, Iterable

from pecuniator.open_banking.clock import Clock, default_clock, today
from pecuniator.open_banking.errors import ConsentRejected, DecodeError
from pecuniator.open_banking.models import Consent
from pecuniator.open_banking.transport import HttpTransport, is_success

_LOG = logging.getLogger("pecuniator.open_banking.consent")


class ConsentClient:
    """Create consents scoped to a set of accounts.

    Consent creation is not idempotent (the bank allocates a new object per
    call), so failures are raised to the caller and never retried here.
    """

    def __init__(
        self,
        transport: HttpTransport,
        *,
        api_base_url: str,
        redirect_uri: str,
        valid_days: int = 90,
        frequency_per_day: int = 4,
        recurring: bool = True,
        timeout: float | None = None,
        clock: Clock = default_clock,
    ) -> None:
        self.transport = transport
        self.consents_url = f"{api_base_url.rstrip('/')}/consents"
        self.redirect_uri = redirect_uri
        self.valid_days = valid_days
        self.frequency_per_day = frequency_per_day
        self.recurring = recurring
        self.timeout = timeout
        self._clock = clock

    def _request_body(
        self, accounts: tuple[str, ...], valid_until: date
    ) -> dict[str, Any]:
        refs = [{"iban": iban} for iban in accounts]
        return {
            "access": {"balances": refs, "transactions": list(refs)},
            "recurringIndicator": self.recurring,
            "validUntil": valid_until.isoformat(),
            "frequencyPerDay": self.frequency_per_day,
            "combinedServiceIndicator": False,
        }

    def create_consent(self, accounts: Iterable[str]) -> Consent:
        """Create a consent granting balance and transaction access to *accounts*.

        Raises
        ------
        ValueError
            If *accounts* is empty.
        ConsentRejected
            On a non-2xx answer from the bank.
        TransportError
            On TLS/network failure.
        DecodeError
            If the answer is not JSON or lacks ``consentId``.
        """
        scoped = tuple(dict.fromkeys(a.strip() for a in accounts if a and a.strip()))
        if not scoped:
            raise ValueError("at least one account is required for a consent")

        valid_until = today(self._clock) + timedelta(days=self.valid_days)
        body = self._request_body(scoped, valid_until)
        request_id = str(uuid.uuid4())
        headers = {
            "Content-Type": "application/json",
            "X-Request-ID": request_id,
            "TPP-Redirect-URI": self.redirect_uri,
            "TPP-Redirect-Preferred": "true",
        }
        resp = self.transport.request(
            "POST",
            self.consents_url,
            headers=headers,
            data=json.dumps(body),
            timeout=self.timeout,
        )
        if not is_success(resp):
            _LOG.warning(
                "Consent request %s rejected with status=%s",
                request_id,
                resp.status_code,
            )
            raise ConsentRejected(resp.status_code, resp.text)

        try:
            data = resp.json()
        except ValueError:
            raise DecodeError("consent response is not valid JSON") from None

        consent_id = data.get("consentId") if isinstance(data, dict) else None
        if not isinstance(consent_id, str) or not consent_id:
            raise DecodeError("consent response missing consentId")

        consent = Consent(
            id=consent_id,
            valid_until=valid_until,
            frequency_per_day=self.frequency_per_day,
            recurring=self.recurring,
            scoped_accounts=scoped,
            status=data.get("consentStatus"),
        )
        _LOG.info(
            "Created consent %s for %d account(s) valid until %s",
            consent.id,
            len(scoped),
            consent.valid_until.isoformat(),
        )
        return consent
