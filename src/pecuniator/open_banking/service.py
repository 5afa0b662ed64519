"""OpenBankingService – per-session orchestration of the AIS flow.

Handlers in ``pecuniator.servers.routes`` call the thin façade methods below.
Every piece of per-flow data (consent, PKCE pair, tokens) lives in the
:class:`~pecuniator.open_banking.models.Session` owned by the store; the
service itself only holds collaborators and the discovered endpoints.

Failures are raised as :mod:`pecuniator.open_banking.errors` types to the
caller of the specific operation and never terminate the process.
"""

from __future__ import annotations

import logging
from typing import Iterable, Mapping

from pecuniator.open_banking.clock import Clock, default_clock
from pecuniator.open_banking.consent import ConsentClient
from pecuniator.open_banking.errors import Unauthorized
from pecuniator.open_banking.gateway import APIGateway
from pecuniator.open_banking.log_utils import get_flow_logger
from pecuniator.open_banking.models import Session
from pecuniator.open_banking.oauth import OAuthClient
from pecuniator.open_banking.pkce import PKCEGenerator
from pecuniator.open_banking.store import InMemorySessionStore, SessionStore

_LOGGER_NAME = "pecuniator.open_banking.service"
_LOG = logging.getLogger(_LOGGER_NAME)


class OpenBankingService:
    """Application service driving consent → authorize → token → data."""

    def __init__(
        self,
        *,
        consent_client: ConsentClient,
        oauth_client: OAuthClient,
        gateway: APIGateway,
        store: SessionStore | None = None,
        pkce: PKCEGenerator | None = None,
        default_accounts: Iterable[str] = (),
        clock: Clock = default_clock,
    ) -> None:
        self.consent_client = consent_client
        self.oauth_client = oauth_client
        self.gateway = gateway
        self.store = store if store is not None else InMemorySessionStore(clock=clock)
        self.pkce = pkce if pkce is not None else PKCEGenerator()
        self.default_accounts = tuple(default_accounts)
        self._clock = clock

    # ------------------------------------------------------------------ #
    # Flow                                                               #
    # ------------------------------------------------------------------ #
    def start_session(
        self, accounts: Iterable[str] | None = None, *, correlation_id: str | None = None
    ) -> tuple[str, str]:
        """Create consent, PKCE pair and session; return ``(state_id, authorize_url)``."""
        scope = tuple(accounts) if accounts is not None else self.default_accounts
        consent = self.consent_client.create_consent(scope)
        pair = self.pkce.generate()
        state_id = self.store.create(consent, pair)
        url = self.oauth_client.build_authorization_url(
            consent.id, state_id, pair.challenge
        )
        get_flow_logger(
            base_logger_name=_LOGGER_NAME,
            state_id=state_id,
            consent_id=consent.id,
            correlation_id=correlation_id,
        ).info("Started authorization session")
        return state_id, url

    def complete_authorization(
        self, state_id: str, code: str, *, correlation_id: str | None = None
    ) -> Session:
        """Resolve the callback *state* and exchange *code* with the session's verifier.

        The session stays ``NEW`` when the exchange fails; the error is raised.
        """
        session = self.store.begin_exchange(state_id)
        log = get_flow_logger(
            base_logger_name=_LOGGER_NAME,
            state_id=state_id,
            consent_id=session.consent.id,
            correlation_id=correlation_id,
        )
        try:
            tokens = self.oauth_client.exchange_code(code, session.pkce.verifier)
            authorized = self.store.mark_authorized(state_id, tokens)
        except Exception as exc:
            log.warning("Authorization failed: %s", exc.__class__.__name__)
            raise
        finally:
            self.store.end_exchange(state_id)
        log.info("Session authorized (token expires in %ss)", tokens.ttl)
        return authorized

    def session(self, state_id: str) -> Session:
        return self.store.resolve(state_id)

    # ------------------------------------------------------------------ #
    # Account data                                                       #
    # ------------------------------------------------------------------ #
    def _authorized(self, state_id: str) -> Session:
        session = self.store.resolve(state_id)
        if not session.is_authorized or session.tokens is None:
            raise Unauthorized("session has not completed authorization")
        if session.tokens.is_expired(clock=self._clock):
            raise Unauthorized("access token expired; start a new session")
        return session

    def fetch(
        self,
        state_id: str,
        resource_path: str,
        query_params: Mapping[str, str] | None = None,
    ) -> bytes:
        session = self._authorized(state_id)
        return self.gateway.get(
            resource_path, session.consent.id, session.tokens, query_params
        )

    def accounts(self, state_id: str) -> bytes:
        session = self._authorized(state_id)
        return self.gateway.list_accounts(session.consent.id, session.tokens)

    def balances(self, state_id: str, resource_id: str) -> bytes:
        session = self._authorized(state_id)
        return self.gateway.get_balances(resource_id, session.consent.id, session.tokens)

    def transactions(
        self,
        state_id: str,
        resource_id: str,
        *,
        date_from: str | None = None,
        booking_status: str | None = None,
    ) -> bytes:
        session = self._authorized(state_id)
        return self.gateway.get_transactions(
            resource_id,
            session.consent.id,
            session.tokens,
            date_from=date_from,
            booking_status=booking_status,
        )
