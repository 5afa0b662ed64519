"""Typed, immutable records used by the Open Banking core."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import date
from typing import Final

from pecuniator.open_banking.clock import Clock, default_clock

S256: Final[str] = "S256"


class SessionStatus(str, enum.Enum):
    """Lifecycle of an authorization session (monotonic)."""

    NEW = "new"
    AUTHORIZED = "authorized"


@dataclass(frozen=True, slots=True)
class Endpoints:
    """Authorization and token endpoints published by the bank's metadata."""

    authorization_url: str
    token_url: str


@dataclass(frozen=True, slots=True)
class Consent:
    """AIS consent as returned by the bank."""

    id: str
    valid_until: date
    frequency_per_day: int
    recurring: bool
    scoped_accounts: tuple[str, ...]
    status: str | None = None


@dataclass(frozen=True, slots=True)
class PKCEPair:
    """Code verifier and the S256 challenge derived from it."""

    verifier: str = field(repr=False)
    challenge: str
    method: str = S256


@dataclass(frozen=True, slots=True)
class Tokens:
    """Snapshot of an OAuth access/refresh token pair."""

    access_token: str = field(repr=False)
    token_type: str
    expires_at: int
    obtained_at: int
    refresh_token: str | None = field(default=None, repr=False)

    @property
    def ttl(self) -> int:
        """Seconds between *obtained_at* and *expires_at*."""
        return self.expires_at - self.obtained_at

    @property
    def authorization_header(self) -> str:
        return f"{self.token_type} {self.access_token}"

    def is_expired(self, *, clock: Clock = default_clock) -> bool:
        """Return *True* once the access token passed its expiry."""
        return clock() >= self.expires_at


@dataclass(frozen=True, slots=True)
class Session:
    """One authorization flow, keyed by its anti-CSRF ``state_id``."""

    state_id: str
    consent: Consent
    pkce: PKCEPair
    tokens: Tokens | None = None
    status: SessionStatus = SessionStatus.NEW
    created_at: int = field(default_factory=lambda: int(default_clock()))

    @property
    def is_authorized(self) -> bool:
        return self.status is SessionStatus.AUTHORIZED

    def age(self, *, clock: Clock = default_clock) -> float:
        """Seconds elapsed since the session was created."""
        return clock() - self.created_at
