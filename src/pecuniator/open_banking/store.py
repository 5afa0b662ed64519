"""Concurrency-safe, in-memory session storage keyed by OAuth ``state``.

This module introduces a *narrow* storage interface (:class:`SessionStore`)
and a lock-guarded dictionary implementation (:class:`InMemorySessionStore`).
The design follows these goals:

* **Isolation** – every flow's consent, verifier and tokens live inside its
  own :class:`~pecuniator.open_banking.models.Session`; nothing is kept in
  module-level variables.
* **CSRF gate** – :meth:`SessionStore.resolve` is the only way from a
  callback ``state`` to a session and never falls back to another session.
* **Concurrency** – all operations hold one lock; records are immutable and
  replaced on transition, so readers never see a half-updated session.
* **Monotonic state machine** – ``NEW → AUTHORIZED``, never backwards.

Sessions do not survive a process restart.
"""

from __future__ import annotations

import dataclasses
import logging
import threading
import uuid
from typing import Callable, Protocol, runtime_checkable

from pecuniator.open_banking.clock import Clock, default_clock
from pecuniator.open_banking.errors import InvalidTransition, SessionNotFound
from pecuniator.open_banking.models import (
    Consent,
    PKCEPair,
    Session,
    SessionStatus,
    Tokens,
)

_LOG = logging.getLogger("pecuniator.open_banking.store")

# Retries before giving up on finding an unused state id.
_MAX_STATE_ATTEMPTS = 8


def new_state_id() -> str:
    """Unguessable state identifier (UUID4, hex)."""
    return uuid.uuid4().hex


# --------------------------------------------------------------------------- #
# public interface                                                            #
# --------------------------------------------------------------------------- #


@runtime_checkable
class SessionStore(Protocol):
    """Minimal storage contract for authorization sessions."""

    def create(self, consent: Consent, pkce: PKCEPair) -> str: ...
    def resolve(self, state_id: str) -> Session: ...
    def mark_authorized(self, state_id: str, tokens: Tokens) -> Session: ...

    # ----- code-exchange claim --------------------------------------------- #
    def begin_exchange(self, state_id: str) -> Session: ...
    def end_exchange(self, state_id: str) -> None: ...

    # ----- maintenance ----------------------------------------------------- #
    def discard(self, state_id: str) -> None: ...
    def purge_older_than(
        self, max_age_seconds: float, *, clock: Clock | None = None
    ) -> int: ...


# --------------------------------------------------------------------------- #
# In-memory implementation                                                    #
# --------------------------------------------------------------------------- #


class InMemorySessionStore(SessionStore):
    """Dictionary-backed :class:`SessionStore` guarded by a single lock."""

    def __init__(
        self,
        *,
        state_factory: Callable[[], str] = new_state_id,
        clock: Clock = default_clock,
    ) -> None:
        self._sessions: dict[str, Session] = {}
        self._exchanging: set[str] = set()
        self._lock = threading.Lock()
        self._state_factory = state_factory
        self._clock = clock

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def __contains__(self, state_id: object) -> bool:
        with self._lock:
            return state_id in self._sessions

    # ---------------- sessions ------------------------------------------- #
    def create(self, consent: Consent, pkce: PKCEPair) -> str:
        """Register a ``NEW`` session and return its fresh state identifier."""
        with self._lock:
            for _ in range(_MAX_STATE_ATTEMPTS):
                state_id = self._state_factory()
                if state_id and state_id not in self._sessions:
                    break
                _LOG.warning("State identifier collision detected; regenerating")
            else:
                raise InvalidTransition("could not allocate a unique state identifier")
            self._sessions[state_id] = Session(
                state_id=state_id,
                consent=consent,
                pkce=pkce,
                created_at=int(self._clock()),
            )
        _LOG.debug("Created session state=%s**** consent=%s", state_id[:6], consent.id)
        return state_id

    def resolve(self, state_id: str) -> Session:
        """Return the session registered under *state_id*.

        Raises
        ------
        SessionNotFound
            If the state is empty or was never issued by :meth:`create`.
        """
        with self._lock:
            session = self._sessions.get(state_id) if state_id else None
        if session is None:
            raise SessionNotFound(state_id or "")
        return session

    def mark_authorized(self, state_id: str, tokens: Tokens) -> Session:
        """Transition ``NEW → AUTHORIZED`` storing *tokens*."""
        with self._lock:
            current = self._sessions.get(state_id)
            if current is None:
                raise SessionNotFound(state_id)
            if current.status is not SessionStatus.NEW:
                raise InvalidTransition(
                    f"session is {current.status.value}, expected {SessionStatus.NEW.value}"
                )
            updated = dataclasses.replace(
                current, tokens=tokens, status=SessionStatus.AUTHORIZED
            )
            self._sessions[state_id] = updated
        _LOG.debug("Session state=%s**** authorized", state_id[:6])
        return updated

    # ---------------- code-exchange claim -------------------------------- #
    def begin_exchange(self, state_id: str) -> Session:
        """Claim the single in-flight code exchange allowed for a ``NEW`` session."""
        with self._lock:
            current = self._sessions.get(state_id) if state_id else None
            if current is None:
                raise SessionNotFound(state_id or "")
            if current.status is not SessionStatus.NEW:
                raise InvalidTransition("session is already authorized")
            if state_id in self._exchanging:
                raise InvalidTransition("a code exchange is already in progress")
            self._exchanging.add(state_id)
        return current

    def end_exchange(self, state_id: str) -> None:
        with self._lock:
            self._exchanging.discard(state_id)

    # ---------------- maintenance ---------------------------------------- #
    def discard(self, state_id: str) -> None:
        with self._lock:
            self._sessions.pop(state_id, None)
            self._exchanging.discard(state_id)

    def purge_older_than(
        self, max_age_seconds: float, *, clock: Clock | None = None
    ) -> int:
        """Drop sessions created more than *max_age_seconds* ago."""
        now = (clock or self._clock)()
        with self._lock:
            stale = [
                sid
                for sid, session in self._sessions.items()
                if sid not in self._exchanging
                and (now - session.created_at) > max_age_seconds
            ]
            for sid in stale:
                del self._sessions[sid]
        if stale:
            _LOG.info("Purged %d stale session(s)", len(stale))
        return len(stale)
