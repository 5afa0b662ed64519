"""
Unit tests for InMemorySessionStore.

Coverage:
* create/resolve round trip and NotFound for unknown states
* NEW → AUTHORIZED transition, no backward or repeated transitions
* Collision handling on the state identifier space
* 100 concurrent creates yield 100 distinct, resolvable sessions
* Single in-flight code exchange per session
* Caller-driven age purge with fake clock
"""

from __future__ import annotations

import itertools
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import date
from typing import Callable

import pytest

from pecuniator.open_banking.errors import (
    InvalidTransition,
    SessionNotFound,
    Unauthorized,
)
from pecuniator.open_banking.models import Consent, SessionStatus, Tokens
from pecuniator.open_banking.pkce import generate_pkce_pair
from pecuniator.open_banking.store import InMemorySessionStore


# --------------------------------------------------------------------------- #
# helpers                                                                     #
# --------------------------------------------------------------------------- #
def fake_clock_factory(now: float) -> Callable[[], float]:
    """Return a callable clock that always returns *now*."""
    return lambda now=now: now


def _consent(consent_id: str = "c1") -> Consent:
    return Consent(
        id=consent_id,
        valid_until=date(2030, 1, 1),
        frequency_per_day=4,
        recurring=True,
        scoped_accounts=("PT123",),
    )


def _tokens(access: str = "tok") -> Tokens:
    return Tokens(access_token=access, token_type="Bearer", expires_at=4600, obtained_at=1000)


# --------------------------------------------------------------------------- #
# create / resolve                                                            #
# --------------------------------------------------------------------------- #
def test_create_then_resolve_round_trip() -> None:
    store = InMemorySessionStore()
    consent = _consent()
    pair = generate_pkce_pair()

    state_id = store.create(consent, pair)
    session = store.resolve(state_id)

    assert session.state_id == state_id
    assert session.consent == consent
    assert session.pkce == pair
    assert session.status is SessionStatus.NEW
    assert session.tokens is None
    assert not session.is_authorized


@pytest.mark.parametrize("state_id", ["", "unknown", "0" * 32])
def test_resolve_unknown_state_is_not_found(state_id: str) -> None:
    store = InMemorySessionStore()
    store.create(_consent(), generate_pkce_pair())
    with pytest.raises(SessionNotFound):
        store.resolve(state_id)


def test_not_found_is_unauthorized() -> None:
    store = InMemorySessionStore()
    with pytest.raises(Unauthorized):
        store.resolve("nope")


def test_state_ids_are_unguessable_hex() -> None:
    store = InMemorySessionStore()
    state_id = store.create(_consent(), generate_pkce_pair())
    assert len(state_id) == 32
    int(state_id, 16)


# --------------------------------------------------------------------------- #
# transitions                                                                 #
# --------------------------------------------------------------------------- #
def test_mark_authorized_transitions_once() -> None:
    store = InMemorySessionStore()
    state_id = store.create(_consent(), generate_pkce_pair())

    updated = store.mark_authorized(state_id, _tokens())
    assert updated.status is SessionStatus.AUTHORIZED
    assert store.resolve(state_id).tokens == _tokens()

    with pytest.raises(InvalidTransition):
        store.mark_authorized(state_id, _tokens("other"))
    # Existing tokens untouched
    assert store.resolve(state_id).tokens.access_token == "tok"


def test_mark_authorized_unknown_state() -> None:
    store = InMemorySessionStore()
    state_id = store.create(_consent(), generate_pkce_pair())
    with pytest.raises(SessionNotFound):
        store.mark_authorized("missing", _tokens())
    assert store.resolve(state_id).status is SessionStatus.NEW
    assert len(store) == 1


def test_sessions_are_isolated() -> None:
    store = InMemorySessionStore()
    first = store.create(_consent("c1"), generate_pkce_pair())
    second = store.create(_consent("c2"), generate_pkce_pair())

    store.mark_authorized(first, _tokens("tok-1"))

    assert store.resolve(second).tokens is None
    assert store.resolve(second).consent.id == "c2"


# --------------------------------------------------------------------------- #
# collisions                                                                  #
# --------------------------------------------------------------------------- #
def test_state_collision_regenerates() -> None:
    ids = iter(["dup", "dup", "fresh"])
    store = InMemorySessionStore(state_factory=lambda: next(ids))

    first = store.create(_consent("c1"), generate_pkce_pair())
    second = store.create(_consent("c2"), generate_pkce_pair())

    assert (first, second) == ("dup", "fresh")
    assert store.resolve("dup").consent.id == "c1"


def test_state_space_exhausted_raises() -> None:
    store = InMemorySessionStore(state_factory=lambda: "same")
    store.create(_consent(), generate_pkce_pair())
    with pytest.raises(InvalidTransition):
        store.create(_consent("c2"), generate_pkce_pair())
    assert store.resolve("same").consent.id == "c1"


# --------------------------------------------------------------------------- #
# concurrency                                                                 #
# --------------------------------------------------------------------------- #
def test_concurrent_create_produces_distinct_states() -> None:
    store = InMemorySessionStore()
    barrier = threading.Barrier(20)

    def worker(i: int) -> str:
        if i < 20:
            barrier.wait()
        return store.create(_consent(f"c{i}"), generate_pkce_pair())

    with ThreadPoolExecutor(max_workers=20) as pool:
        state_ids = list(pool.map(worker, range(100)))

    assert len(set(state_ids)) == 100
    assert len(store) == 100
    for i, state_id in enumerate(state_ids):
        assert store.resolve(state_id).consent.id == f"c{i}"


def test_concurrent_mark_authorized_single_winner() -> None:
    store = InMemorySessionStore()
    state_id = store.create(_consent(), generate_pkce_pair())
    outcomes: list[str] = []
    lock = threading.Lock()

    def worker(n: int) -> None:
        try:
            store.mark_authorized(state_id, _tokens(f"tok-{n}"))
            result = "ok"
        except InvalidTransition:
            result = "rejected"
        with lock:
            outcomes.append(result)

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(16)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert outcomes.count("ok") == 1
    assert outcomes.count("rejected") == 15


# --------------------------------------------------------------------------- #
# exchange claim                                                              #
# --------------------------------------------------------------------------- #
def test_begin_exchange_is_exclusive() -> None:
    store = InMemorySessionStore()
    state_id = store.create(_consent(), generate_pkce_pair())

    store.begin_exchange(state_id)
    with pytest.raises(InvalidTransition):
        store.begin_exchange(state_id)

    store.end_exchange(state_id)
    assert store.begin_exchange(state_id).state_id == state_id


def test_begin_exchange_rejects_authorized_session() -> None:
    store = InMemorySessionStore()
    state_id = store.create(_consent(), generate_pkce_pair())
    store.mark_authorized(state_id, _tokens())
    with pytest.raises(InvalidTransition):
        store.begin_exchange(state_id)


def test_begin_exchange_unknown_state() -> None:
    store = InMemorySessionStore()
    with pytest.raises(SessionNotFound):
        store.begin_exchange("missing")


# --------------------------------------------------------------------------- #
# maintenance                                                                 #
# --------------------------------------------------------------------------- #
def test_purge_older_than_with_fake_clock() -> None:
    ticks = itertools.count(1000, 100)
    store = InMemorySessionStore(clock=lambda: float(next(ticks)))
    old = store.create(_consent("old"), generate_pkce_pair())  # created_at=1000
    new = store.create(_consent("new"), generate_pkce_pair())  # created_at=1100

    removed = store.purge_older_than(150, clock=fake_clock_factory(1200))

    assert removed == 1
    assert old not in store
    assert store.resolve(new).consent.id == "new"


def test_discard_removes_session() -> None:
    store = InMemorySessionStore()
    state_id = store.create(_consent(), generate_pkce_pair())
    store.discard(state_id)
    with pytest.raises(SessionNotFound):
        store.resolve(state_id)
