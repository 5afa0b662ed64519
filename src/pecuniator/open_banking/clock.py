"""Clock abstraction for testable time handling in the Open Banking core.

This module defines a `Clock` protocol representing callables that return the
current UNIX timestamp as ``float``.  Consent validity dates, token expiry and
session age MUST be computed from an injected ``Clock`` instance rather than
calling ``time.time()`` or ``datetime.now()`` directly.

Example
-------
>>> from pecuniator.open_banking.clock import default_clock
>>> now = default_clock()
>>> isinstance(now, float)
True
"""

from __future__ import annotations

import time
from datetime import date, datetime, timezone
from typing import Protocol, runtime_checkable


@runtime_checkable
class Clock(Protocol):
    """Callable protocol returning *seconds* since the UNIX epoch."""

    def __call__(self) -> float: ...


def default_clock() -> float:
    """Default implementation that delegates to ``time.time()``.

    Returns
    -------
    float
        Seconds since the UNIX epoch.
    """
    return time.time()


def today(clock: Clock = default_clock) -> date:
    """Return the current UTC calendar date according to *clock*."""
    return datetime.fromtimestamp(clock(), tz=timezone.utc).date()
