"""Structured logging helpers for Open Banking flow components.

This module purposefully restricts **which** contextual attributes are attached
to log records in order to avoid accidentally leaking secrets.  All helpers
ONLY inject the following *non-sensitive* fields:

- ``state_id``       – The session state identifier (first 6 chars kept)
- ``consent_id``     – Bank consent identifier
- ``correlation_id`` – Per-request id set by the HTTP middleware

Tokens, code verifiers and authorization codes are never accepted.

Usage
-----
>>> from pecuniator.open_banking.log_utils import get_flow_logger
>>> log = get_flow_logger(
...     base_logger_name="pecuniator.open_banking.service",
...     state_id="0f3c1b9e2d4a4e7fa1b2c3d4e5f60718",
...     consent_id="c1",
... )
>>> log.info("Starting authorization flow")
INFO pecuniator.open_banking.service state_id=0f3c1b consent_id=c1 ...
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, MutableMapping


class _FlowLoggerAdapter(logging.LoggerAdapter):
    """Inject whitelisted flow context into log records."""

    extra_keys = ("state_id", "consent_id", "correlation_id")

    def __init__(self, logger: logging.Logger, extra: Mapping[str, Any] | None = None):
        extra_clean: MutableMapping[str, Any] = {}
        for k in self.extra_keys:
            if not extra or extra.get(k) is None:
                continue
            if k == "state_id":
                # the full state is an anti-CSRF token
                extra_clean[k] = str(extra[k])[:6]
            else:
                extra_clean[k] = extra[k]
        super().__init__(logger, extra_clean)

    def process(self, msg: str, kwargs: MutableMapping[str, Any]):
        if "extra" not in kwargs or kwargs["extra"] is None:
            kwargs["extra"] = {}
        # merge but do not overwrite call-site provided extras
        for k, v in self.extra.items():
            kwargs["extra"].setdefault(k, v)
        return msg, kwargs


def get_flow_logger(
    *,
    base_logger_name: str = "pecuniator.open_banking",
    state_id: str | None = None,
    consent_id: str | None = None,
    correlation_id: str | None = None,
) -> logging.LoggerAdapter:
    """Return a LoggerAdapter pre-filled with flow context."""
    logger = logging.getLogger(base_logger_name)
    return _FlowLoggerAdapter(
        logger,
        {
            "state_id": state_id,
            "consent_id": consent_id,
            "correlation_id": correlation_id,
        },
    )
