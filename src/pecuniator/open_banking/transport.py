"""Mutual-TLS HTTP transport towards the bank.

Certificate handling is delegated to :mod:`requests`: the client certificate,
its key and the CA bundle are passed as file paths and loaded by the TLS
stack.  A configured CA bundle *replaces* the system trust store for bank
connections; without one the bundle shipped with ``requests`` is used.

The session is shared by every user flow, so it never stores cookies: a
``Set-Cookie`` from one customer's call must not ride along on another's.

Every network-level failure (TLS handshake, DNS, connect, read timeout, and
unreadable certificate files) surfaces as :class:`~pecuniator.open_banking.errors.TransportError`
so that callers never see raw ``requests`` exceptions.
"""

from __future__ import annotations

import logging
from http.cookiejar import DefaultCookiePolicy
from typing import Any, Mapping, Protocol, runtime_checkable

import requests

from pecuniator.open_banking.errors import TransportError

_LOG = logging.getLogger("pecuniator.open_banking.transport")

DEFAULT_TIMEOUT: float = 30.0


def is_success(resp: requests.Response) -> bool:
    """Return *True* only for 2xx answers (``Response.ok`` also accepts 3xx)."""
    return 200 <= resp.status_code < 300


@runtime_checkable
class HttpTransport(Protocol):
    """Minimal capability consumed by the core clients."""

    def request(
        self,
        method: str,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
        data: Any = None,
        params: Mapping[str, str] | None = None,
        timeout: float | None = None,
    ) -> requests.Response: ...


class SecureTransport(HttpTransport):
    """``requests.Session`` configured for mutual TLS."""

    def __init__(
        self,
        cert_file: str,
        key_file: str,
        ca_file: str | None = None,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        session: requests.Session | None = None,
    ) -> None:
        self.timeout = timeout
        self._session = session or requests.Session()
        self._session.cert = (cert_file, key_file)
        # True selects the default bundle; a path replaces it
        self._session.verify = ca_file if ca_file else True
        self._session.cookies.set_policy(DefaultCookiePolicy(allowed_domains=[]))

    def request(
        self,
        method: str,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
        data: Any = None,
        params: Mapping[str, str] | None = None,
        timeout: float | None = None,
    ) -> requests.Response:
        try:
            return self._session.request(
                method,
                url,
                headers=dict(headers or {}),
                data=data,
                params=params,
                timeout=timeout if timeout is not None else self.timeout,
            )
        except (requests.RequestException, OSError) as exc:
            _LOG.warning("%s %s failed: %s", method, url, exc.__class__.__name__)
            raise TransportError(f"{method} {url} failed: {exc}") from exc

    def close(self) -> None:
        self._session.close()

    def __enter__(self) -> "SecureTransport":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
