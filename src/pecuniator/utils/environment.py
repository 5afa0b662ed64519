"""Bank connection settings read from the process environment.

Variables
---------
PT_HOST, PT_PORT, PT_PATH, PT_VERS
    Assemble the XS2A API base URL ``https://HOST:PORT/PATH/VERS``.
PT_WELLKNOWN
    OAuth metadata (discovery) URL.
PT_IBAN
    Comma-separated account IBANs covered by new consents.
PT_TPPREDIRECTURI
    Redirect URI registered with the bank (callback route).
PT_CLIENT_ID
    OAuth client identifier (default ``pecuniatordotgo``).
PT_CERT_FILE, PT_KEY_FILE, PT_CA_FILE
    PEM files for mutual TLS.
PT_TIMEOUT
    Per-request network timeout in seconds (default 30).
PT_CONSENT_VALID_DAYS, PT_CONSENT_FREQUENCY, PT_CONSENT_RECURRING
    Consent defaults (90 days, 4 accesses/day, recurring).
PT_LOG_LEVEL
    Logging level name (default ``INFO``).
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Final, Mapping, Tuple

logger = logging.getLogger("pecuniator.utils.environment")

_TRUTHY: Final[Tuple[str, ...]] = ("true", "1", "yes", "y", "on")
_FALSY: Final[Tuple[str, ...]] = ("false", "0", "no", "n", "off")

_REQUIRED: Final[Tuple[str, ...]] = (
    "PT_HOST",
    "PT_PATH",
    "PT_VERS",
    "PT_WELLKNOWN",
    "PT_TPPREDIRECTURI",
    "PT_CERT_FILE",
    "PT_KEY_FILE",
)


def _truthy(value: str | None, default: bool = False) -> bool:
    raw = (value or "").strip().lower()
    if raw in _TRUTHY:
        return True
    if raw in _FALSY:
        return False
    return default


def _int(env: Mapping[str, str], key: str, default: int) -> int:
    raw = (env.get(key) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{key} must be an integer, got {raw!r}") from None


def _float(env: Mapping[str, str], key: str, default: float) -> float:
    raw = (env.get(key) or "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{key} must be a number, got {raw!r}") from None


@dataclass(frozen=True)
class BankConfig:
    """Immutable connection and consent settings for one bank."""

    host: str
    api_path: str
    api_version: str
    well_known_url: str
    redirect_uri: str
    cert_file: str
    key_file: str
    port: str = "443"
    ca_file: str | None = None
    client_id: str = "pecuniatordotgo"
    accounts: tuple[str, ...] = ()
    timeout: float = 30.0
    consent_valid_days: int = 90
    consent_frequency_per_day: int = 4
    consent_recurring: bool = True
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> "BankConfig":
        """Build a config from *env* (defaults to ``os.environ``).

        Raises
        ------
        ValueError
            If required variables are missing or numbers are malformed.
        """
        env = os.environ if env is None else env
        missing = [key for key in _REQUIRED if not (env.get(key) or "").strip()]
        if missing:
            raise ValueError(
                f"Missing required environment variables: {', '.join(missing)}"
            )

        accounts = tuple(
            iban.strip() for iban in (env.get("PT_IBAN") or "").split(",") if iban.strip()
        )
        if not accounts:
            logger.warning("PT_IBAN is empty; consents need accounts per request.")

        return cls(
            host=env["PT_HOST"].strip(),
            port=(env.get("PT_PORT") or "443").strip(),
            api_path=env["PT_PATH"].strip(),
            api_version=env["PT_VERS"].strip(),
            well_known_url=env["PT_WELLKNOWN"].strip(),
            redirect_uri=env["PT_TPPREDIRECTURI"].strip(),
            cert_file=env["PT_CERT_FILE"].strip(),
            key_file=env["PT_KEY_FILE"].strip(),
            ca_file=(env.get("PT_CA_FILE") or "").strip() or None,
            client_id=(env.get("PT_CLIENT_ID") or "").strip() or "pecuniatordotgo",
            accounts=accounts,
            timeout=_float(env, "PT_TIMEOUT", 30.0),
            consent_valid_days=_int(env, "PT_CONSENT_VALID_DAYS", 90),
            consent_frequency_per_day=_int(env, "PT_CONSENT_FREQUENCY", 4),
            consent_recurring=_truthy(env.get("PT_CONSENT_RECURRING"), default=True),
            log_level=(env.get("PT_LOG_LEVEL") or "INFO").strip().upper(),
        )

    @property
    def api_base_url(self) -> str:
        path = "/".join(p.strip("/") for p in (self.api_path, self.api_version) if p.strip("/"))
        return f"https://{self.host}:{self.port}/{path}"

    def build_url(self, suffix: str) -> str:
        """Complete resource URL, e.g. ``build_url("/consents")``."""
        return f"{self.api_base_url}{suffix}"
