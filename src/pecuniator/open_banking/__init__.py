"""Open Banking (PSD2/XS2A) AIS core package.

This namespace hosts the **HTTP-framework-agnostic** building blocks of the
consent + OAuth 2.0 authorization-code (PKCE) flow.

Sub-modules
-----------
clock
    Test-friendly time abstraction.
pkce
    Proof-Key for Code Exchange helpers.
models
    Immutable dataclasses for endpoints, consents, tokens and sessions.
errors
    Exception taxonomy used by the core operations.
transport
    Mutual-TLS HTTP transport (``requests``).
consent
    Consent creation.
oauth
    Endpoint discovery, authorization URL, code exchange.
store
    Lock-guarded session store keyed by ``state``.
gateway
    Token-authenticated account-data reads.
service
    Orchestration façade used by the HTTP layer.
log_utils
    Structured logging helpers (thin wrapper around :pymod:`logging`).

All public objects are re-exported here for convenience.
"""

from __future__ import annotations

from .clock import Clock, default_clock  # noqa: F401
from .pkce import (  # noqa: F401
    PKCEGenerator,
    code_challenge_s256,
    generate_code_verifier,
    generate_pkce_pair,
)
from .models import (  # noqa: F401
    Consent,
    Endpoints,
    PKCEPair,
    Session,
    SessionStatus,
    Tokens,
)
from .errors import (  # noqa: F401
    ConsentRejected,
    DecodeError,
    InvalidTransition,
    OpenBankingError,
    RemoteAPIError,
    SessionNotFound,
    TokenExchangeFailed,
    TransportError,
    Unauthorized,
)
from .transport import HttpTransport, SecureTransport  # noqa: F401
from .consent import ConsentClient  # noqa: F401
from .oauth import OAuthClient  # noqa: F401
from .store import InMemorySessionStore, SessionStore  # noqa: F401
from .gateway import APIGateway  # noqa: F401
from .service import OpenBankingService  # noqa: F401
from .log_utils import get_flow_logger  # noqa: F401

__all__ = [
    # clock
    "Clock",
    "default_clock",
    # pkce
    "PKCEGenerator",
    "code_challenge_s256",
    "generate_code_verifier",
    "generate_pkce_pair",
    # models
    "Consent",
    "Endpoints",
    "PKCEPair",
    "Session",
    "SessionStatus",
    "Tokens",
    # errors
    "ConsentRejected",
    "DecodeError",
    "InvalidTransition",
    "OpenBankingError",
    "RemoteAPIError",
    "SessionNotFound",
    "TokenExchangeFailed",
    "TransportError",
    "Unauthorized",
    # clients
    "HttpTransport",
    "SecureTransport",
    "ConsentClient",
    "OAuthClient",
    "APIGateway",
    # sessions
    "InMemorySessionStore",
    "SessionStore",
    "OpenBankingService",
    # logging helpers
    "get_flow_logger",
]
