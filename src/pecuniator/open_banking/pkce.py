"""PKCE (Proof Key for Code Exchange) helpers.

RFC 7636 defines PKCE to bind an authorization code to the client that
requested it.  The mechanism relies on a *code verifier* (random high-entropy
string) generated at the beginning of every flow and a *code challenge*
derived from that verifier that is sent to the authorization endpoint.

Only the S256 transformation is implemented; the challenge is always computed
from the verifier generated in the same call and never supplied by hand.

This module intentionally performs **no logging** of verifiers or challenges.
"""

from __future__ import annotations

import base64
import secrets
from hashlib import sha256
from typing import Final

from pecuniator.open_banking.models import PKCEPair

# 32 raw bytes encode to 43 characters, 96 bytes to 128 (RFC 7636 §4.1 bounds).
_MIN_BYTES: Final[int] = 32
_MAX_BYTES: Final[int] = 96


def _b64url(data: bytes) -> str:
    """Base64-URL encode *without* padding."""
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def generate_code_verifier(num_bytes: int = _MIN_BYTES) -> str:
    """Generate a high-entropy code verifier.

    Parameters
    ----------
    num_bytes:
        Number of random bytes to encode, between 32 and 96 (default 32),
        yielding a verifier of 43 to 128 characters.

    Returns
    -------
    str
        The generated code verifier.
    """
    if not _MIN_BYTES <= num_bytes <= _MAX_BYTES:
        raise ValueError("code verifier entropy must be 32-96 bytes")
    return _b64url(secrets.token_bytes(num_bytes))


def code_challenge_s256(verifier: str) -> str:
    """Compute the *S256* PKCE code challenge for a given verifier.

    Parameters
    ----------
    verifier:
        The code verifier string.

    Returns
    -------
    str
        Base64url-encoded SHA-256 hash without padding.
    """
    return _b64url(sha256(verifier.encode("ascii")).digest())


def generate_pkce_pair(num_bytes: int = _MIN_BYTES) -> PKCEPair:
    """Return a fresh verifier together with its derived challenge."""
    verifier = generate_code_verifier(num_bytes)
    return PKCEPair(verifier=verifier, challenge=code_challenge_s256(verifier))


class PKCEGenerator:
    """Injectable source of PKCE pairs (one per session)."""

    def __init__(self, num_bytes: int = _MIN_BYTES) -> None:
        if not _MIN_BYTES <= num_bytes <= _MAX_BYTES:
            raise ValueError("code verifier entropy must be 32-96 bytes")
        self.num_bytes = num_bytes

    def generate(self) -> PKCEPair:
        return generate_pkce_pair(self.num_bytes)
