"""PKCE (:rfc:`7636`) verifier/challenge generation and state nonces.

The challenge is always the SHA-256 digest of the verifier's ASCII bytes,
URL-safe base64 encoded with the ``=`` padding stripped (method ``S256``).
"""

from __future__ import annotations

import base64
import hashlib
import secrets

VERIFIER_BYTES = 32
STATE_BYTES = 16


def _b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def generate_verifier() -> str:
    """Return a new code verifier: 32 random bytes, unpadded URL-safe base64.

    The result is 43 characters from the unreserved set ``[A-Za-z0-9_-]``.
    """
    return _b64url(secrets.token_bytes(VERIFIER_BYTES))


def generate_challenge(verifier: str) -> str:
    """Return the ``S256`` code challenge for *verifier*."""
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return _b64url(digest)


def generate_pkce_pair() -> tuple[str, str]:
    """Generate a PKCE code_verifier and code_challenge (S256).

    Returns:
        A tuple of ``(code_verifier, code_challenge)``.
    """
    verifier = generate_verifier()
    return verifier, generate_challenge(verifier)


def generate_state() -> str:
    """Return a random ``state`` nonce (32 hex characters)."""
    return secrets.token_hex(STATE_BYTES)
