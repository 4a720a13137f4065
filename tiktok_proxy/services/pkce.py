"""PKCE verifier and challenge generation in TikTok's hex-digest flavour."""

from __future__ import annotations

import hashlib
import secrets
import string
from dataclasses import dataclass

VERIFIER_ALPHABET = string.ascii_letters + string.digits + "-._~"
MIN_VERIFIER_LENGTH = 43
MAX_VERIFIER_LENGTH = 128
DEFAULT_VERIFIER_LENGTH = 64
CHALLENGE_METHOD = "S256"


@dataclass(frozen=True)
class PKCEPair:
    verifier: str
    challenge: str


def generate_code_verifier(length: int = DEFAULT_VERIFIER_LENGTH) -> str:
    """Return a random verifier drawn from the unreserved URI characters."""
    if not MIN_VERIFIER_LENGTH <= length <= MAX_VERIFIER_LENGTH:
        raise ValueError(
            f"PKCE verifier length must be between {MIN_VERIFIER_LENGTH} "
            f"and {MAX_VERIFIER_LENGTH}, got {length}."
        )
    return "".join(secrets.choice(VERIFIER_ALPHABET) for _ in range(length))


def generate_code_challenge(verifier: str) -> str:
    # TikTok expects the lowercase hex digest, not base64url.
    return hashlib.sha256(verifier.encode("utf-8")).hexdigest()


def generate_pkce(length: int = DEFAULT_VERIFIER_LENGTH) -> PKCEPair:
    verifier = generate_code_verifier(length)
    return PKCEPair(verifier=verifier, challenge=generate_code_challenge(verifier))


__all__ = [
    "CHALLENGE_METHOD",
    "PKCEPair",
    "VERIFIER_ALPHABET",
    "generate_code_challenge",
    "generate_code_verifier",
    "generate_pkce",
]
