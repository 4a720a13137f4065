"""Symmetric encryption utilities for protecting stored tokens."""

from __future__ import annotations

import json
import os
import re

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

from tiktok_proxy.core.errors import StorageCorruptError

KEY_LENGTH = 32
IV_LENGTH = 12
ENVELOPE_VERSION = 1
# Fixed so the same configured secret always derives the same key.
KDF_SALT = b"tiktok-proxy/token-store/v1"

_RAW_KEY_PATTERN = re.compile(r"^[0-9a-fA-F]{64}$")


def derive_key(secret: str) -> bytes:
    """Turn the configured secret into a 32-byte AES-256 key."""
    if _RAW_KEY_PATTERN.match(secret):
        return bytes.fromhex(secret)
    kdf = Scrypt(salt=KDF_SALT, length=KEY_LENGTH, n=2**14, r=8, p=1)
    return kdf.derive(secret.encode("utf-8"))


def generate_encryption_key() -> str:
    """Return a random key in the 64-hex-character form accepted by ``derive_key``."""
    return os.urandom(KEY_LENGTH).hex()


class TokenCipherService:
    """Encrypt and decrypt sensitive strings with AES-256-GCM.

    Ciphertexts are JSON envelopes carrying the per-message IV next to the
    ciphertext, so every call to :meth:`encrypt` uses a fresh random IV.
    """

    def __init__(self, *, secret: str) -> None:
        if not secret:
            raise ValueError("Token encryption secret must be provided.")
        self._aesgcm = AESGCM(derive_key(secret))

    def encrypt(self, plaintext: str) -> str:
        """Encrypt a plaintext string and return the serialized envelope."""
        iv = os.urandom(IV_LENGTH)
        encrypted = self._aesgcm.encrypt(iv, plaintext.encode("utf-8"), None)
        return json.dumps(
            {"v": ENVELOPE_VERSION, "iv": iv.hex(), "encrypted": encrypted.hex()}
        )

    def decrypt(self, ciphertext: str) -> str:
        """Decrypt an envelope produced by :meth:`encrypt`."""
        try:
            envelope = json.loads(ciphertext)
        except ValueError as exc:
            raise StorageCorruptError("Encrypted payload is not valid JSON.") from exc
        if not isinstance(envelope, dict) or envelope.get("v") != ENVELOPE_VERSION:
            raise StorageCorruptError("Unsupported encrypted payload format.")

        try:
            iv = bytes.fromhex(envelope["iv"])
            encrypted = bytes.fromhex(envelope["encrypted"])
        except (KeyError, TypeError, ValueError) as exc:
            raise StorageCorruptError("Encrypted payload is missing iv or data.") from exc
        if len(iv) != IV_LENGTH:
            raise StorageCorruptError("Encrypted payload carries an invalid iv.")

        try:
            plaintext = self._aesgcm.decrypt(iv, encrypted, None)
        except InvalidTag as exc:
            raise StorageCorruptError(
                "Failed to decrypt token; wrong key or tampered ciphertext."
            ) from exc
        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as exc:  # pragma: no cover - authenticated data
            raise StorageCorruptError("Decrypted token is not valid UTF-8.") from exc


__all__ = ["TokenCipherService", "derive_key", "generate_encryption_key"]
