"""Encrypted single-record file store for the TikTok credential set."""

from __future__ import annotations

import logging
import os
import tempfile
import time
from pathlib import Path
from typing import Callable, Optional

from pydantic import ValidationError

from tiktok_proxy.core.errors import StorageCorruptError
from tiktok_proxy.models.oauth import CredentialRecord
from tiktok_proxy.services.token_cipher import TokenCipherService

logger = logging.getLogger(__name__)


class EncryptedCredentialStore:
    """Persist exactly one :class:`CredentialRecord` encrypted on local disk.

    Writes go to a temporary sibling file that is renamed over the target, so
    an interrupted save never corrupts the previously stored record. Any read
    problem collapses to "no record" for the caller; corrupt content is logged
    separately from a missing file.
    """

    def __init__(
        self,
        path: str | Path,
        cipher: TokenCipherService,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._path = Path(path)
        self._cipher = cipher
        self._clock = clock

    @property
    def path(self) -> Path:
        return self._path

    def save(self, record: CredentialRecord) -> bool:
        """Encrypt and atomically replace the stored record."""
        payload = self._cipher.encrypt(record.model_dump_json())
        tmp_name: Optional[str] = None
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self._path.parent, prefix=f".{self._path.name}.", suffix=".tmp"
            )
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(payload)
                handle.flush()
                os.fsync(handle.fileno())
            os.chmod(tmp_name, 0o600)
            os.replace(tmp_name, self._path)
        except OSError as exc:
            logger.error("Failed to save credentials to %s: %s", self._path, exc)
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except FileNotFoundError:
                    pass
                except OSError as cleanup_exc:
                    logger.warning(
                        "Could not remove temporary credential file %s: %s",
                        tmp_name,
                        cleanup_exc,
                    )
            return False
        logger.info("Credentials saved securely to %s", self._path)
        return True

    def load(self) -> Optional[CredentialRecord]:
        """Return the stored record, or ``None`` when absent or unreadable."""
        try:
            payload = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.info("No stored credentials found at %s", self._path)
            return None
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("StorageCorrupt: cannot read %s: %s", self._path, exc)
            return None

        try:
            plaintext = self._cipher.decrypt(payload)
            record = CredentialRecord.model_validate_json(plaintext)
        except StorageCorruptError as exc:
            logger.warning("StorageCorrupt: %s (%s)", exc, self._path)
            return None
        except ValidationError as exc:
            logger.warning(
                "StorageCorrupt: decrypted credentials failed validation (%s): %s",
                self._path,
                exc.errors(include_input=False),
            )
            return None
        return record

    def clear(self) -> bool:
        """Delete the stored record; succeeds when nothing is stored."""
        try:
            self._path.unlink()
        except FileNotFoundError:
            return True
        except OSError as exc:
            logger.error("Failed to clear credentials at %s: %s", self._path, exc)
            return False
        logger.info("Stored credentials cleared")
        return True

    def has_valid_credentials(self, buffer_seconds: int = 300) -> bool:
        """True when a record exists whose access token outlives ``buffer_seconds``."""
        record = self.load()
        if record is None:
            return False
        now_ms = int(self._clock() * 1000)
        return record.is_fresh(now_ms, buffer_seconds * 1000)


__all__ = ["EncryptedCredentialStore"]
