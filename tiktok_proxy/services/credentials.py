"""
Credential lifecycle management for the single TikTok account.

The manager owns the outstanding PKCE verifier, completes the authorization
exchange, and hands out access tokens, refreshing them shortly before expiry.
The encrypted store is the only source of truth for the credential record; it
is re-read on every call so a restarted process picks up where it left off.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Callable, Optional

from tiktok_proxy.core.errors import (
    MissingCodeError,
    MissingVerifierError,
    NotAuthorizedError,
    UpstreamMalformedError,
    UpstreamRejectedError,
)
from tiktok_proxy.models.oauth import CredentialRecord
from tiktok_proxy.services.pkce import DEFAULT_VERIFIER_LENGTH, generate_pkce

if TYPE_CHECKING:  # pragma: no cover - type hints only
    from tiktok_proxy.clients.tiktok_auth import (
        OAuthStateEncoder,
        TikTokOAuthClient,
        TokenGrant,
    )
    from tiktok_proxy.services.credential_store import EncryptedCredentialStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthorizationRequest:
    """Everything produced when a login flow starts."""

    verifier: str
    challenge: str
    state: str
    authorization_url: str


@dataclass(frozen=True)
class CredentialStatus:
    authorized: bool
    stale: bool
    expires_at: Optional[int]
    authorization_pending: bool


class CredentialManager:
    """Orchestrates authorization, refresh and valid-token retrieval."""

    DEFAULT_EXPIRY_MARGIN_SECONDS = 60

    def __init__(
        self,
        store: "EncryptedCredentialStore",
        oauth_client: "TikTokOAuthClient",
        state_encoder: "OAuthStateEncoder",
        *,
        verifier_length: int = DEFAULT_VERIFIER_LENGTH,
        expiry_margin_seconds: int = DEFAULT_EXPIRY_MARGIN_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._oauth = oauth_client
        self._state_encoder = state_encoder
        self._verifier_length = verifier_length
        self._margin_ms = expiry_margin_seconds * 1000
        self._clock = clock
        self._verifier: Optional[str] = None
        self._refresh_lock = asyncio.Lock()

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    @property
    def authorization_pending(self) -> bool:
        return self._verifier is not None

    def begin_authorization(self, length: Optional[int] = None) -> AuthorizationRequest:
        """Start a login flow, replacing any verifier still outstanding."""
        pkce = generate_pkce(length or self._verifier_length)
        if self._verifier is not None:
            logger.info("Discarding unconsumed PKCE verifier from an earlier login")
        self._verifier = pkce.verifier

        state = self._state_encoder.encode(
            {
                "nonce": uuid.uuid4().hex,
                "issued_at": datetime.fromtimestamp(self._clock(), timezone.utc).isoformat(),
            }
        )
        authorization_url = self._oauth.build_authorization_url(
            state=state, code_challenge=pkce.challenge
        )
        return AuthorizationRequest(
            verifier=pkce.verifier,
            challenge=pkce.challenge,
            state=state,
            authorization_url=authorization_url,
        )

    async def complete_authorization(self, code: Optional[str]) -> CredentialRecord:
        """Exchange ``code`` for a credential record and persist it.

        The outstanding verifier is single-use: it is cleared before the
        exchange, so a failed or repeated callback always requires a new login.
        """
        verifier, self._verifier = self._verifier, None

        if not code:
            logger.warning("Authorization callback rejected: missing code")
            raise MissingCodeError("Authorization code is missing.")
        if verifier is None:
            logger.warning("Authorization callback rejected: no PKCE verifier outstanding")
            raise MissingVerifierError("No code verifier found; restart the login flow.")

        try:
            grant = await self._oauth.exchange_authorization_code(code, verifier)
        except UpstreamRejectedError as exc:
            logger.error(
                "Token exchange rejected: %s (%s)", exc.error or exc, exc.error_description
            )
            raise
        except UpstreamMalformedError as exc:
            logger.error("Token exchange returned a malformed payload: %s", exc)
            raise

        record = self._build_record(grant, fallback_refresh_token=None)
        if not self._store.save(record):
            logger.error("Authorization succeeded but credentials could not be persisted")
        return record

    async def get_valid_access_token(self) -> str:
        """Return a usable access token, refreshing it first if it is stale."""
        record = self._load_record()
        if record.is_fresh(self._now_ms(), self._margin_ms):
            return record.access_token

        async with self._refresh_lock:
            # Another caller may have refreshed while we waited for the lock.
            record = self._load_record()
            if record.is_fresh(self._now_ms(), self._margin_ms):
                return record.access_token
            return await self._refresh(record)

    def clear_credentials(self) -> bool:
        return self._store.clear()

    def status(self) -> CredentialStatus:
        record = self._store.load()
        if record is None:
            return CredentialStatus(
                authorized=False,
                stale=False,
                expires_at=None,
                authorization_pending=self.authorization_pending,
            )
        return CredentialStatus(
            authorized=True,
            stale=not record.is_fresh(self._now_ms(), self._margin_ms),
            expires_at=record.expires_at,
            authorization_pending=self.authorization_pending,
        )

    def _load_record(self) -> CredentialRecord:
        record = self._store.load()
        if record is None:
            logger.warning("No credentials on file; authorization required")
            raise NotAuthorizedError(
                "No tokens available. Complete the OAuth flow first."
            )
        return record

    async def _refresh(self, record: CredentialRecord) -> str:
        logger.info("Refreshing TikTok access token")
        try:
            grant = await self._oauth.refresh_access_token(record.refresh_token)
        except UpstreamRejectedError as exc:
            logger.error(
                "Token refresh rejected: %s (%s)", exc.error or exc, exc.error_description
            )
            raise
        except UpstreamMalformedError as exc:
            logger.error("Token refresh returned a malformed payload: %s", exc)
            raise

        renewed = self._build_record(grant, fallback_refresh_token=record.refresh_token)
        if not self._store.save(renewed):
            logger.error("Refreshed credentials could not be persisted")
        return renewed.access_token

    def _build_record(
        self, grant: "TokenGrant", *, fallback_refresh_token: Optional[str]
    ) -> CredentialRecord:
        return CredentialRecord(
            access_token=grant.access_token,
            refresh_token=grant.refresh_token or fallback_refresh_token,
            expires_at=self._now_ms() + grant.expires_in * 1000,
        )


__all__ = ["AuthorizationRequest", "CredentialManager", "CredentialStatus"]
