"""
TikTok OAuth utilities.

These helpers build the consent URL, guard the callback with a signed state
token and perform the two token-endpoint grants used by the credential
lifecycle.
"""

from __future__ import annotations

import base64
import binascii
import hmac
import json
from dataclasses import dataclass
from hashlib import sha256
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import httpx

from tiktok_proxy.core.config import OAuthSettings, TikTokSettings
from tiktok_proxy.core.errors import UpstreamMalformedError, UpstreamRejectedError
from tiktok_proxy.services.pkce import CHALLENGE_METHOD


class InvalidStateError(ValueError):
    """Raised when an OAuth state token is malformed or carries a bad signature."""


class OAuthStateEncoder:
    """Encode and decode OAuth state values to guard against tampering."""

    _SIGNATURE_LENGTH = 32

    def __init__(self, secret_key: str) -> None:
        self._secret_key = secret_key.encode("utf-8")

    def encode(self, payload: Dict[str, Any]) -> str:
        serialized = json.dumps(payload, separators=(",", ":"), sort_keys=True)
        signature = hmac.new(self._secret_key, serialized.encode("utf-8"), sha256).digest()
        return base64.urlsafe_b64encode(signature + serialized.encode("utf-8")).decode("utf-8")

    def decode(self, token: str) -> Dict[str, Any]:
        try:
            decoded = base64.urlsafe_b64decode(token.encode("utf-8"))
        except (binascii.Error, ValueError) as exc:
            raise InvalidStateError("OAuth state is not valid base64.") from exc
        signature = decoded[: self._SIGNATURE_LENGTH]
        serialized = decoded[self._SIGNATURE_LENGTH :]
        expected_signature = hmac.new(self._secret_key, serialized, sha256).digest()
        if not hmac.compare_digest(signature, expected_signature):
            raise InvalidStateError("Invalid OAuth state signature.")
        try:
            payload = json.loads(serialized)
        except ValueError as exc:  # pragma: no cover - signed by us
            raise InvalidStateError("OAuth state payload is not JSON.") from exc
        if not isinstance(payload, dict):
            raise InvalidStateError("OAuth state payload must be an object.")
        return payload


@dataclass(frozen=True)
class TokenGrant:
    """Fields returned by a successful token-endpoint call."""

    access_token: str
    refresh_token: Optional[str]
    expires_in: int


class TikTokOAuthClient:
    """Build TikTok authorization URLs and call the v2 token endpoint."""

    def __init__(
        self,
        tiktok_settings: TikTokSettings,
        oauth_settings: OAuthSettings,
        *,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._tiktok = tiktok_settings
        self._oauth = oauth_settings
        self._timeout = timeout
        self._transport = transport

    @property
    def token_url(self) -> str:
        return self._tiktok.token_url

    def build_authorization_url(self, state: str, code_challenge: str) -> str:
        """Construct the TikTok consent URL carrying the PKCE challenge."""
        params = {
            "client_key": self._tiktok.client_key,
            "redirect_uri": str(self._tiktok.redirect_uri),
            "response_type": "code",
            "scope": self._oauth.scopes,
            "state": state,
            "code_challenge": code_challenge,
            "code_challenge_method": CHALLENGE_METHOD,
        }
        return f"{self._tiktok.auth_base_url}?{urlencode(params)}"

    async def exchange_authorization_code(self, code: str, code_verifier: str) -> TokenGrant:
        """Trade an authorization code and its PKCE verifier for a credential pair."""
        payload = {
            "client_key": self._tiktok.client_key,
            "client_secret": self._tiktok.client_secret,
            "code": code,
            "grant_type": "authorization_code",
            "redirect_uri": str(self._tiktok.redirect_uri),
            "code_verifier": code_verifier,
        }
        token_payload = await self._post_token(payload)
        return self._parse_grant(token_payload, require_refresh_token=True)

    async def refresh_access_token(self, refresh_token: str) -> TokenGrant:
        """Trade a refresh token for a renewed credential pair."""
        payload = {
            "client_key": self._tiktok.client_key,
            "client_secret": self._tiktok.client_secret,
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
        }
        token_payload = await self._post_token(payload)
        return self._parse_grant(token_payload, require_refresh_token=False)

    async def _post_token(self, payload: Dict[str, str]) -> Dict[str, Any]:
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.post(
                    self.token_url,
                    data=payload,
                    headers={"Cache-Control": "no-cache"},
                )
        except httpx.HTTPError as exc:
            raise UpstreamRejectedError(
                f"Token endpoint request failed: {exc.__class__.__name__}"
            ) from exc

        try:
            token_payload = response.json()
        except ValueError:
            token_payload = None

        if isinstance(token_payload, dict) and token_payload.get("error"):
            raise UpstreamRejectedError(
                f"Token endpoint returned error: {token_payload.get('error')}",
                error=str(token_payload.get("error")),
                error_description=token_payload.get("error_description"),
                status_code=response.status_code,
            )
        if not response.is_success:
            raise UpstreamRejectedError(
                f"Token endpoint responded with HTTP {response.status_code}",
                status_code=response.status_code,
            )
        if not isinstance(token_payload, dict):
            raise UpstreamMalformedError("Token endpoint returned a non-JSON body.")
        return token_payload

    @staticmethod
    def _parse_grant(payload: Dict[str, Any], *, require_refresh_token: bool) -> TokenGrant:
        access_token = payload.get("access_token")
        refresh_token = payload.get("refresh_token") or None
        expires_in = payload.get("expires_in")

        if not access_token:
            raise UpstreamMalformedError("Access token not received from TikTok.")
        if require_refresh_token and not refresh_token:
            raise UpstreamMalformedError("Refresh token not received from TikTok.")
        try:
            expires_in_seconds = int(expires_in)
        except (TypeError, ValueError) as exc:
            raise UpstreamMalformedError("Token payload is missing expires_in.") from exc
        if expires_in_seconds <= 0:
            raise UpstreamMalformedError("Token payload carries a non-positive expires_in.")

        return TokenGrant(
            access_token=str(access_token),
            refresh_token=str(refresh_token) if refresh_token else None,
            expires_in=expires_in_seconds,
        )


__all__ = [
    "InvalidStateError",
    "OAuthStateEncoder",
    "TikTokOAuthClient",
    "TokenGrant",
]
