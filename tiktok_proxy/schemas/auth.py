"""Schemas related to OAuth flows."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class AuthorizationStartResponse(BaseModel):
    """Returned by /auth/login when the caller asks for JSON instead of a redirect."""

    authorization_url: str = Field(..., description="TikTok consent URL to open.")
    state: str = Field(..., description="Opaque anti-forgery state issued for this login.")


class AuthorizationCallbackResponse(BaseModel):
    status: str = "connected"
    expires_at: int = Field(..., description="Access token expiry in epoch milliseconds.")


class CredentialStatusResponse(BaseModel):
    """Snapshot of the stored credential, without exposing any token."""

    authorized: bool
    stale: bool
    expires_at: Optional[int] = None
    authorization_pending: bool = False


__all__ = [
    "AuthorizationCallbackResponse",
    "AuthorizationStartResponse",
    "CredentialStatusResponse",
]
