"""
Error taxonomy for the credential lifecycle.

Every failure that can surface from the token store, the token endpoint or the
lifecycle manager is expressed as one of these exceptions so the route layer
never sees a raw transport or filesystem fault.
"""

from __future__ import annotations

from typing import Optional


class CredentialError(Exception):
    """Base class for all credential lifecycle failures."""


class AuthorizationError(CredentialError):
    """Raised when the authorization-code exchange cannot be completed."""


class MissingCodeError(AuthorizationError):
    """The callback did not carry an authorization code."""


class MissingVerifierError(AuthorizationError):
    """No PKCE verifier is outstanding; the login flow must be restarted."""


class UpstreamRejectedError(AuthorizationError):
    """The token endpoint refused the grant or could not be reached."""

    def __init__(
        self,
        message: str,
        *,
        error: Optional[str] = None,
        error_description: Optional[str] = None,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.error = error
        self.error_description = error_description
        self.status_code = status_code


class UpstreamMalformedError(AuthorizationError):
    """The token endpoint answered successfully but without the expected fields."""


class NotAuthorizedError(CredentialError):
    """No credential is on file; the authorization flow has not been completed."""


class StorageCorruptError(CredentialError):
    """Persisted credential content could not be decrypted or parsed."""


class UpstreamAPIError(Exception):
    """Raised when a relayed TikTok API call reports a failure."""

    def __init__(self, message: str, *, details: object = None) -> None:
        super().__init__(message)
        self.details = details


__all__ = [
    "AuthorizationError",
    "CredentialError",
    "MissingCodeError",
    "MissingVerifierError",
    "NotAuthorizedError",
    "StorageCorruptError",
    "UpstreamAPIError",
    "UpstreamMalformedError",
    "UpstreamRejectedError",
]
