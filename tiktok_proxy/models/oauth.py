"""
Domain models for OAuth credential persistence.
"""

from pydantic import BaseModel, Field


class CredentialRecord(BaseModel):
    """The single credential set persisted in the encrypted token file."""

    access_token: str = Field(..., min_length=1)
    refresh_token: str = Field(..., min_length=1)
    expires_at: int = Field(
        ..., gt=0, description="Epoch milliseconds after which access_token is expired."
    )

    def is_fresh(self, now_ms: int, margin_ms: int = 0) -> bool:
        """True while ``now_ms`` is before the expiry minus ``margin_ms``."""
        return now_ms < self.expires_at - margin_ms


__all__ = ["CredentialRecord"]
