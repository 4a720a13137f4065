"""
Application configuration models and helpers.

Centralizes settings management so the FastAPI app, the credential lifecycle
services and the operator scripts share a consistent configuration surface.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

import os

from pydantic import AnyHttpUrl, Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _load_env_file(path: str = ".env") -> None:
    """Best-effort load key=value pairs from a .env file without extra deps."""
    env_path = Path(path)
    if not env_path.exists():
        return
    for raw_line in env_path.read_text().splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        if not sep:
            continue
        key = key.strip()
        if not key or key in os.environ:
            continue
        cleaned = value.strip().strip('"').strip("'")
        os.environ[key] = cleaned


_load_env_file()


class TikTokSettings(BaseSettings):
    """Configuration required for interacting with the TikTok Open API."""

    client_key: str = Field(..., validation_alias="TIKTOK_CLIENT_KEY")
    client_secret: str = Field(..., validation_alias="TIKTOK_CLIENT_SECRET")
    redirect_uri: AnyHttpUrl = Field(..., validation_alias="TIKTOK_REDIRECT_URI")
    auth_base_url: str = Field(
        "https://www.tiktok.com/v2/auth/authorize/",
        validation_alias="TIKTOK_AUTH_BASE_URL",
    )
    api_base_url: str = Field(
        "https://open.tiktokapis.com",
        validation_alias="TIKTOK_API_BASE_URL",
    )
    analytics_path: str = Field(
        "/v2/research/video/query/",
        validation_alias="TIKTOK_ANALYTICS_PATH",
        description="Upstream path that /analytics/query requests are relayed to.",
    )

    @property
    def token_url(self) -> str:
        return f"{self.api_base_url.rstrip('/')}/v2/oauth/token/"


class SecuritySettings(BaseSettings):
    """Security-related configuration."""

    encryption_key: Optional[str] = Field(
        None,
        validation_alias="ENCRYPTION_KEY",
        description=(
            "Secret used to derive the symmetric key for the encrypted token file."
        ),
    )
    token_store_path: Path = Field(
        Path("./tokens.encrypted.json"),
        validation_alias="TOKEN_STORE_PATH",
    )


class OAuthSettings(BaseSettings):
    """OAuth flow configuration."""

    state_ttl_seconds: int = Field(900, validation_alias="OAUTH_STATE_TTL")
    scopes: str = Field(
        "user.info.basic,user.info.profile,user.info.stats,video.publish,video.upload",
        validation_alias="OAUTH_SCOPES",
    )
    verifier_length: int = Field(
        64, ge=43, le=128, validation_alias="PKCE_VERIFIER_LENGTH"
    )
    expiry_margin_seconds: int = Field(
        60, ge=0, validation_alias="TOKEN_EXPIRY_MARGIN_SECONDS"
    )

    @field_validator("scopes", mode="before")
    @classmethod
    def _join_scopes(cls, value: str | tuple[str, ...] | list[str]) -> str:
        """TikTok expects scopes as a single comma-separated string."""
        if isinstance(value, str):
            value = value.split(",")
        return ",".join(scope.strip() for scope in value if scope.strip())

    @property
    def scope_list(self) -> tuple[str, ...]:
        return tuple(self.scopes.split(",")) if self.scopes else ()


class AppSettings(BaseSettings):
    """Root settings object for the FastAPI application."""

    environment: str = Field("development", validation_alias="APP_ENV")
    log_level: str = Field("INFO", validation_alias="APP_LOG_LEVEL")
    public_base_url: Optional[HttpUrl] = Field(
        None,
        validation_alias="PUBLIC_BASE_URL",
        description="Externally reachable URL of this proxy, used in login hints.",
    )
    http_timeout_seconds: float = Field(30.0, validation_alias="HTTP_TIMEOUT_SECONDS")
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    oauth: OAuthSettings = Field(default_factory=OAuthSettings)
    tiktok: TikTokSettings = Field(default_factory=TikTokSettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def login_url(self) -> str:
        """Absolute (or root-relative) location of the login route."""
        base = str(self.public_base_url).rstrip("/") if self.public_base_url else ""
        return f"{base}/auth/login"


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()  # type: ignore[call-arg]


__all__ = [
    "AppSettings",
    "OAuthSettings",
    "SecuritySettings",
    "TikTokSettings",
    "get_settings",
]
