"""Pytest configuration shared across the suite."""

try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover
    import _bootstrap  # type: ignore # noqa: F401

import pytest

from tiktok_proxy.core.config import OAuthSettings, TikTokSettings
from tiktok_proxy.services.credential_store import EncryptedCredentialStore
from tiktok_proxy.services.token_cipher import TokenCipherService


class FakeClock:
    """Manually advanced stand-in for ``time.time``."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO-powered tests to run against asyncio backend only."""
    return "asyncio"


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cipher() -> TokenCipherService:
    return TokenCipherService(secret="unit-test-secret")


@pytest.fixture
def store(tmp_path, cipher, clock) -> EncryptedCredentialStore:
    return EncryptedCredentialStore(tmp_path / "tokens.encrypted.json", cipher, clock=clock)


@pytest.fixture
def tiktok_settings() -> TikTokSettings:
    return TikTokSettings(
        TIKTOK_CLIENT_KEY="client-key",
        TIKTOK_CLIENT_SECRET="client-secret",
        TIKTOK_REDIRECT_URI="https://example.com/auth/callback",
        TIKTOK_API_BASE_URL="https://open.tiktokapis.test",
    )


@pytest.fixture
def oauth_settings() -> OAuthSettings:
    return OAuthSettings()
