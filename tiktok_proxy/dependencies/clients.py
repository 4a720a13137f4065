"""
Factory functions to provide shared clients and services as FastAPI dependencies.
"""

from functools import lru_cache

from tiktok_proxy.clients import OAuthStateEncoder, TikTokAPIClient, TikTokOAuthClient
from tiktok_proxy.core.config import get_settings
from tiktok_proxy.services import (
    CredentialManager,
    EncryptedCredentialStore,
    TokenCipherService,
)


@lru_cache()
def _settings():
    """Internal helper to cache settings for client factories."""
    return get_settings()


@lru_cache()
def get_oauth_state_encoder() -> OAuthStateEncoder:
    """Provide an OAuth state encoder derived from the TikTok client secret."""
    settings = _settings()
    return OAuthStateEncoder(secret_key=settings.tiktok.client_secret)


@lru_cache()
def get_tiktok_oauth_client() -> TikTokOAuthClient:
    """Create a singleton TikTok OAuth client."""
    settings = _settings()
    return TikTokOAuthClient(
        settings.tiktok,
        settings.oauth,
        timeout=settings.http_timeout_seconds,
    )


@lru_cache()
def get_token_cipher_service() -> TokenCipherService:
    """Provide symmetric encryption helper for token storage."""
    settings = _settings()
    secret = settings.security.encryption_key or settings.tiktok.client_secret
    return TokenCipherService(secret=secret)


@lru_cache()
def get_credential_store() -> EncryptedCredentialStore:
    """Provide the encrypted on-disk credential store."""
    settings = _settings()
    return EncryptedCredentialStore(
        settings.security.token_store_path,
        get_token_cipher_service(),
    )


@lru_cache()
def get_credential_manager() -> CredentialManager:
    """Provide the process-wide credential lifecycle manager."""
    settings = _settings()
    return CredentialManager(
        store=get_credential_store(),
        oauth_client=get_tiktok_oauth_client(),
        state_encoder=get_oauth_state_encoder(),
        verifier_length=settings.oauth.verifier_length,
        expiry_margin_seconds=settings.oauth.expiry_margin_seconds,
    )


@lru_cache()
def get_tiktok_api_client() -> TikTokAPIClient:
    """Provide the TikTok API relay bound to the credential manager."""
    settings = _settings()
    return TikTokAPIClient(
        get_credential_manager(),
        base_url=settings.tiktok.api_base_url,
        timeout=settings.http_timeout_seconds,
    )


__all__ = [
    "get_credential_manager",
    "get_credential_store",
    "get_oauth_state_encoder",
    "get_tiktok_api_client",
    "get_tiktok_oauth_client",
    "get_token_cipher_service",
]
