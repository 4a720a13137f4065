"""Expose dependency helpers for FastAPI routers."""

from .clients import (
    get_credential_manager,
    get_credential_store,
    get_oauth_state_encoder,
    get_tiktok_api_client,
    get_tiktok_oauth_client,
    get_token_cipher_service,
)
from .config import SettingsDependency, get_app_settings, get_login_url

__all__ = [
    "SettingsDependency",
    "get_app_settings",
    "get_credential_manager",
    "get_credential_store",
    "get_login_url",
    "get_oauth_state_encoder",
    "get_tiktok_api_client",
    "get_tiktok_oauth_client",
    "get_token_cipher_service",
]
