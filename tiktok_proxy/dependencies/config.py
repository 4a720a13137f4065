"""
FastAPI dependency utilities for injecting configuration values.
"""

from fastapi import Depends

from tiktok_proxy.core.config import AppSettings, get_settings


def get_app_settings() -> AppSettings:
    """FastAPI dependency returning application settings."""
    return get_settings()


def get_login_url(settings: AppSettings = Depends(get_app_settings)) -> str:
    """Where a caller is sent to (re)connect the TikTok account."""
    return settings.login_url()


SettingsDependency = Depends(get_app_settings)

__all__ = ["SettingsDependency", "get_app_settings", "get_login_url"]
