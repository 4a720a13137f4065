"""Expose constructed client wrappers."""

from .tiktok_api import TikTokAPIClient, VideoUploadResult
from .tiktok_auth import InvalidStateError, OAuthStateEncoder, TikTokOAuthClient, TokenGrant

__all__ = [
    "InvalidStateError",
    "OAuthStateEncoder",
    "TikTokAPIClient",
    "TikTokOAuthClient",
    "TokenGrant",
    "VideoUploadResult",
]
