"""Public schema exports."""

from .auth import (
    AuthorizationCallbackResponse,
    AuthorizationStartResponse,
    CredentialStatusResponse,
)
from .video import (
    VideoDirectPostData,
    VideoDirectPostRequest,
    VideoDirectPostResponse,
    VideoFileInfo,
)

__all__ = [
    "AuthorizationCallbackResponse",
    "AuthorizationStartResponse",
    "CredentialStatusResponse",
    "VideoDirectPostData",
    "VideoDirectPostRequest",
    "VideoDirectPostResponse",
    "VideoFileInfo",
]
