"""Schemas for the video publishing routes."""

from __future__ import annotations

from pydantic import BaseModel, Field


class VideoDirectPostRequest(BaseModel):
    """Local video file to publish directly to the connected account."""

    file_path: str | None = Field(None, description="Path to the video on this host.")
    title: str | None = Field(None, description="Caption for the post.")
    privacy_level: str = Field(
        "PUBLIC_TO_EVERYONE",
        description="TikTok privacy level, e.g. SELF_ONLY while the app is unaudited.",
    )


class VideoFileInfo(BaseModel):
    path: str
    size: int
    size_mb: str


class VideoDirectPostData(BaseModel):
    publish_id: str
    status_url: str
    file_info: VideoFileInfo


class VideoDirectPostResponse(BaseModel):
    success: bool = True
    message: str = "Video upload requested successfully"
    data: VideoDirectPostData


__all__ = [
    "VideoDirectPostData",
    "VideoDirectPostRequest",
    "VideoDirectPostResponse",
    "VideoFileInfo",
]
