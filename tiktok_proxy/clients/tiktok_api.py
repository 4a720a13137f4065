"""TikTok Open API relay and video upload helper."""

from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Mapping, Optional

import httpx

from tiktok_proxy.core.errors import UpstreamAPIError

if TYPE_CHECKING:  # pragma: no cover - type hints only
    from tiktok_proxy.services.credentials import CredentialManager

logger = logging.getLogger(__name__)

MAX_CHUNK_SIZE = 10 * 1024 * 1024
CREATOR_INFO_PATH = "/v2/post/publish/creator_info/query/"
USER_INFO_PATH = "/v2/user/info/"
VIDEO_INIT_PATH = "/v2/post/publish/video/init/"
PUBLISH_STATUS_PATH = "/v2/post/publish/status/fetch/"
JSON_CONTENT_TYPE = "application/json; charset=UTF-8"


@dataclass(frozen=True)
class VideoUploadResult:
    publish_id: str
    file_size: int
    chunk_size: int
    total_chunk_count: int


def plan_chunks(file_size: int) -> tuple[int, int]:
    """Return ``(chunk_size, total_chunk_count)`` for a file of ``file_size`` bytes.

    TikTok's FILE_UPLOAD source expects the count rounded down; bytes that do
    not fill a whole chunk travel with the final chunk.
    """
    if file_size <= 0:
        raise ValueError("Video file is empty.")
    chunk_size = min(file_size, MAX_CHUNK_SIZE)
    return chunk_size, file_size // chunk_size


class TikTokAPIClient:
    """Forward calls to the TikTok API with the cached bearer token."""

    def __init__(
        self,
        credential_manager: "CredentialManager",
        *,
        base_url: str = "https://open.tiktokapis.com",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._credentials = credential_manager
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    def _client(self, **kwargs: Any) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._timeout, transport=self._transport, **kwargs)

    async def relay(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Mapping[str, Any]] = None,
        json: Any = None,
    ) -> httpx.Response:
        """Send ``method path`` upstream and return the response untouched."""
        access_token = await self._credentials.get_valid_access_token()
        headers = {"Authorization": f"Bearer {access_token}"}
        if json is not None:
            headers["Content-Type"] = JSON_CONTENT_TYPE

        async with self._client(base_url=self._base_url) as client:
            response = await client.request(
                method, path, params=params, json=json, headers=headers
            )
        if response.is_error:
            logger.warning(
                "TikTok API %s %s responded with HTTP %s", method, path, response.status_code
            )
        return response

    async def creator_info(self) -> httpx.Response:
        return await self.relay("POST", CREATOR_INFO_PATH, json={})

    async def user_info(self, fields: str) -> httpx.Response:
        return await self.relay("GET", USER_INFO_PATH, params={"fields": fields})

    async def publish_status(self, publish_id: str) -> httpx.Response:
        return await self.relay("POST", PUBLISH_STATUS_PATH, json={"publish_id": publish_id})

    async def upload_video(
        self,
        file_path: str,
        title: str,
        *,
        privacy_level: str = "PUBLIC_TO_EVERYONE",
    ) -> VideoUploadResult:
        """Initialise a direct post and push the file to TikTok in chunks."""
        file_size = await asyncio.to_thread(os.path.getsize, file_path)
        chunk_size, total_chunk_count = plan_chunks(file_size)

        logger.info("Initializing video upload (%s bytes, %s chunks)", file_size, total_chunk_count)
        init_response = await self.relay(
            "POST",
            VIDEO_INIT_PATH,
            json={
                "post_info": {
                    "title": title,
                    "privacy_level": privacy_level,
                    "disable_duet": False,
                    "disable_comment": False,
                    "disable_stitch": False,
                    "video_cover_timestamp_ms": 1000,
                },
                "source_info": {
                    "source": "FILE_UPLOAD",
                    "video_size": file_size,
                    "chunk_size": chunk_size,
                    "total_chunk_count": total_chunk_count,
                },
            },
        )
        publish_id, upload_url = _parse_init_response(init_response)

        async with self._client() as client:
            for index in range(total_chunk_count):
                start = index * chunk_size
                if index == total_chunk_count - 1:
                    end = file_size - 1
                else:
                    end = start + chunk_size - 1
                chunk = await asyncio.to_thread(_read_chunk, file_path, start, end - start + 1)
                response = await client.put(
                    upload_url,
                    content=chunk,
                    headers={
                        "Content-Range": f"bytes {start}-{end}/{file_size}",
                        "Content-Type": "video/mp4",
                    },
                )
                if response.is_error:
                    raise UpstreamAPIError(
                        f"Chunk {index + 1}/{total_chunk_count} upload failed "
                        f"with HTTP {response.status_code}",
                        details=_response_details(response),
                    )

        logger.info("Video upload requested for publish_id %s", publish_id)
        return VideoUploadResult(
            publish_id=publish_id,
            file_size=file_size,
            chunk_size=chunk_size,
            total_chunk_count=total_chunk_count,
        )


def _read_chunk(file_path: str, offset: int, size: int) -> bytes:
    with open(file_path, "rb") as handle:
        handle.seek(offset)
        return handle.read(size)


def _response_details(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


def _parse_init_response(response: httpx.Response) -> tuple[str, str]:
    details = _response_details(response)
    if not isinstance(details, dict):
        raise UpstreamAPIError("Video init returned a non-JSON body.", details=details)

    error = details.get("error") or {}
    if isinstance(error, dict) and error.get("code") not in (None, "ok"):
        raise UpstreamAPIError(
            f"TikTok API Error: {error.get('message') or error.get('code')}",
            details=details,
        )
    if response.is_error:
        raise UpstreamAPIError(
            f"Video init responded with HTTP {response.status_code}", details=details
        )

    data = details.get("data") or {}
    if not isinstance(data, dict):
        raise UpstreamAPIError("Video init response lacks publish_id or upload_url.", details=details)
    publish_id = data.get("publish_id")
    upload_url = data.get("upload_url")
    if not publish_id or not upload_url:
        raise UpstreamAPIError("Video init response lacks publish_id or upload_url.", details=details)
    return str(publish_id), str(upload_url)


__all__ = ["TikTokAPIClient", "VideoUploadResult", "plan_chunks"]
