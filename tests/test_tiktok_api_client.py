try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover
    import _bootstrap  # type: ignore # noqa: F401

import json

import httpx
import pytest

from tiktok_proxy.clients import tiktok_api
from tiktok_proxy.clients.tiktok_api import MAX_CHUNK_SIZE, TikTokAPIClient, plan_chunks
from tiktok_proxy.core.errors import UpstreamAPIError

API_BASE = "https://open.tiktokapis.test"


class StaticCredentials:
    async def get_valid_access_token(self) -> str:
        return "access-token"


def _client_for(handler) -> TikTokAPIClient:
    return TikTokAPIClient(
        StaticCredentials(), base_url=API_BASE, transport=httpx.MockTransport(handler)
    )


def _init_answer(body: dict, status_code: int = 200):
    uploads: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/v2/post/publish/video/init/":
            return httpx.Response(status_code, json=body)
        uploads.append(request)
        return httpx.Response(201)

    return handler, uploads


def test_plan_chunks_single_chunk_for_small_files() -> None:
    assert plan_chunks(10) == (10, 1)
    assert plan_chunks(MAX_CHUNK_SIZE) == (MAX_CHUNK_SIZE, 1)


def test_plan_chunks_folds_trailing_bytes_into_last_chunk() -> None:
    assert plan_chunks(2 * MAX_CHUNK_SIZE + 5) == (MAX_CHUNK_SIZE, 2)
    assert plan_chunks(MAX_CHUNK_SIZE + 1) == (MAX_CHUNK_SIZE, 1)
    assert plan_chunks(3 * MAX_CHUNK_SIZE) == (MAX_CHUNK_SIZE, 3)


@pytest.mark.parametrize("size", [0, -1])
def test_plan_chunks_rejects_empty_files(size: int) -> None:
    with pytest.raises(ValueError):
        plan_chunks(size)


@pytest.mark.asyncio
async def test_upload_video_sends_every_chunk_with_its_range(tmp_path, monkeypatch) -> None:
    monkeypatch.setattr(tiktok_api, "MAX_CHUNK_SIZE", 4)
    video = tmp_path / "clip.mp4"
    video.write_bytes(b"abcdefghijk")
    handler, uploads = _init_answer(
        {
            "data": {"publish_id": "pub-9", "upload_url": "https://upload.test/video"},
            "error": {"code": "ok"},
        }
    )

    result = await _client_for(handler).upload_video(str(video), "clip")

    assert (result.publish_id, result.chunk_size, result.total_chunk_count) == ("pub-9", 4, 2)
    assert [request.headers["content-range"] for request in uploads] == [
        "bytes 0-3/11",
        "bytes 4-10/11",
    ]
    assert b"".join(request.content for request in uploads) == b"abcdefghijk"
    assert all(request.headers["content-type"] == "video/mp4" for request in uploads)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body",
    [
        {"data": "oops", "error": {"code": "ok"}},
        {"data": ["pub-1"], "error": {"code": "ok"}},
        {"data": {"publish_id": "pub-1"}, "error": {"code": "ok"}},
        {"error": {"code": "spam_risk_too_many_posts", "message": "Too many posts"}},
    ],
)
async def test_upload_video_rejects_unusable_init_response(tmp_path, body: dict) -> None:
    video = tmp_path / "clip.mp4"
    video.write_bytes(b"0123456789")
    handler, uploads = _init_answer(body)

    with pytest.raises(UpstreamAPIError) as excinfo:
        await _client_for(handler).upload_video(str(video), "clip")

    assert excinfo.value.details == body
    assert uploads == []


@pytest.mark.asyncio
async def test_upload_video_reports_failed_chunk(tmp_path) -> None:
    video = tmp_path / "clip.mp4"
    video.write_bytes(b"0123456789")

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/v2/post/publish/video/init/":
            return httpx.Response(
                200,
                json={
                    "data": {"publish_id": "pub-1", "upload_url": "https://upload.test/video"},
                    "error": {"code": "ok"},
                },
            )
        return httpx.Response(413, json={"error": "too large"})

    with pytest.raises(UpstreamAPIError) as excinfo:
        await _client_for(handler).upload_video(str(video), "clip")

    assert "HTTP 413" in str(excinfo.value)
    assert excinfo.value.details == {"error": "too large"}


@pytest.mark.asyncio
async def test_relay_returns_upstream_response_verbatim() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(500, json={"error": {"code": "internal_error"}})

    response = await _client_for(handler).relay(
        "POST", "/v2/research/video/query/", params={"fields": "id"}, json={"max_count": 1}
    )

    assert response.status_code == 500
    assert response.json() == {"error": {"code": "internal_error"}}
    assert seen[0].headers["authorization"] == "Bearer access-token"
    assert json.loads(seen[0].content) == {"max_count": 1}
