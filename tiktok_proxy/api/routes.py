"""
FastAPI routes for the TikTok OAuth proxy.
"""

from __future__ import annotations

import asyncio
import logging
import os
import time
from datetime import datetime, timedelta, timezone
from http import HTTPStatus
from typing import Annotated, Any, Awaitable, Callable

import httpx
from fastapi import APIRouter, Body, Depends, HTTPException, Query, Request, Response
from fastapi.responses import RedirectResponse

from tiktok_proxy.clients.tiktok_auth import InvalidStateError
from tiktok_proxy.core.errors import (
    MissingCodeError,
    MissingVerifierError,
    NotAuthorizedError,
    UpstreamAPIError,
    UpstreamMalformedError,
    UpstreamRejectedError,
)
from tiktok_proxy.dependencies import (
    get_app_settings,
    get_credential_manager,
    get_login_url,
    get_oauth_state_encoder,
    get_tiktok_api_client,
)
from tiktok_proxy.schemas import (
    AuthorizationCallbackResponse,
    AuthorizationStartResponse,
    CredentialStatusResponse,
    VideoDirectPostData,
    VideoDirectPostRequest,
    VideoDirectPostResponse,
    VideoFileInfo,
)

router = APIRouter()
logger = logging.getLogger(__name__)

SERVICE_NAME = "TikTok OAuth2 Proxy"
SERVICE_VERSION = "1.0.0"
_STARTED_AT = time.monotonic()


@router.get("/", status_code=HTTPStatus.OK)
async def service_info() -> dict:
    """Describe the service and the routes it exposes."""
    return {
        "name": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "status": "running",
        "endpoints": {
            "auth": "/auth/login",
            "callback": "/auth/callback",
            "auth_status": "/auth/status",
            "creator_info": "/creator-info",
            "user_info": "/user/info?fields=open_id,union_id,avatar_url",
            "video_upload": "/video/direct-post",
            "video_status": "/video/status?publish_id=YOUR_PUBLISH_ID",
            "analytics": "/analytics/query",
            "health": "/health",
        },
    }


@router.get("/health", status_code=HTTPStatus.OK)
async def healthcheck() -> dict:
    """Simple health endpoint for monitoring."""
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uptime": round(time.monotonic() - _STARTED_AT, 3),
    }


@router.get("/auth/login", status_code=HTTPStatus.OK, response_model=None)
async def start_tiktok_login(
    manager: Annotated[Any, Depends(get_credential_manager)],
    redirect: bool = Query(
        default=True,
        description="When false, return the consent URL as JSON instead of redirecting.",
    ),
) -> Response | AuthorizationStartResponse:
    """Kick off the PKCE flow and send the caller to the TikTok consent screen."""
    authorization = manager.begin_authorization()
    if redirect:
        return RedirectResponse(
            url=authorization.authorization_url,
            status_code=HTTPStatus.TEMPORARY_REDIRECT,
        )
    return AuthorizationStartResponse(
        authorization_url=authorization.authorization_url,
        state=authorization.state,
    )


@router.get(
    "/auth/callback",
    status_code=HTTPStatus.OK,
    response_model=AuthorizationCallbackResponse,
)
async def handle_tiktok_callback(
    manager: Annotated[Any, Depends(get_credential_manager)],
    state_encoder: Annotated[Any, Depends(get_oauth_state_encoder)],
    settings: Annotated[Any, Depends(get_app_settings)],
    code: str | None = Query(default=None, description="Authorization code from TikTok."),
    state: str | None = Query(default=None, description="OAuth state token."),
    error: str | None = Query(default=None),
    error_description: str | None = Query(default=None),
) -> AuthorizationCallbackResponse:
    """Complete the code exchange and store the credential pair."""
    _verify_state(state, state_encoder, settings.oauth.state_ttl_seconds)

    if error:
        logger.warning("TikTok consent returned error %s: %s", error, error_description)

    try:
        record = await manager.complete_authorization(code)
    except MissingCodeError as exc:
        detail = "Missing code"
        if error:
            detail = f"Error: {error}, Description: {error_description}"
        raise HTTPException(status_code=HTTPStatus.BAD_REQUEST, detail=detail) from exc
    except MissingVerifierError as exc:
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail="No code verifier found. Restart the login flow.",
        ) from exc
    except UpstreamRejectedError as exc:
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail=f"Error: {exc.error or exc}, Description: {exc.error_description}",
        ) from exc
    except UpstreamMalformedError as exc:
        raise HTTPException(status_code=HTTPStatus.BAD_REQUEST, detail=str(exc)) from exc

    return AuthorizationCallbackResponse(expires_at=record.expires_at)


@router.get("/auth/status", response_model=CredentialStatusResponse)
async def credential_status(
    manager: Annotated[Any, Depends(get_credential_manager)],
) -> CredentialStatusResponse:
    status = manager.status()
    return CredentialStatusResponse(
        authorized=status.authorized,
        stale=status.stale,
        expires_at=status.expires_at,
        authorization_pending=status.authorization_pending,
    )


@router.delete("/auth/credentials", status_code=HTTPStatus.OK)
async def clear_credentials(
    manager: Annotated[Any, Depends(get_credential_manager)],
) -> dict:
    """Forget the stored credential set."""
    if not manager.clear_credentials():
        raise HTTPException(
            status_code=HTTPStatus.INTERNAL_SERVER_ERROR,
            detail="Failed to clear stored credentials.",
        )
    return {"status": "cleared"}


@router.get("/creator-info")
async def creator_info(
    api: Annotated[Any, Depends(get_tiktok_api_client)],
    login_url: Annotated[str, Depends(get_login_url)],
) -> Response:
    """Query the creator profile of the connected account."""
    return await _proxy(api.creator_info, login_url, "Creator info")


@router.get("/user/info")
async def user_info(
    api: Annotated[Any, Depends(get_tiktok_api_client)],
    login_url: Annotated[str, Depends(get_login_url)],
    fields: str | None = Query(default=None, description="Comma-separated user fields."),
) -> Response:
    """Forward a user info query with the caller-selected fields."""
    if not fields:
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail={
                "error": "fields query parameter is required",
                "example": "GET /user/info?fields=open_id,union_id,avatar_url",
            },
        )
    return await _proxy(lambda: api.user_info(fields), login_url, "User info")


@router.post("/video/direct-post", response_model=VideoDirectPostResponse)
async def video_direct_post(
    request: Request,
    payload: VideoDirectPostRequest,
    api: Annotated[Any, Depends(get_tiktok_api_client)],
    login_url: Annotated[str, Depends(get_login_url)],
) -> VideoDirectPostResponse:
    """Publish a local video file to the connected account."""
    if not payload.file_path:
        raise HTTPException(status_code=HTTPStatus.BAD_REQUEST, detail="file_path is required")
    if not payload.title:
        raise HTTPException(status_code=HTTPStatus.BAD_REQUEST, detail="title is required")
    if not await asyncio.to_thread(os.path.isfile, payload.file_path):
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail="File not found at specified path",
        )

    try:
        result = await api.upload_video(
            payload.file_path, payload.title, privacy_level=payload.privacy_level
        )
    except ValueError as exc:
        raise HTTPException(status_code=HTTPStatus.BAD_REQUEST, detail=str(exc)) from exc
    except OSError as exc:
        logger.warning("Video file %s became unreadable: %s", payload.file_path, exc)
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail="File not found at specified path",
        ) from exc
    except (NotAuthorizedError, UpstreamRejectedError, UpstreamMalformedError) as exc:
        raise _reauthorization_required(exc, login_url) from exc
    except UpstreamAPIError as exc:
        logger.error("Video upload error: %s", exc)
        raise HTTPException(
            status_code=HTTPStatus.BAD_GATEWAY,
            detail={"error": "Video upload failed", "details": exc.details or str(exc)},
        ) from exc
    except httpx.HTTPError as exc:
        raise _transport_failure("Video upload", exc) from exc

    status_url = request.url_for("video_status").include_query_params(
        publish_id=result.publish_id
    )
    return VideoDirectPostResponse(
        data=VideoDirectPostData(
            publish_id=result.publish_id,
            status_url=str(status_url),
            file_info=VideoFileInfo(
                path=payload.file_path,
                size=result.file_size,
                size_mb=f"{result.file_size / 1024 / 1024:.2f}",
            ),
        )
    )


@router.get("/video/status")
async def video_status(
    api: Annotated[Any, Depends(get_tiktok_api_client)],
    login_url: Annotated[str, Depends(get_login_url)],
    publish_id: str | None = Query(default=None),
) -> Response:
    """Fetch the publishing status of an earlier upload."""
    if not publish_id:
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail="publish_id query parameter is required",
        )
    return await _proxy(lambda: api.publish_status(publish_id), login_url, "Status check")


@router.post("/analytics/query")
async def analytics_query(
    api: Annotated[Any, Depends(get_tiktok_api_client)],
    login_url: Annotated[str, Depends(get_login_url)],
    settings: Annotated[Any, Depends(get_app_settings)],
    query: dict[str, Any] = Body(...),
    fields: str | None = Query(default=None),
) -> Response:
    """Relay an analytics query body to the configured TikTok endpoint."""
    params = {"fields": fields} if fields else None
    return await _proxy(
        lambda: api.relay("POST", settings.tiktok.analytics_path, params=params, json=query),
        login_url,
        "Analytics query",
    )


def _verify_state(state: str | None, state_encoder: Any, ttl_seconds: int) -> None:
    if not state:
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST, detail="Missing OAuth state token."
        )
    try:
        state_data = state_encoder.decode(state)
    except InvalidStateError as exc:
        logger.warning("Rejected OAuth callback: %s", exc)
        raise HTTPException(status_code=HTTPStatus.BAD_REQUEST, detail=str(exc)) from exc

    try:
        issued_at = datetime.fromisoformat(state_data["issued_at"])
    except (KeyError, TypeError, ValueError) as exc:
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail="Invalid issued_at in state token.",
        ) from exc
    if issued_at.tzinfo is None:
        issued_at = issued_at.replace(tzinfo=timezone.utc)

    if datetime.now(timezone.utc) - issued_at > timedelta(seconds=ttl_seconds):
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST, detail="OAuth state token has expired."
        )


def _reauthorization_required(exc: Exception, login_url: str) -> HTTPException:
    if isinstance(exc, NotAuthorizedError):
        logger.warning("Upstream call refused: no credentials on file")
    else:
        logger.warning("Upstream call refused: token refresh failed (%s)", exc)
    return HTTPException(
        status_code=HTTPStatus.UNAUTHORIZED,
        detail={
            "error": "TikTok account not connected. Complete the OAuth flow first.",
            "login_url": login_url,
        },
    )


def _transport_failure(label: str, exc: httpx.HTTPError) -> HTTPException:
    logger.error("%s error: %s", label, exc)
    return HTTPException(
        status_code=HTTPStatus.BAD_GATEWAY,
        detail={"error": f"{label} request failed", "details": str(exc)},
    )


async def _proxy(
    call: Callable[[], Awaitable[httpx.Response]],
    login_url: str,
    label: str,
) -> Response:
    """Run one relayed call and pass the upstream response through verbatim."""
    try:
        upstream = await call()
    except (NotAuthorizedError, UpstreamRejectedError, UpstreamMalformedError) as exc:
        raise _reauthorization_required(exc, login_url) from exc
    except httpx.HTTPError as exc:
        raise _transport_failure(label, exc) from exc

    return Response(
        content=upstream.content,
        status_code=upstream.status_code,
        media_type=upstream.headers.get("content-type"),
    )


__all__ = ["router"]
