"""
FastAPI application entrypoint for the TikTok OAuth proxy.

Run with ``uvicorn tiktok_proxy.main:app --port $PORT``.
"""

from __future__ import annotations

from fastapi import FastAPI

from tiktok_proxy.api.routes import SERVICE_NAME, SERVICE_VERSION
from tiktok_proxy.api.routes import router as api_router
from tiktok_proxy.core.config import get_settings
from tiktok_proxy.core.logging import configure_logging


def create_app() -> FastAPI:
    """Factory for the FastAPI application."""
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title=SERVICE_NAME,
        version=SERVICE_VERSION,
        description=(
            "Local OAuth2 proxy and encrypted token cache for the TikTok Open API."
        ),
    )
    app.include_router(api_router)
    return app


app = create_app()

__all__ = ["app", "create_app"]
