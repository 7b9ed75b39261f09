"""Dependency wiring helpers."""

from __future__ import annotations

from fastapi import FastAPI

from .api.errors import ApiError, api_error_handler, media_error_handler
from .api.media_api import router as media_router
from .config import MediaStoreConfig
from .exceptions import MediaStoreError
from .infrastructure.local_media_storage import LocalBackingStore
from .media.media_manager import MediaManager
from .media.public_media_service import PublicMediaService
from .public.public_media_router import build_public_media_router


def include_routers(app: FastAPI, config: MediaStoreConfig, manager: MediaManager) -> None:
    """Mount module routers and attach services."""
    app.state.config = config
    app.state.media_manager = manager

    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(MediaStoreError, media_error_handler)
    app.include_router(media_router)

    if isinstance(manager.store, LocalBackingStore):
        app.include_router(build_public_media_router(PublicMediaService(store=manager.store)))
