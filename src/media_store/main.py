"""FastAPI application entry point."""

from __future__ import annotations

import asyncio
import contextlib
from datetime import timedelta
from typing import AsyncIterator

from fastapi import FastAPI

from .config import MediaStoreConfig, load_config
from .dependencies import include_routers
from .lifecycle import run_periodic_staging_cleanup
from .logging import configure_logging
from .media.media_manager import MediaManager


def create_app(
    config: MediaStoreConfig | None = None,
    manager: MediaManager | None = None,
) -> FastAPI:
    """Build FastAPI instance with configured dependencies."""
    configure_logging()
    cfg = config or load_config()
    media_manager = manager or MediaManager.from_config(cfg)

    @contextlib.asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        shutdown = asyncio.Event()
        cleanup: asyncio.Task | None = None
        if cfg.staging_cleanup_interval_seconds > 0:
            cleanup = asyncio.create_task(
                run_periodic_staging_cleanup(
                    store=media_manager.store,
                    codec=media_manager.codec,
                    max_age=timedelta(hours=cfg.staging_max_age_hours),
                    shutdown_event=shutdown,
                    interval_seconds=cfg.staging_cleanup_interval_seconds,
                )
            )
        try:
            yield
        finally:
            shutdown.set()
            await media_manager.drain()
            if cleanup is not None:
                await cleanup

    app = FastAPI(title="media-store", lifespan=lifespan)
    include_routers(app, cfg, media_manager)
    return app
