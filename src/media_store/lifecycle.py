"""Lifecycle helpers wiring background tasks for FastAPI startup."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable

from .infrastructure.media_storage import BackingStore
from .media.identifiers import IdentifierCodec
from .media.staging_cleanup import StagingCleanupSummary, cleanup_stale_staging

logger = logging.getLogger(__name__)


def _default_clock() -> datetime:
    return datetime.now(timezone.utc)


async def run_periodic_staging_cleanup(
    *,
    store: BackingStore,
    codec: IdentifierCodec,
    max_age: timedelta,
    shutdown_event: asyncio.Event,
    interval_seconds: float = 900.0,
    clock: Callable[[], datetime] | None = None,
) -> None:
    """Collect stale staging objects until ``shutdown_event`` is signalled."""

    interval = max(0.01, float(interval_seconds))
    tick = clock or _default_clock
    while not shutdown_event.is_set():
        try:
            summary: StagingCleanupSummary = await cleanup_stale_staging(
                store, codec, max_age=max_age, reference_time=tick()
            )
        except Exception:  # pragma: no cover - keep the loop alive
            logger.exception("Staging cleanup iteration failed")
        else:
            if summary.removed:
                logger.info("Purged %s stale staging objects", summary.removed)
        try:
            await asyncio.wait_for(shutdown_event.wait(), timeout=interval)
        except asyncio.TimeoutError:
            continue


__all__ = ["run_periodic_staging_cleanup"]
