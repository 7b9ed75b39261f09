"""Garbage collection of abandoned staging objects."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from ..exceptions import IdentifierParseError
from ..infrastructure.media_storage import BackingStore
from .identifiers import IdentifierCodec

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class StagingCleanupSummary:
    scanned: int
    removed: int
    dry_run: bool


async def cleanup_stale_staging(
    store: BackingStore,
    codec: IdentifierCodec,
    *,
    max_age: timedelta,
    reference_time: datetime | None = None,
    dry_run: bool = False,
) -> StagingCleanupSummary:
    """Delete staging objects whose token is older than ``max_age``.

    Inserts that fail before their identity is known, and conflict cleanups
    that fail, leave staging objects behind. They are unreachable through
    any content-derived key; the timestamp embedded in the staging token is
    the only thing needed to decide they are stale.
    """
    now = reference_time or datetime.now(timezone.utc)
    cutoff = now - max_age
    stale: list[str] = []
    scanned = 0
    async for key in store.list_by_prefix(codec.staging_prefix()):
        scanned += 1
        try:
            token, _ = codec.parse_staging_key(key)
        except IdentifierParseError:
            logger.warning("media.staging.unparsable", extra={"key": key})
            continue
        if token.created_at < cutoff:
            stale.append(key)

    if dry_run:
        return StagingCleanupSummary(scanned=scanned, removed=len(stale), dry_run=True)

    for key in stale:
        await store.delete(key)
        logger.info("media.staging.removed", extra={"key": key})
    return StagingCleanupSummary(scanned=scanned, removed=len(stale), dry_run=False)


__all__ = ["StagingCleanupSummary", "cleanup_stale_staging"]
