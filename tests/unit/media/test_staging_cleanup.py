from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from media_store.lifecycle import run_periodic_staging_cleanup
from media_store.media.identifiers import StagingToken
from media_store.media.staging_cleanup import cleanup_stale_staging

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


async def _chunks(payload: bytes):
    yield payload


def _token(age: timedelta) -> StagingToken:
    millis = int((NOW - age).timestamp() * 1000)
    return StagingToken.parse(f"{millis}_0123456789ab")


async def _seed(store, codec) -> tuple[str, str, str]:
    stale = codec.staging_key(_token(timedelta(hours=30)), "original")
    fresh = codec.staging_key(_token(timedelta(minutes=5)), "original")
    final = "file/abc/original"
    for key in (stale, fresh, final):
        await store.write(key, _chunks(b"x"), "text/plain")
    return stale, fresh, final


@pytest.mark.asyncio
async def test_cleanup_removes_only_stale_staging(store, codec) -> None:
    stale, fresh, final = await _seed(store, codec)

    summary = await cleanup_stale_staging(store, codec, max_age=timedelta(hours=24), reference_time=NOW)

    assert (summary.scanned, summary.removed, summary.dry_run) == (2, 1, False)
    assert not await store.exists(stale)
    assert await store.exists(fresh)
    assert await store.exists(final)


@pytest.mark.asyncio
async def test_cleanup_dry_run_keeps_objects(store, codec) -> None:
    stale, _, _ = await _seed(store, codec)

    summary = await cleanup_stale_staging(
        store, codec, max_age=timedelta(hours=24), reference_time=NOW, dry_run=True
    )

    assert summary.removed == 1
    assert summary.dry_run is True
    assert await store.exists(stale)


@pytest.mark.asyncio
async def test_periodic_cleanup_runs_until_shutdown(store, codec) -> None:
    stale, fresh, _ = await _seed(store, codec)
    shutdown = asyncio.Event()

    task = asyncio.create_task(
        run_periodic_staging_cleanup(
            store=store,
            codec=codec,
            max_age=timedelta(hours=24),
            shutdown_event=shutdown,
            interval_seconds=0.01,
            clock=lambda: NOW,
        )
    )
    await asyncio.sleep(0.05)
    shutdown.set()
    await asyncio.wait_for(task, timeout=5)

    assert not await store.exists(stale)
    assert await store.exists(fresh)
