from __future__ import annotations

import pytest

from media_store.domain.models import MediaType
from media_store.exceptions import InputError
from media_store.media.media_manager import MediaManager
from media_store.media.variants import image_variants_planner
from tests.helpers.media_samples import make_png, split_pixels


def _near_duplicates() -> tuple[bytes, bytes]:
    pixels = split_pixels()
    altered = [row[:] for row in pixels]
    altered[0][0] = 100
    return make_png(pixels), make_png(altered)


@pytest.fixture()
def image_manager(store, codec, fetcher) -> MediaManager:
    return MediaManager(store=store, codec=codec, fetcher=fetcher, default_planner=image_variants_planner)


@pytest.mark.asyncio
async def test_query_by_id_groups_variants(origin, image_manager: MediaManager) -> None:
    original, _ = _near_duplicates()
    url = origin.add("http://origin.test/a.png", "image/png", original)
    handle = await image_manager.insert(url)
    await handle.wait()

    result = await image_manager.query(media_id=handle.id)

    assert result.query_info.id == handle.id
    assert result.query_info.type is MediaType.IMAGE
    assert len(result.hits) == 1
    hit = result.hits[0]
    assert hit.similarity == 1.0
    assert hit.entry.id == handle.id
    assert sorted(hit.entry.variants) == ["original", "thumb", "webp100w"]


@pytest.mark.asyncio
async def test_near_duplicate_query_scores_by_fine_hash(origin, image_manager: MediaManager) -> None:
    original, altered = _near_duplicates()
    stored_url = origin.add("http://origin.test/a.png", "image/png", original)
    query_url = origin.add("http://origin.test/b.png", "image/png", altered)
    handle = await image_manager.insert(stored_url)
    await handle.wait()

    result = await image_manager.query(url=query_url)

    assert result.query_info.id != handle.id
    assert result.query_info.id.split(".")[1] == handle.id.split(".")[1]
    assert [hit.entry.id for hit in result.hits] == [handle.id]
    assert result.hits[0].similarity == pytest.approx(1 - 1 / 256)
    assert await image_manager.get(result.query_info.id) is None


@pytest.mark.asyncio
async def test_hits_are_sorted_by_similarity(origin, image_manager: MediaManager) -> None:
    original, altered = _near_duplicates()
    for name, payload in (("b", altered), ("a", original)):
        handle = await image_manager.insert(origin.add(f"http://origin.test/{name}.png", "image/png", payload))
        await handle.wait()
    exact = await image_manager.query(url="http://origin.test/a.png")

    assert [hit.similarity for hit in exact.hits] == [1.0, pytest.approx(1 - 1 / 256)]
    assert exact.hits[0].entry.id == exact.query_info.id


@pytest.mark.asyncio
async def test_generic_query_is_exact_match(origin, manager: MediaManager) -> None:
    url = origin.add("http://origin.test/a.txt", "text/plain", b"payload")
    handle = await manager.insert(url)
    await handle.wait()

    result = await manager.query(url=url)
    other = await manager.query(media_id="file.AAAA")

    assert [(hit.similarity, hit.entry.id) for hit in result.hits] == [(1.0, handle.id)]
    assert other.hits == []


@pytest.mark.asyncio
async def test_query_needs_exactly_one_selector(manager: MediaManager) -> None:
    with pytest.raises(InputError):
        await manager.query()
    with pytest.raises(InputError):
        await manager.query(url="http://origin.test/a.txt", media_id="file.abc")


@pytest.mark.asyncio
async def test_unrelated_keys_are_skipped(store, codec, manager: MediaManager) -> None:
    async def one():
        yield b"x"

    await store.write("file/abc/original", one(), "text/plain")
    await store.write("file/abc/extra/original", one(), "text/plain")

    grouped = await manager.similarity.collect("file/abc/")

    assert list(grouped.values()) == [{"original": "file/abc/original"}]
