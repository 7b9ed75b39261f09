from __future__ import annotations

from pathlib import Path

import pytest

from media_store.infrastructure.local_media_storage import LocalBackingStore
from media_store.ingest.source_fetcher import HttpSourceFetcher
from media_store.media.identifiers import IdentifierCodec
from media_store.media.media_manager import MediaManager
from tests.helpers.media_samples import FakeOrigin

PUBLIC_BASE_URL = "http://testserver"


@pytest.fixture()
def origin() -> FakeOrigin:
    return FakeOrigin()


@pytest.fixture()
def store(tmp_path: Path) -> LocalBackingStore:
    return LocalBackingStore(root=tmp_path / "store", public_base_url=PUBLIC_BASE_URL)


@pytest.fixture()
def codec() -> IdentifierCodec:
    return IdentifierCodec()


@pytest.fixture()
def fetcher(origin: FakeOrigin) -> HttpSourceFetcher:
    # Small chunks so streams are split across many reads.
    return HttpSourceFetcher(transport=origin.transport, chunk_size=7)


@pytest.fixture()
def manager(store: LocalBackingStore, codec: IdentifierCodec, fetcher: HttpSourceFetcher) -> MediaManager:
    return MediaManager(store=store, codec=codec, fetcher=fetcher)
