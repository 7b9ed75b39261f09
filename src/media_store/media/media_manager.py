"""Facade over identity, upload and search services."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from ..config import MediaStoreConfig
from ..domain.models import (
    DEFAULT_ORIGINAL_VARIANT_NAME,
    ByteStream,
    MediaEntry,
    MediaEntryIdentifier,
    MediaFile,
    MediaFileIdentifier,
    QueryInfo,
    SearchResult,
    UploadStopCallback,
    VariantPlanner,
)
from ..exceptions import InputError
from ..infrastructure.local_media_storage import LocalBackingStore
from ..infrastructure.media_storage import BackingStore
from ..ingest.source_fetcher import HttpSourceFetcher, SourceFetcher
from .hashing import ContentHasher, ImageHasher
from .identifiers import IdentifierCodec
from .similarity import SimilarityEngine
from .upload_coordinator import UploadCoordinator, UploadHandle
from .variants import default_variant_planner

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class MediaManager:
    """Insert, look up and search content-addressed media."""

    store: BackingStore
    codec: IdentifierCodec
    fetcher: SourceFetcher
    hasher: ContentHasher = field(default_factory=ContentHasher)
    default_planner: VariantPlanner = default_variant_planner
    fan_out: str = "refetch"
    tee_buffer_chunks: int = 16
    coordinator: UploadCoordinator = field(init=False)
    similarity: SimilarityEngine = field(init=False)

    def __post_init__(self) -> None:
        self.coordinator = UploadCoordinator(
            store=self.store,
            codec=self.codec,
            fetcher=self.fetcher,
            hasher=self.hasher,
            default_planner=self.default_planner,
            fan_out=self.fan_out,
            tee_buffer_chunks=self.tee_buffer_chunks,
        )
        self.similarity = SimilarityEngine(store=self.store, codec=self.codec)

    @classmethod
    def from_config(
        cls,
        config: MediaStoreConfig,
        *,
        store: BackingStore | None = None,
        fetcher: SourceFetcher | None = None,
        default_planner: VariantPlanner | None = None,
    ) -> "MediaManager":
        return cls(
            store=store
            or LocalBackingStore(
                root=config.resolved_storage_root,
                public_base_url=config.public_base_url,
            ),
            codec=IdentifierCodec(prefix=config.key_prefix),
            fetcher=fetcher or HttpSourceFetcher(timeout_seconds=config.fetch_timeout_seconds),
            hasher=ContentHasher(
                image_hasher=ImageHasher(
                    downsample_threshold=config.image_downsample_threshold_bytes,
                    max_dimension=config.image_downsample_max_dimension,
                )
            ),
            default_planner=default_planner or default_variant_planner,
            fan_out=config.source_fan_out,
            tee_buffer_chunks=config.tee_buffer_chunks,
        )

    async def insert(
        self,
        url: str,
        *,
        variant_planner: VariantPlanner | None = None,
        on_upload_stop: UploadStopCallback | None = None,
    ) -> UploadHandle:
        """Fetch ``url`` and store it under its content identity.

        Returns as soon as the identity is known. ``await handle.wait()``
        (or ``on_upload_stop``) reports the outcome exactly once: ``None``
        once every variant is promoted, :class:`ConflictError` when the entry
        already existed, or the failure.
        """
        return await self.coordinator.insert(
            url, variant_planner=variant_planner, on_upload_stop=on_upload_stop
        )

    async def query(self, *, url: str | None = None, media_id: str | None = None) -> SearchResult:
        """Search by re-submitted content (``url``) or a previously issued ID."""
        identifier = await self._query_identity(url=url, media_id=media_id)
        hits = await self.similarity.search(identifier)
        return SearchResult(
            query_info=QueryInfo(id=self.codec.encode_id(identifier), type=identifier.type),
            hits=hits,
        )

    async def get(self, media_id: str) -> MediaEntry | None:
        """Return the entry for ``media_id`` or ``None`` when nothing is stored."""
        identifier = self.codec.decode_id(media_id)
        grouped = await self.similarity.collect(self.codec.entry_key(identifier) + "/")
        files = grouped.get(identifier)
        if not files:
            return None
        return MediaEntry(id=media_id, type=identifier.type, files=files, store=self.store)

    def get_file(self, media_id: str, variant: str = DEFAULT_ORIGINAL_VARIANT_NAME) -> MediaFile:
        """Handle to one variant; existence is not checked."""
        identifier = self.codec.decode_id(media_id)
        key = self.codec.file_key(MediaFileIdentifier.of(identifier, variant))
        return MediaFile(key=key, variant=variant, store=self.store)

    def get_content(self, media_id: str, variant: str = DEFAULT_ORIGINAL_VARIANT_NAME) -> ByteStream:
        return self.get_file(media_id, variant).open()

    async def drain(self) -> None:
        """Wait for background promotions and cleanups to finish."""
        await self.coordinator.drain()

    async def _query_identity(self, *, url: str | None, media_id: str | None) -> MediaEntryIdentifier:
        if (url is None) == (media_id is None):
            raise InputError("query needs exactly one of url or media_id")
        if media_id is not None:
            return self.codec.decode_id(media_id)

        source = await self.fetcher.open(url)
        try:
            hashes = await self.hasher.hash_for(
                source.media_type,
                source.body,
                byte_size=source.size,
                content_type=source.content_type,
            )
        finally:
            await source.aclose()
        logger.debug("media.query.hashed", extra={"url": url, "media_type": source.media_type.value})
        return MediaEntryIdentifier(type=source.media_type, hashes=hashes)


__all__ = ["MediaManager"]
