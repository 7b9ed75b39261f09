"""Similarity search over stored entries."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from ..domain.models import (
    MediaEntry,
    MediaEntryIdentifier,
    MediaType,
    SearchHit,
)
from ..exceptions import IdentifierParseError
from ..infrastructure.media_storage import BackingStore
from .hashing import similarity
from .identifiers import IdentifierCodec

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SimilarityEngine:
    """Rank stored entries against a query identity.

    Only the first hash layer is used to select candidates. For images that
    is the coarse perceptual digest, so candidates are then ranked by the
    distance between fine digests; for every other type it is the full
    content digest and each candidate is an exact match.
    """

    store: BackingStore
    codec: IdentifierCodec
    log: logging.Logger = field(default_factory=lambda: logger)

    async def collect(self, prefix: str) -> dict[MediaEntryIdentifier, dict[str, str]]:
        """Group objects under ``prefix`` by entry, keeping discovery order."""
        grouped: dict[MediaEntryIdentifier, dict[str, str]] = {}
        async for key in self.store.list_by_prefix(prefix):
            try:
                parsed = self.codec.parse_file_key(key)
            except IdentifierParseError:
                self.log.warning("similarity.key.skipped", extra={"key": key})
                continue
            grouped.setdefault(parsed.entry, {})[parsed.variant] = key
        return grouped

    async def search(self, query: MediaEntryIdentifier) -> list[SearchHit]:
        prefix = self.codec.bucket_prefix(query.type, query.hashes[0])
        candidates = await self.collect(prefix)

        hits: list[SearchHit] = []
        for identifier, files in candidates.items():
            entry = MediaEntry(
                id=self.codec.encode_id(identifier),
                type=identifier.type,
                files=files,
                store=self.store,
            )
            if query.type is not MediaType.IMAGE:
                hits.append(SearchHit(similarity=1.0, entry=entry))
                continue
            try:
                score = similarity(query.hashes[1], identifier.hashes[1])
            except ValueError:
                self.log.warning("similarity.digest.invalid", extra={"media_id": entry.id})
                continue
            hits.append(SearchHit(similarity=score, entry=entry))

        hits.sort(key=lambda hit: hit.similarity, reverse=True)
        self.log.info(
            "similarity.search.completed",
            extra={"prefix": prefix, "candidates": len(candidates), "hits": len(hits)},
        )
        return hits


__all__ = ["SimilarityEngine"]
