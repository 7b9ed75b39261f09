"""Domain models shared by the media store services."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, AsyncIterator, Callable, Mapping

from ..exceptions import VariantNotFoundError

if TYPE_CHECKING:  # pragma: no cover - typing only
    from ..infrastructure.media_storage import BackingStore

DEFAULT_ORIGINAL_VARIANT_NAME = "original"


class MediaType(str, Enum):
    """Media families recognised by the store."""

    IMAGE = "image"
    AUDIO = "audio"
    VIDEO = "video"
    FILE = "file"

    @classmethod
    def from_content_type(cls, content_type: str) -> "MediaType":
        """Map ``image/png`` style content types to a media type."""

        family = content_type.split("/", 1)[0].strip().lower()
        try:
            return cls(family)
        except ValueError:
            return cls.FILE

    @classmethod
    def parse(cls, value: str) -> "MediaType | None":
        try:
            return cls(value)
        except ValueError:
            return None


IMAGE_HASH_LAYERS = 2
GENERIC_HASH_LAYERS = 1


def expected_hash_layers(media_type: MediaType) -> int:
    """Return the fixed number of hash layers for ``media_type``."""

    return IMAGE_HASH_LAYERS if media_type is MediaType.IMAGE else GENERIC_HASH_LAYERS


@dataclass(frozen=True, slots=True)
class MediaEntryIdentifier:
    """A logical entry: media type plus ordered hash layers."""

    type: MediaType
    hashes: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class MediaFileIdentifier:
    """One stored object: an entry identifier plus a variant name."""

    type: MediaType
    hashes: tuple[str, ...]
    variant: str

    @property
    def entry(self) -> MediaEntryIdentifier:
        return MediaEntryIdentifier(type=self.type, hashes=self.hashes)

    @classmethod
    def of(cls, entry: MediaEntryIdentifier, variant: str) -> "MediaFileIdentifier":
        return cls(type=entry.type, hashes=entry.hashes, variant=variant)


ByteStream = AsyncIterator[bytes]
VariantTransform = Callable[[ByteStream], ByteStream]


@dataclass(frozen=True, slots=True)
class VariantSetting:
    """One stage of a variant plan.

    ``transform`` consumes the source byte stream and yields the derived
    bytes; ``content_type`` describes its output.
    """

    name: str
    transform: VariantTransform
    content_type: str


VariantPlanner = Callable[..., "list[VariantSetting]"]
"""``planner(type=..., content_type=..., size=...) -> list[VariantSetting]``."""

UploadStopCallback = Callable[[BaseException | None], None]


@dataclass(frozen=True, slots=True)
class MediaFile:
    """Handle to a single stored variant; no existence check is implied."""

    key: str
    variant: str
    store: "BackingStore" = field(repr=False, compare=False)

    @property
    def url(self) -> str:
        return self.store.public_url(self.key)

    def open(self) -> ByteStream:
        return self.store.open_read(self.key)


@dataclass(frozen=True, slots=True)
class MediaEntry:
    """Descriptor returned by insert, get and query hits."""

    id: str
    type: MediaType
    files: Mapping[str, str] = field(repr=False)
    store: "BackingStore" = field(repr=False, compare=False)

    @property
    def variants(self) -> list[str]:
        return list(self.files)

    def get_file(self, variant: str = DEFAULT_ORIGINAL_VARIANT_NAME) -> MediaFile:
        key = self.files.get(variant)
        if key is None:
            raise VariantNotFoundError(variant, self.files)
        return MediaFile(key=key, variant=variant, store=self.store)

    def get_url(self, variant: str = DEFAULT_ORIGINAL_VARIANT_NAME) -> str:
        return self.get_file(variant).url

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "variants": self.variants,
            "urls": {name: self.store.public_url(key) for name, key in self.files.items()},
        }


@dataclass(frozen=True, slots=True)
class QueryInfo:
    """Identity of the queried content (the ID it would get if inserted)."""

    id: str
    type: MediaType


@dataclass(frozen=True, slots=True)
class SearchHit:
    similarity: float
    entry: MediaEntry


@dataclass(frozen=True, slots=True)
class SearchResult:
    query_info: QueryInfo
    hits: list[SearchHit]


__all__ = [
    "DEFAULT_ORIGINAL_VARIANT_NAME",
    "ByteStream",
    "MediaEntry",
    "MediaEntryIdentifier",
    "MediaFile",
    "MediaFileIdentifier",
    "MediaType",
    "QueryInfo",
    "SearchHit",
    "SearchResult",
    "UploadStopCallback",
    "VariantPlanner",
    "VariantSetting",
    "VariantTransform",
    "expected_hash_layers",
]
