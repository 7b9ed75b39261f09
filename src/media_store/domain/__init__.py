"""Domain models of the media store."""

from .models import (
    DEFAULT_ORIGINAL_VARIANT_NAME,
    ByteStream,
    MediaEntry,
    MediaEntryIdentifier,
    MediaFile,
    MediaFileIdentifier,
    MediaType,
    QueryInfo,
    SearchHit,
    SearchResult,
    UploadStopCallback,
    VariantPlanner,
    VariantSetting,
    VariantTransform,
    expected_hash_layers,
)

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
