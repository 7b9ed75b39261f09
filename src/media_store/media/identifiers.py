"""Conversions between media identities, storage keys and opaque IDs.

Storage layout (``prefix`` is the store-wide key prefix)::

    {prefix}{type}/{hash0}[/{hash1}]/{variant}     final objects
    {prefix}temp/{epoch_ms}_{random}/{variant}     staging objects

Opaque IDs join the type and hash layers with ``.``, which never occurs in
base64url digests nor in media type names.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone

from ..domain.models import (
    MediaEntryIdentifier,
    MediaFileIdentifier,
    MediaType,
    expected_hash_layers,
)
from ..exceptions import IdentifierParseError

ID_DELIMITER = "."
KEY_SEPARATOR = "/"
STAGING_NAMESPACE = "temp"


@dataclass(frozen=True, slots=True)
class StagingToken:
    """Process- and time-unique name of one insert's staging namespace."""

    value: str
    created_at: datetime

    @classmethod
    def new(cls) -> "StagingToken":
        millis = time.time_ns() // 1_000_000
        value = f"{millis}_{uuid.uuid4().hex[:12]}"
        return cls(value=value, created_at=_from_millis(millis))

    @classmethod
    def parse(cls, value: str) -> "StagingToken":
        millis, sep, suffix = value.partition("_")
        if not sep or not suffix or not millis.isdigit():
            raise IdentifierParseError(f"Incorrect staging token: {value}")
        return cls(value=value, created_at=_from_millis(int(millis)))


def _from_millis(millis: int) -> datetime:
    return datetime.fromtimestamp(millis / 1000, tz=timezone.utc)


def _check_layers(media_type: MediaType, hashes: tuple[str, ...], source: str) -> None:
    expected = expected_hash_layers(media_type)
    if len(hashes) != expected or not all(hashes):
        raise IdentifierParseError(
            f"{source}: type={media_type.value} needs {expected} hash layer(s), got {len(hashes)}"
        )


@dataclass(frozen=True, slots=True)
class IdentifierCodec:
    """Pure key/ID conversions bound to one store-wide prefix."""

    prefix: str = ""

    def entry_key(self, identifier: MediaEntryIdentifier) -> str:
        return f"{self.prefix}{identifier.type.value}/{KEY_SEPARATOR.join(identifier.hashes)}"

    def bucket_prefix(self, media_type: MediaType, first_hash: str) -> str:
        """Listing prefix for every entry sharing the first hash layer."""

        return f"{self.prefix}{media_type.value}/{first_hash}/"

    def file_key(self, identifier: MediaFileIdentifier) -> str:
        return f"{self.entry_key(identifier.entry)}/{identifier.variant}"

    def parse_file_key(self, key: str) -> MediaFileIdentifier:
        if self.prefix:
            if not key.startswith(self.prefix):
                raise IdentifierParseError(f"Key outside of prefix {self.prefix!r}: {key}")
            key = key[len(self.prefix):]
        chunks = key.split(KEY_SEPARATOR)
        if len(chunks) < 3:
            raise IdentifierParseError(f"Incorrect file name: {key}")
        type_segment, *hashes, variant = chunks
        if not variant:
            raise IdentifierParseError(f"No variant found in file name {key}")
        media_type = MediaType.parse(type_segment)
        if media_type is None:
            raise IdentifierParseError(f"Incorrect file name: {key}")
        layers = tuple(hashes)
        _check_layers(media_type, layers, key)
        return MediaFileIdentifier(type=media_type, hashes=layers, variant=variant)

    def encode_id(self, identifier: MediaEntryIdentifier) -> str:
        return ID_DELIMITER.join((identifier.type.value, *identifier.hashes))

    def decode_id(self, media_id: str) -> MediaEntryIdentifier:
        type_segment, *hashes = media_id.split(ID_DELIMITER)
        media_type = MediaType.parse(type_segment)
        if media_type is None or not hashes:
            raise IdentifierParseError(f"Incorrect ID: {media_id}")
        layers = tuple(hashes)
        if any(KEY_SEPARATOR in layer for layer in layers):
            raise IdentifierParseError(f"Incorrect ID: {media_id}")
        _check_layers(media_type, layers, f"Incorrect ID {media_id}")
        return MediaEntryIdentifier(type=media_type, hashes=layers)

    def staging_prefix(self) -> str:
        return f"{self.prefix}{STAGING_NAMESPACE}/"

    def staging_key(self, token: StagingToken, variant: str) -> str:
        return f"{self.staging_prefix()}{token.value}/{variant}"

    def parse_staging_key(self, key: str) -> tuple[StagingToken, str]:
        """Return the staging token and variant encoded in ``key``."""

        staging = self.staging_prefix()
        if not key.startswith(staging):
            raise IdentifierParseError(f"Not a staging key: {key}")
        token, sep, variant = key[len(staging):].partition(KEY_SEPARATOR)
        if not sep or not variant or KEY_SEPARATOR in variant:
            raise IdentifierParseError(f"Incorrect staging key: {key}")
        return StagingToken.parse(token), variant


__all__ = [
    "ID_DELIMITER",
    "IdentifierCodec",
    "STAGING_NAMESPACE",
    "StagingToken",
]
