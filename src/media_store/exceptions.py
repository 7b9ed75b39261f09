"""Domain level exceptions shared by every media store component."""

from __future__ import annotations

from typing import Iterable

__all__ = [
    "MediaStoreError",
    "InputError",
    "IdentifierParseError",
    "VariantPlanError",
    "MediaIOError",
    "ProcessingError",
    "ConflictError",
    "NotFoundError",
    "VariantNotFoundError",
    "ObjectExistsError",
]


class MediaStoreError(Exception):
    """Base class for media store errors."""

    retryable: bool = False


class InputError(MediaStoreError):
    """Raised for malformed URLs, missing content headers or bad identifiers."""


class IdentifierParseError(InputError):
    """Raised when an opaque ID or storage key cannot be parsed."""


class VariantPlanError(InputError):
    """Raised when a variant plan violates naming rules."""


class MediaIOError(MediaStoreError):
    """Raised when fetching, staging or reading content fails."""

    retryable = True


class ProcessingError(MediaStoreError):
    """Raised when image content cannot be decoded or transformed."""


class ConflictError(MediaStoreError):
    """Raised when the entry already exists; a successful dedup signal."""

    def __init__(self, media_id: str, message: str | None = None) -> None:
        self.media_id = media_id
        super().__init__(message or f"media entry '{media_id}' already exists")


class NotFoundError(MediaStoreError):
    """Raised when an entry or object could not be located."""


class VariantNotFoundError(NotFoundError):
    """Raised by entry accessors when the requested variant is absent."""

    def __init__(self, variant: str, available: Iterable[str]) -> None:
        self.variant = variant
        self.available = tuple(available)
        super().__init__(
            f"Variant {variant} does not exist; available variants: {', '.join(self.available)}"
        )


class ObjectExistsError(MediaStoreError):
    """Raised by a backing store when a no-clobber move finds its target taken."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"object '{key}' already exists")
