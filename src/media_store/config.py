"""Configuration for the media store.

Every component receives the same frozen :class:`MediaStoreConfig`; the
storage root, key prefix and public URL base are fixed at construction and
never read from ambient global state afterwards.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ONE_MIB = 1 * 1024 * 1024


def _default_storage_root() -> Path:
    return Path("./var/media-store")


class MediaStoreConfig(BaseSettings):
    """Pydantic settings container shared by the store components."""

    model_config = SettingsConfigDict(env_prefix="MEDIA_STORE_", frozen=True)

    storage_root: Path = Field(
        default_factory=_default_storage_root,
        description="Filesystem root used by the local backing store.",
    )
    key_prefix: str = Field(
        default="",
        description="Store-wide key prefix, empty or ending with '/'.",
    )
    public_base_url: str = Field(
        default="http://localhost:8000",
        description="Base URL under which the public media route is reachable.",
    )
    fetch_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Timeout applied to source fetch requests in seconds.",
    )
    source_fan_out: Literal["refetch", "tee"] = Field(
        default="refetch",
        description=(
            "How variant stages obtain the source: one request per stage, "
            "or a single request split between all consumers."
        ),
    )
    tee_buffer_chunks: int = Field(
        default=16,
        ge=1,
        description="Per-consumer queue size when source_fan_out is 'tee'.",
    )
    image_downsample_threshold_bytes: int = Field(
        default=ONE_MIB,
        ge=0,
        description="Images larger than this are downsampled before hashing.",
    )
    image_downsample_max_dimension: int = Field(
        default=1024,
        ge=16,
        description="Bounding box (px) used when downsampling images for hashing.",
    )
    staging_max_age_hours: float = Field(
        default=24.0,
        gt=0,
        description="Staging objects older than this are garbage collected.",
    )
    staging_cleanup_interval_seconds: float = Field(
        default=900.0,
        ge=0,
        description="Period of the in-process staging cleanup loop; 0 disables it.",
    )

    @field_validator("key_prefix")
    @classmethod
    def _check_prefix(cls, value: str) -> str:
        if value and not value.endswith("/"):
            raise ValueError("key_prefix must be empty or end with '/'")
        if value.startswith("/"):
            raise ValueError("key_prefix must be relative")
        return value

    @property
    def resolved_storage_root(self) -> Path:
        return Path(self.storage_root).resolve()


def load_config(**overrides: object) -> MediaStoreConfig:
    """Load configuration from the environment, applying explicit overrides."""

    return MediaStoreConfig(**overrides)


__all__ = ["MediaStoreConfig", "load_config", "ONE_MIB"]
