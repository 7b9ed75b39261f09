"""Variant plans: which derived representations an insert produces.

A planner is a plain callable ``planner(type=..., content_type=..., size=...)``
returning an ordered list of :class:`VariantSetting`. The first entry is the
canonical variant and is normally named ``original``.
"""

from __future__ import annotations

import asyncio
import io
from typing import Iterable

from PIL import Image, UnidentifiedImageError

from ..domain.models import (
    DEFAULT_ORIGINAL_VARIANT_NAME,
    ByteStream,
    MediaType,
    VariantSetting,
    VariantTransform,
)
from ..exceptions import ProcessingError, VariantPlanError


async def passthrough(stream: ByteStream) -> ByteStream:
    """Identity transform."""
    async for chunk in stream:
        yield chunk


def original(content_type: str, name: str = DEFAULT_ORIGINAL_VARIANT_NAME) -> VariantSetting:
    """Variant that stores the source untouched, mirroring its content type."""
    return VariantSetting(name=name, transform=passthrough, content_type=content_type)


def default_variant_planner(
    *, type: MediaType, content_type: str, size: int
) -> list[VariantSetting]:
    """Store-wide default: a single ``original`` variant for any media."""
    return [original(content_type)]


def _image_transform(render, label: str) -> VariantTransform:
    async def transform(stream: ByteStream) -> ByteStream:
        buffer = bytearray()
        async for chunk in stream:
            buffer.extend(chunk)
        try:
            payload = await asyncio.to_thread(render, bytes(buffer))
        except (UnidentifiedImageError, OSError, ValueError) as exc:
            raise ProcessingError(f"{label} transform failed: {exc}") from exc
        yield payload

    return transform


def thumbnail(size: int = 100, name: str = "thumb") -> VariantSetting:
    """JPEG thumbnail bounded to ``size`` x ``size`` pixels."""

    def render(data: bytes) -> bytes:
        image = Image.open(io.BytesIO(data))
        image.thumbnail((size, size), Image.Resampling.LANCZOS)
        out = io.BytesIO()
        image.convert("RGB").save(out, format="JPEG", quality=85)
        return out.getvalue()

    return VariantSetting(name=name, transform=_image_transform(render, name), content_type="image/jpeg")


def resized_webp(width: int, name: str | None = None) -> VariantSetting:
    """WebP resized to ``width`` pixels wide, aspect ratio preserved."""

    def render(data: bytes) -> bytes:
        image = Image.open(io.BytesIO(data))
        height = max(1, round(image.height * width / image.width))
        resized = image.resize((width, height), Image.Resampling.LANCZOS)
        out = io.BytesIO()
        resized.save(out, format="WEBP", quality=80)
        return out.getvalue()

    label = name or f"webp{width}w"
    return VariantSetting(name=label, transform=_image_transform(render, label), content_type="image/webp")


def image_variants_planner(
    *, type: MediaType, content_type: str, size: int
) -> list[VariantSetting]:
    """``original`` for everything, plus a thumbnail and a WebP for images."""
    if type is MediaType.IMAGE:
        return [original(content_type), thumbnail(), resized_webp(100)]
    return [original(content_type)]


def validate_plan(settings: Iterable[VariantSetting]) -> list[VariantSetting]:
    """Check variant names are unique single path segments."""

    plan = list(settings)
    if not plan:
        raise VariantPlanError("variant plan must contain at least one variant")
    seen: set[str] = set()
    for setting in plan:
        name = setting.name
        if not name or "/" in name or name.startswith("."):
            raise VariantPlanError(f"invalid variant name: {name!r}")
        if name in seen:
            raise VariantPlanError(f"duplicate variant name: {name!r}")
        seen.add(name)
    return plan


__all__ = [
    "default_variant_planner",
    "image_variants_planner",
    "original",
    "passthrough",
    "resized_webp",
    "thumbnail",
    "validate_plan",
]
