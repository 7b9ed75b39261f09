"""Content hashing: exact digests for files, perceptual digests for images."""

from __future__ import annotations

import asyncio
import base64
import binascii
import hashlib
import io
from dataclasses import dataclass

from PIL import Image, UnidentifiedImageError

from ..config import ONE_MIB
from ..domain.models import ByteStream, MediaType
from ..exceptions import MediaIOError, MediaStoreError, ProcessingError

IMAGE_DOWNSAMPLE_THRESHOLD = ONE_MIB
IMAGE_DOWNSAMPLE_MAX_DIMENSION = 1024

# Formats hashed as decoded. Anything else is hashed as its lossless PNG
# rendition: Pillow decodes it to pixels and modes PNG cannot store are
# flattened to RGBA, which is exactly what a PNG re-encode would keep.
NATIVE_HASH_CONTENT_TYPES = frozenset({"image/jpeg", "image/png", "image/bmp"})

# Grid sizes as (columns, rows): 32 coarse bits and 256 fine bits.
COARSE_GRID = (8, 4)
FINE_GRID = (16, 16)


def encode_digest(raw: bytes) -> str:
    """URL-safe, unpadded base64 encoding used for every hash layer."""

    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def decode_digest(digest: str) -> bytes:
    padding = "=" * (-len(digest) % 4)
    try:
        return base64.urlsafe_b64decode(digest + padding)
    except (binascii.Error, ValueError) as exc:
        raise ValueError(f"invalid base64url digest: {digest!r}") from exc


def hamming_distance(left: str, right: str) -> int:
    """Count differing bits between two base64url encoded digests."""

    a = decode_digest(left)
    b = decode_digest(right)
    if len(a) != len(b):
        raise ValueError(f"digest lengths differ: {len(a) * 8} vs {len(b) * 8} bits")
    return sum((x ^ y).bit_count() for x, y in zip(a, b))


def similarity(left: str, right: str) -> float:
    """Normalised similarity in ``[0, 1]``; 1.0 means identical digests."""

    bits = len(decode_digest(left)) * 8
    if bits == 0:
        raise ValueError("cannot compare empty digests")
    return 1 - hamming_distance(left, right) / bits


async def hash_generic(stream: ByteStream) -> str:
    """Consume ``stream`` fully and return its SHA-256 digest."""

    digest = hashlib.sha256()
    try:
        async for chunk in stream:
            digest.update(chunk)
    except MediaStoreError:
        raise
    except OSError as exc:
        raise MediaIOError(f"reading source stream failed: {exc}") from exc
    return encode_digest(digest.digest())


def _block_mean_bits(image: Image.Image, grid: tuple[int, int]) -> bytes:
    # BOX resampling averages every source pixel of a cell into one value.
    cells = image.resize(grid, Image.Resampling.BOX)
    values = list(cells.getdata())
    mean = sum(values) / len(values)
    packed = 0
    for value in values:
        packed = (packed << 1) | (1 if value > mean else 0)
    return packed.to_bytes(len(values) // 8, "big")


# Modes a PNG file can carry without conversion.
PNG_MODES = frozenset({"1", "L", "LA", "P", "RGB", "RGBA", "I", "I;16"})


def _png_pixels(image: Image.Image) -> Image.Image:
    if image.mode in PNG_MODES:
        return image
    return image.convert("RGBA")


@dataclass(frozen=True, slots=True)
class ImageHasher:
    """Produce the coarse/fine perceptual digest pair for image bytes."""

    downsample_threshold: int = IMAGE_DOWNSAMPLE_THRESHOLD
    max_dimension: int = IMAGE_DOWNSAMPLE_MAX_DIMENSION

    def digest_pair(self, data: bytes, byte_size: int, content_type: str) -> list[str]:
        try:
            image = Image.open(io.BytesIO(data))
            image.load()
            if byte_size > self.downsample_threshold:
                image.thumbnail((self.max_dimension, self.max_dimension), Image.Resampling.LANCZOS)
            if content_type.lower() not in NATIVE_HASH_CONTENT_TYPES:
                image = _png_pixels(image)
            gray = image.convert("L")
        except (UnidentifiedImageError, OSError, ValueError, Image.DecompressionBombError) as exc:
            raise ProcessingError(f"cannot process image ({content_type}): {exc}") from exc
        return [
            encode_digest(_block_mean_bits(gray, COARSE_GRID)),
            encode_digest(_block_mean_bits(gray, FINE_GRID)),
        ]


@dataclass(frozen=True, slots=True)
class ContentHasher:
    """Select the hashing algorithm for a media type and run it."""

    image_hasher: ImageHasher = ImageHasher()

    async def hash_image(self, stream: ByteStream, byte_size: int, content_type: str) -> list[str]:
        buffer = bytearray()
        try:
            async for chunk in stream:
                buffer.extend(chunk)
        except MediaStoreError:
            raise
        except OSError as exc:
            raise MediaIOError(f"reading source stream failed: {exc}") from exc
        return await asyncio.to_thread(
            self.image_hasher.digest_pair, bytes(buffer), byte_size, content_type
        )

    async def hash_for(
        self,
        media_type: MediaType,
        stream: ByteStream,
        *,
        byte_size: int,
        content_type: str,
    ) -> tuple[str, ...]:
        if media_type is MediaType.IMAGE:
            return tuple(await self.hash_image(stream, byte_size, content_type))
        return (await hash_generic(stream),)


__all__ = [
    "COARSE_GRID",
    "ContentHasher",
    "FINE_GRID",
    "IMAGE_DOWNSAMPLE_THRESHOLD",
    "ImageHasher",
    "NATIVE_HASH_CONTENT_TYPES",
    "decode_digest",
    "encode_digest",
    "hamming_distance",
    "hash_generic",
    "similarity",
]
