"""Filesystem backing store.

Objects live at ``root/<key>``. The content type of each object is kept in a
hidden sidecar (``.<name>.meta.json``) next to it; names starting with ``.``
are never reported by listings, which is why variant names may not start
with a dot.
"""

from __future__ import annotations

import json
import logging
import mimetypes
import os
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import AsyncIterator

from ..exceptions import MediaIOError, NotFoundError, ObjectExistsError
from ..media.public_media_links import build_public_media_url

CHUNK_SIZE = 64 * 1024
DEFAULT_CONTENT_TYPE = "application/octet-stream"


@dataclass(slots=True)
class LocalBackingStore:
    """:class:`BackingStore` implementation on a local directory."""

    root: Path
    public_base_url: str
    log: logging.Logger = field(default_factory=lambda: logging.getLogger(__name__))

    def __post_init__(self) -> None:
        self.root = Path(self.root).resolve()
        self.root.mkdir(parents=True, exist_ok=True)

    def path_for(self, key: str) -> Path:
        segments = key.split("/")
        if not key or any(s in ("", ".", "..") or s.startswith(".") for s in segments):
            raise ValueError(f"invalid storage key: {key!r}")
        return self.root.joinpath(*segments)

    @staticmethod
    def _sidecar(path: Path) -> Path:
        return path.with_name(f".{path.name}.meta.json")

    def _key_for(self, path: Path) -> str:
        return path.relative_to(self.root).as_posix()

    async def list_by_prefix(self, prefix: str) -> AsyncIterator[str]:
        directory = self.root
        base = prefix.rpartition("/")[0]
        if base:
            try:
                directory = self.path_for(base)
            except ValueError:
                return
        if not directory.is_dir():
            return
        for current, dirnames, filenames in os.walk(directory):
            dirnames[:] = sorted(d for d in dirnames if not d.startswith("."))
            for name in sorted(filenames):
                if name.startswith("."):
                    continue
                key = self._key_for(Path(current) / name)
                if key.startswith(prefix):
                    yield key

    async def open_read(self, key: str) -> AsyncIterator[bytes]:
        path = self.path_for(key)
        try:
            handle = path.open("rb")
        except FileNotFoundError as exc:
            raise NotFoundError(f"object '{key}' not found") from exc
        except OSError as exc:
            raise MediaIOError(f"cannot open '{key}': {exc}") from exc
        with handle:
            while True:
                try:
                    chunk = handle.read(CHUNK_SIZE)
                except OSError as exc:
                    raise MediaIOError(f"reading '{key}' failed: {exc}") from exc
                if not chunk:
                    break
                yield chunk

    async def write(self, key: str, chunks: AsyncIterator[bytes], content_type: str) -> int:
        target = self.path_for(key)
        partial = target.with_name(f".{target.name}.partial-{uuid.uuid4().hex}")
        written = 0
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with partial.open("wb") as sink:
                async for chunk in chunks:
                    sink.write(chunk)
                    written += len(chunk)
            self._sidecar(target).write_text(
                json.dumps({"content_type": content_type, "size": written}), encoding="utf-8"
            )
            os.replace(partial, target)
        except OSError as exc:
            partial.unlink(missing_ok=True)
            raise MediaIOError(f"writing '{key}' failed: {exc}") from exc
        except BaseException:
            partial.unlink(missing_ok=True)
            raise
        self.log.debug("store.object.written", extra={"key": key, "size": written})
        return written

    async def exists(self, key: str) -> bool:
        return self.path_for(key).is_file()

    async def move(self, source: str, destination: str, *, overwrite: bool = False) -> None:
        src = self.path_for(source)
        dst = self.path_for(destination)
        try:
            dst.parent.mkdir(parents=True, exist_ok=True)
            if overwrite:
                os.replace(src, dst)
            else:
                # link() refuses an existing target, giving an atomic no-clobber rename.
                os.link(src, dst)
                src.unlink()
            if self._sidecar(src).exists():
                os.replace(self._sidecar(src), self._sidecar(dst))
        except FileExistsError as exc:
            raise ObjectExistsError(destination) from exc
        except FileNotFoundError as exc:
            raise NotFoundError(f"object '{source}' not found") from exc
        except OSError as exc:
            raise MediaIOError(f"moving '{source}' to '{destination}' failed: {exc}") from exc
        self._prune_empty_parents(src.parent)

    async def delete(self, key: str) -> None:
        path = self.path_for(key)
        try:
            path.unlink(missing_ok=True)
            self._sidecar(path).unlink(missing_ok=True)
        except OSError as exc:
            raise MediaIOError(f"deleting '{key}' failed: {exc}") from exc
        self._prune_empty_parents(path.parent)

    def public_url(self, key: str) -> str:
        return build_public_media_url(self.public_base_url, key)

    def content_type(self, key: str) -> str:
        """Return the content type recorded when ``key`` was written."""
        path = self.path_for(key)
        try:
            meta = json.loads(self._sidecar(path).read_text(encoding="utf-8"))
        except (OSError, ValueError):
            guessed, _ = mimetypes.guess_type(path.name)
            return guessed or DEFAULT_CONTENT_TYPE
        return meta.get("content_type") or DEFAULT_CONTENT_TYPE

    def _prune_empty_parents(self, directory: Path) -> None:
        while directory != self.root and self.root in directory.parents:
            try:
                directory.rmdir()
            except OSError:
                return
            directory = directory.parent


__all__ = ["LocalBackingStore"]
