"""Serve objects of the local backing store to external consumers."""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import HTTPException, status
from fastapi.responses import FileResponse

from ..infrastructure.local_media_storage import LocalBackingStore


@dataclass(slots=True)
class PublicMediaService:
    """Expose stored variants under their public URL."""

    store: LocalBackingStore

    def open_media(self, key: str) -> FileResponse:
        """Return FileResponse for ``key`` or raise HTTP errors."""
        try:
            path = self.store.path_for(key)
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Media not found") from exc

        if not path.is_file():
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Media not found")

        return FileResponse(path=path, media_type=self.store.content_type(key))
