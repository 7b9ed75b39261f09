"""HTTP routes for insert, get and query."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse

from ..exceptions import ConflictError, MediaStoreError
from ..media.media_manager import MediaManager
from .errors import ApiError, from_media_error
from .schemas import (
    InsertRequest,
    InsertResponse,
    MediaEntryPayload,
    QueryRequest,
    SearchResultPayload,
)

router = APIRouter(prefix="/api/media", tags=["media"])
logger = logging.getLogger(__name__)


def get_media_manager(request: Request) -> MediaManager:
    """Fetch the media manager from application state."""
    try:
        return request.app.state.media_manager  # type: ignore[attr-defined]
    except AttributeError as exc:  # pragma: no cover - wiring error
        raise RuntimeError("MediaManager is not configured") from exc


@router.post("", response_model=InsertResponse)
async def insert_media(
    payload: InsertRequest,
    manager: MediaManager = Depends(get_media_manager),
) -> JSONResponse:
    """Start storing ``payload.url``; optionally wait for promotion."""
    handle = await manager.insert(payload.url)
    body = InsertResponse(
        id=handle.id,
        type=handle.entry.type.value,
        variants=handle.entry.variants,
        status=handle.state.value,
    )
    if not payload.wait:
        return JSONResponse(status_code=status.HTTP_202_ACCEPTED, content=body.model_dump())

    try:
        await handle.wait()
    except ConflictError as exc:
        logger.info("media.insert.duplicate", extra={"media_id": exc.media_id})
        raise from_media_error(exc) from exc
    except MediaStoreError as exc:
        raise from_media_error(exc) from exc
    body.status = handle.state.value
    return JSONResponse(status_code=status.HTTP_201_CREATED, content=body.model_dump())


@router.get("/{media_id}", response_model=MediaEntryPayload)
async def get_media(
    media_id: str,
    manager: MediaManager = Depends(get_media_manager),
) -> MediaEntryPayload:
    entry = await manager.get(media_id)
    if entry is None:
        raise ApiError(status.HTTP_404_NOT_FOUND, "not_found", f"media '{media_id}' not found")
    return MediaEntryPayload.from_entry(entry)


@router.post("/query", response_model=SearchResultPayload)
async def query_media(
    payload: QueryRequest,
    manager: MediaManager = Depends(get_media_manager),
) -> SearchResultPayload:
    result = await manager.query(url=payload.url, media_id=payload.id)
    return SearchResultPayload.from_result(result)


__all__ = ["router", "get_media_manager"]
