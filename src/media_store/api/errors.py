"""Reusable error primitives for API exception handling."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from fastapi import Request, status
from fastapi.responses import JSONResponse

from ..exceptions import (
    ConflictError,
    InputError,
    MediaIOError,
    MediaStoreError,
    NotFoundError,
    ProcessingError,
)


@dataclass(slots=True)
class ApiError(Exception):
    """Structured application-level error for HTTP handlers."""

    status_code: int
    code: str
    message: str
    details: Mapping[str, Any] | None = None

    def to_response(self) -> JSONResponse:
        """Materialise the error into a ``JSONResponse`` instance."""

        body: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            body.update(self.details)
        return JSONResponse(status_code=self.status_code, content={"error": body})


async def api_error_handler(_: Request, exc: ApiError) -> JSONResponse:
    """Convert :class:`ApiError` exceptions into JSON payloads."""

    return exc.to_response()


def from_media_error(exc: MediaStoreError) -> ApiError:
    """Map a domain error onto its HTTP representation."""

    if isinstance(exc, ConflictError):
        return ApiError(
            status.HTTP_409_CONFLICT, "already_exists", str(exc), {"id": exc.media_id}
        )
    if isinstance(exc, NotFoundError):
        return ApiError(status.HTTP_404_NOT_FOUND, "not_found", str(exc))
    if isinstance(exc, InputError):
        return ApiError(status.HTTP_400_BAD_REQUEST, "invalid_input", str(exc))
    if isinstance(exc, ProcessingError):
        return ApiError(status.HTTP_422_UNPROCESSABLE_ENTITY, "unprocessable_media", str(exc))
    if isinstance(exc, MediaIOError):
        return ApiError(status.HTTP_502_BAD_GATEWAY, "io_error", str(exc))
    return ApiError(status.HTTP_500_INTERNAL_SERVER_ERROR, "internal_error", str(exc))


async def media_error_handler(request: Request, exc: MediaStoreError) -> JSONResponse:
    return from_media_error(exc).to_response()


__all__ = ["ApiError", "api_error_handler", "from_media_error", "media_error_handler"]
