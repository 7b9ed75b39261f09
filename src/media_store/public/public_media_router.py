"""Public media endpoints backing ``MediaEntry.get_url``."""

from fastapi import APIRouter

from ..media.public_media_links import PUBLIC_MEDIA_ROUTE
from ..media.public_media_service import PublicMediaService


def build_public_media_router(service: PublicMediaService) -> APIRouter:
    router = APIRouter(prefix=f"/{PUBLIC_MEDIA_ROUTE}", tags=["public-media"])

    @router.get("/{key:path}")
    def get_media(key: str):
        return service.open_media(key)

    return router
