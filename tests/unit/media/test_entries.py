from __future__ import annotations

import pytest

from media_store.domain.models import MediaEntry, MediaType
from media_store.exceptions import NotFoundError, VariantNotFoundError


@pytest.mark.unit
def test_get_url_of_missing_variant(store) -> None:
    entry = MediaEntry(
        id="file.abc",
        type=MediaType.FILE,
        files={"original": "file/abc/original"},
        store=store,
    )

    with pytest.raises(VariantNotFoundError) as excinfo:
        entry.get_url("doesNotExist")

    assert str(excinfo.value) == "Variant doesNotExist does not exist; available variants: original"
    assert isinstance(excinfo.value, NotFoundError)


@pytest.mark.unit
def test_entry_urls_point_at_public_route(store) -> None:
    entry = MediaEntry(
        id="file.abc",
        type=MediaType.FILE,
        files={"original": "file/abc/original"},
        store=store,
    )

    assert entry.get_url() == "http://testserver/public/media/file/abc/original"
    assert entry.to_dict() == {
        "id": "file.abc",
        "type": "file",
        "variants": ["original"],
        "urls": {"original": "http://testserver/public/media/file/abc/original"},
    }


@pytest.mark.unit
def test_media_type_from_content_type() -> None:
    assert MediaType.from_content_type("image/png") is MediaType.IMAGE
    assert MediaType.from_content_type("Video/MP4") is MediaType.VIDEO
    assert MediaType.from_content_type("application/pdf") is MediaType.FILE
