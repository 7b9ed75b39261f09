from __future__ import annotations

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from media_store.config import MediaStoreConfig
from media_store.main import create_app
from media_store.media.media_manager import MediaManager
from media_store.media.variants import image_variants_planner
from tests.helpers.media_samples import checkerboard, encode

TEXT_URL = "http://origin.test/readme.txt"


@pytest.fixture()
def client(tmp_path: Path, store, codec, fetcher) -> TestClient:
    config = MediaStoreConfig(
        storage_root=tmp_path / "store",
        public_base_url="http://testserver",
        staging_cleanup_interval_seconds=0,
    )
    manager = MediaManager(
        store=store, codec=codec, fetcher=fetcher, default_planner=image_variants_planner
    )
    with TestClient(create_app(config, manager=manager)) as test_client:
        yield test_client


def test_insert_and_fetch_entry(client: TestClient, origin) -> None:
    origin.add(TEXT_URL, "text/plain", b"hello")

    created = client.post("/api/media", json={"url": TEXT_URL, "wait": True})

    assert created.status_code == 201
    body = created.json()
    assert body["type"] == "file"
    assert body["variants"] == ["original"]
    assert body["status"] == "done"

    fetched = client.get(f"/api/media/{body['id']}")
    assert fetched.status_code == 200
    url = fetched.json()["urls"]["original"]
    served = client.get(url)
    assert served.status_code == 200
    assert served.content == b"hello"
    assert served.headers["content-type"].startswith("text/plain")


def test_duplicate_insert_conflicts(client: TestClient, origin) -> None:
    origin.add(TEXT_URL, "text/plain", b"hello")
    first = client.post("/api/media", json={"url": TEXT_URL, "wait": True}).json()

    second = client.post("/api/media", json={"url": TEXT_URL, "wait": True})

    assert second.status_code == 409
    assert second.json()["error"] == {
        "code": "already_exists",
        "message": f"media entry '{first['id']}' already exists",
        "id": first["id"],
    }


def test_insert_without_wait_is_accepted(client: TestClient, origin) -> None:
    payload = encode(checkerboard(), "PNG")
    origin.add("http://origin.test/board.png", "image/png", payload)

    response = client.post("/api/media", json={"url": "http://origin.test/board.png"})

    assert response.status_code == 202
    assert response.json()["id"].startswith("image.")
    assert response.json()["variants"] == ["original", "thumb", "webp100w"]


def test_insert_errors_map_to_status_codes(client: TestClient, origin) -> None:
    origin.statuses["http://origin.test/down"] = 502
    origin.add("http://origin.test/bad.png", "image/png", b"garbage")

    assert client.post("/api/media", json={"url": "http://origin.test/missing"}).status_code == 400
    assert client.post("/api/media", json={"url": "http://origin.test/down"}).status_code == 502
    assert client.post("/api/media", json={"url": "http://origin.test/bad.png"}).status_code == 422


def test_get_unknown_and_malformed_ids(client: TestClient) -> None:
    missing = client.get("/api/media/file.AAAA")
    malformed = client.get("/api/media/image.onlyone")

    assert missing.status_code == 404
    assert missing.json()["error"]["code"] == "not_found"
    assert malformed.status_code == 400
    assert malformed.json()["error"]["code"] == "invalid_input"


def test_query_by_url_and_id(client: TestClient, origin) -> None:
    payload = encode(checkerboard(), "PNG")
    origin.add("http://origin.test/board.png", "image/png", payload)
    created = client.post("/api/media", json={"url": "http://origin.test/board.png", "wait": True}).json()

    by_url = client.post("/api/media/query", json={"url": "http://origin.test/board.png"})
    by_id = client.post("/api/media/query", json={"id": created["id"]})

    assert by_url.status_code == 200
    assert by_url.json() == by_id.json()
    hits = by_url.json()["hits"]
    assert [hit["entry"]["id"] for hit in hits] == [created["id"]]
    assert hits[0]["similarity"] == 1.0
    assert sorted(hits[0]["entry"]["urls"]) == ["original", "thumb", "webp100w"]


def test_query_requires_one_selector(client: TestClient) -> None:
    assert client.post("/api/media/query", json={}).status_code == 422


def test_public_route_404(client: TestClient) -> None:
    assert client.get("/public/media/file/none/original").status_code == 404
    assert client.get("/public/media/temp/.hidden").status_code == 404
