from __future__ import annotations

import httpx
import pytest

from media_store.domain.models import MediaType
from media_store.exceptions import InputError, MediaIOError
from media_store.ingest.source_fetcher import HttpSourceFetcher


@pytest.mark.asyncio
async def test_open_reports_headers_and_streams_body(origin, fetcher: HttpSourceFetcher) -> None:
    url = origin.add("http://origin.test/a.txt", "text/plain; charset=utf-8", b"0123456789abcdef")

    source = await fetcher.open(url)
    try:
        body = b"".join([chunk async for chunk in source.body])
    finally:
        await source.aclose()

    assert source.content_type == "text/plain"
    assert source.size == 16
    assert source.media_type is MediaType.FILE
    assert body == b"0123456789abcdef"


@pytest.mark.asyncio
async def test_missing_content_type_is_input_error() -> None:
    transport = httpx.MockTransport(lambda request: httpx.Response(200, content=b"abc"))

    with pytest.raises(InputError, match="content type"):
        await HttpSourceFetcher(transport=transport).open("http://origin.test/x")


@pytest.mark.asyncio
async def test_missing_content_length_is_input_error() -> None:
    transport = httpx.MockTransport(
        lambda request: httpx.Response(
            200, headers={"content-type": "text/plain"}, stream=httpx.ByteStream(b"abc")
        )
    )

    with pytest.raises(InputError, match="content length"):
        await HttpSourceFetcher(transport=transport).open("http://origin.test/x")


@pytest.mark.asyncio
async def test_client_errors_are_input_errors(fetcher: HttpSourceFetcher) -> None:
    with pytest.raises(InputError):
        await fetcher.open("http://origin.test/missing")


@pytest.mark.asyncio
async def test_server_errors_are_retryable(origin, fetcher: HttpSourceFetcher) -> None:
    origin.statuses["http://origin.test/flaky"] = 503

    with pytest.raises(MediaIOError) as excinfo:
        await fetcher.open("http://origin.test/flaky")

    assert excinfo.value.retryable is True


@pytest.mark.asyncio
async def test_transport_failure_is_io_error() -> None:
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(MediaIOError):
        await HttpSourceFetcher(transport=httpx.MockTransport(refuse)).open("http://origin.test/x")


@pytest.mark.asyncio
async def test_malformed_url_is_input_error() -> None:
    with pytest.raises(InputError):
        await HttpSourceFetcher().open("not-a-url")
