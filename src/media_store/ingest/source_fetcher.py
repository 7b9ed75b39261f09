"""HTTP fetching of source content."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import AsyncIterator, Protocol

import httpx

from ..domain.models import MediaType
from ..exceptions import InputError, MediaIOError

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SourceStream:
    """An open source body together with its declared metadata."""

    url: str
    content_type: str
    size: int
    body: AsyncIterator[bytes]
    _response: httpx.Response | None = field(default=None, repr=False)
    _client: httpx.AsyncClient | None = field(default=None, repr=False)

    @property
    def media_type(self) -> MediaType:
        return MediaType.from_content_type(self.content_type)

    async def aclose(self) -> None:
        if self._response is not None:
            await self._response.aclose()
            self._response = None
        if self._client is not None:
            await self._client.aclose()
            self._client = None


class SourceFetcher(Protocol):
    async def open(self, url: str) -> SourceStream:
        """Start fetching ``url`` and return its body stream and headers."""


def _parse_headers(url: str, headers: httpx.Headers) -> tuple[str, int]:
    content_type = (headers.get("content-type") or "").split(";", 1)[0].strip().lower()
    if "/" not in content_type or not content_type.split("/", 1)[0]:
        raise InputError(f"No content type header provided by {url}")
    raw_length = headers.get("content-length")
    if raw_length is None:
        raise InputError(f"No content length header provided by {url}")
    try:
        size = int(raw_length)
    except ValueError as exc:
        raise InputError(f"Invalid content length {raw_length!r} from {url}") from exc
    if size < 0:
        raise InputError(f"Invalid content length {raw_length!r} from {url}")
    return content_type, size


@dataclass(slots=True)
class HttpSourceFetcher:
    """Open sources with ``httpx``; one client per opened stream."""

    timeout_seconds: float = 30.0
    transport: httpx.AsyncBaseTransport | None = None
    chunk_size: int = 64 * 1024

    async def open(self, url: str) -> SourceStream:
        client = httpx.AsyncClient(
            timeout=self.timeout_seconds,
            transport=self.transport,
            follow_redirects=True,
        )
        try:
            request = client.build_request("GET", url)
            response = await client.send(request, stream=True)
        except (httpx.InvalidURL, httpx.UnsupportedProtocol) as exc:
            await client.aclose()
            raise InputError(f"Malformed source URL {url!r}: {exc}") from exc
        except httpx.HTTPError as exc:
            await client.aclose()
            raise MediaIOError(f"Fetching {url} failed: {exc}") from exc

        try:
            if response.status_code >= 500:
                raise MediaIOError(f"Fetching {url} failed with status {response.status_code}")
            if response.status_code >= 400:
                raise InputError(f"Fetching {url} failed with status {response.status_code}")
            content_type, size = _parse_headers(url, response.headers)
        except BaseException:
            await response.aclose()
            await client.aclose()
            raise

        logger.debug(
            "source.opened",
            extra={"url": url, "content_type": content_type, "size": size},
        )
        return SourceStream(
            url=url,
            content_type=content_type,
            size=size,
            body=self._iter_body(url, response),
            _response=response,
            _client=client,
        )

    async def _iter_body(self, url: str, response: httpx.Response) -> AsyncIterator[bytes]:
        try:
            async for chunk in response.aiter_bytes(self.chunk_size):
                yield chunk
        except httpx.HTTPError as exc:
            raise MediaIOError(f"Reading body of {url} failed: {exc}") from exc


__all__ = ["HttpSourceFetcher", "SourceFetcher", "SourceStream"]
