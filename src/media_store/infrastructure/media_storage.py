"""Abstractions over media storage backends."""

from __future__ import annotations

from typing import AsyncIterator, Protocol, runtime_checkable


@runtime_checkable
class BackingStore(Protocol):
    """Object storage used for staged and final media objects.

    Keys are ``/`` delimited strings that already include the store-wide
    prefix. Implementations raise :class:`~media_store.exceptions.MediaIOError`
    for transport or filesystem failures.
    """

    def list_by_prefix(self, prefix: str) -> AsyncIterator[str]:
        """Yield every object key starting with ``prefix``."""

    def open_read(self, key: str) -> AsyncIterator[bytes]:
        """Stream the content stored under ``key``."""

    async def write(self, key: str, chunks: AsyncIterator[bytes], content_type: str) -> int:
        """Persist ``chunks`` under ``key`` and return the number of bytes written."""

    async def exists(self, key: str) -> bool:
        """Return whether an object is stored under ``key``."""

    async def move(self, source: str, destination: str, *, overwrite: bool = False) -> None:
        """Rename ``source`` to ``destination``.

        With ``overwrite=False`` the move is no-clobber and raises
        :class:`~media_store.exceptions.ObjectExistsError` when the
        destination is taken.
        """

    async def delete(self, key: str) -> None:
        """Remove ``key``; missing objects are ignored."""

    def public_url(self, key: str) -> str:
        """Return the public URL of ``key``."""


__all__ = ["BackingStore"]
