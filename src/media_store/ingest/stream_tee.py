"""Split one byte stream between several independent consumers.

Each branch gets a bounded queue. The pump only reads the next chunk once
every attached branch has room, so the slowest consumer sets the pace for
all of them. A branch that is closed early is detached and no longer holds
the others back.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import AsyncIterator

from ..exceptions import MediaIOError

_END = object()


@dataclass(slots=True, eq=False)
class _Branch:
    tee: "StreamTee"
    queue: asyncio.Queue
    detached: bool = False
    finished: bool = False

    def __aiter__(self) -> "_Branch":
        return self

    async def __anext__(self) -> bytes:
        if self.finished or self.detached:
            raise StopAsyncIteration
        self.tee._ensure_pump()
        item = await self.queue.get()
        if item is _END:
            self.finished = True
            raise StopAsyncIteration
        if isinstance(item, BaseException):
            self.finished = True
            raise item
        return item

    async def aclose(self) -> None:
        self.detach()

    def detach(self) -> None:
        self.detached = True
        # Unblock a pump waiting on this branch's full queue.
        while not self.queue.empty():
            self.queue.get_nowait()


@dataclass(slots=True)
class StreamTee:
    source: AsyncIterator[bytes]
    consumers: int
    max_buffered_chunks: int = 16
    _branches: list[_Branch] = field(init=False, default_factory=list)
    _pump: asyncio.Future | None = field(init=False, default=None)

    def __post_init__(self) -> None:
        if self.consumers < 1:
            raise ValueError("StreamTee needs at least one consumer")
        self._branches = [
            _Branch(tee=self, queue=asyncio.Queue(maxsize=self.max_buffered_chunks))
            for _ in range(self.consumers)
        ]

    def branches(self) -> list[AsyncIterator[bytes]]:
        return list(self._branches)

    def _ensure_pump(self) -> None:
        if self._pump is None:
            self._pump = asyncio.create_task(self._run_pump())

    async def _run_pump(self) -> None:
        try:
            async for chunk in self.source:
                if all(branch.detached for branch in self._branches):
                    break
                for branch in self._branches:
                    if not branch.detached:
                        await branch.queue.put(chunk)
        except Exception as exc:  # handed to every consumer
            await self._broadcast(exc)
        else:
            await self._broadcast(_END)

    async def _broadcast(self, item: object) -> None:
        for branch in self._branches:
            if not branch.detached:
                await branch.queue.put(item)

    async def aclose(self) -> None:
        """Stop the pump; attached consumers still waiting receive an error."""
        if self._pump is not None:
            if self._pump.done():
                return
            self._pump.cancel()
            try:
                await self._pump
            except asyncio.CancelledError:
                pass
        else:
            # Never started; later reads must not spawn a pump on a closed source.
            self._pump = asyncio.get_running_loop().create_future()
            self._pump.cancel()
        for branch in self._branches:
            if branch.detached or branch.finished:
                continue
            while not branch.queue.empty():
                branch.queue.get_nowait()
            branch.queue.put_nowait(MediaIOError("source stream closed before it was exhausted"))


__all__ = ["StreamTee"]
