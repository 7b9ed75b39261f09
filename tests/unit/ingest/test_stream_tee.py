from __future__ import annotations

import asyncio

import pytest

from media_store.exceptions import MediaIOError
from media_store.ingest.stream_tee import StreamTee


async def _numbers(count: int):
    for index in range(count):
        yield f"{index};".encode()


async def _collect(stream) -> bytes:
    return b"".join([chunk async for chunk in stream])


@pytest.mark.asyncio
async def test_every_branch_sees_the_whole_stream() -> None:
    tee = StreamTee(_numbers(50), consumers=3, max_buffered_chunks=2)

    results = await asyncio.gather(*(_collect(branch) for branch in tee.branches()))

    expected = b"".join(f"{index};".encode() for index in range(50))
    assert results == [expected, expected, expected]


@pytest.mark.asyncio
async def test_closed_branch_does_not_block_others() -> None:
    tee = StreamTee(_numbers(100), consumers=2, max_buffered_chunks=1)
    quitter, reader = tee.branches()

    async def take_one() -> bytes:
        first = await quitter.__anext__()
        await quitter.aclose()
        return first

    first, everything = await asyncio.wait_for(asyncio.gather(take_one(), _collect(reader)), timeout=5)

    assert first == b"0;"
    assert everything.endswith(b"99;")


@pytest.mark.asyncio
async def test_source_errors_reach_every_branch() -> None:
    async def broken():
        yield b"a"
        raise MediaIOError("connection reset")

    tee = StreamTee(broken(), consumers=2)

    results = await asyncio.gather(*(_collect(branch) for branch in tee.branches()), return_exceptions=True)

    assert all(isinstance(result, MediaIOError) for result in results)


@pytest.mark.asyncio
async def test_aclose_releases_waiting_consumers() -> None:
    gate = asyncio.Event()

    async def stalled():
        yield b"a"
        await gate.wait()
        yield b"b"

    tee = StreamTee(stalled(), consumers=1)
    (branch,) = tee.branches()
    reader = asyncio.create_task(_collect(branch))
    await asyncio.sleep(0.01)

    await tee.aclose()

    with pytest.raises(MediaIOError):
        await asyncio.wait_for(reader, timeout=5)


@pytest.mark.unit
def test_tee_needs_a_consumer() -> None:
    with pytest.raises(ValueError):
        StreamTee(_numbers(1), consumers=0)
