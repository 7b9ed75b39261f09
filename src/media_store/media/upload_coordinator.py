"""Insert protocol: stage while hashing, then promote or discard.

The final key of every variant depends on the content hash, which is only
known once the whole body has been consumed. Staging therefore starts
immediately under a random, time-stamped staging namespace; hashing runs
concurrently on its own consumption of the source. Once the identity is
known the staged objects are either moved to their content-addressed keys
or deleted.

Promotion moves objects one at a time. The canonical (first) variant is
moved with a no-clobber move and acts as the arbiter between racing inserts
of identical content; the remaining variants follow. A failure in between
leaves a partially promoted entry, which is tolerated because the canonical
variant's presence is what "entry exists" means.

Staged objects of failed inserts, and of conflict cleanups that fail, are
left behind and removed by :mod:`media_store.media.staging_cleanup`.
"""

from __future__ import annotations

import asyncio
from contextlib import aclosing
from dataclasses import dataclass, field
from enum import Enum
from functools import partial
from typing import Any, Awaitable, Literal

import structlog

from ..domain.models import (
    ByteStream,
    MediaEntry,
    MediaEntryIdentifier,
    MediaFileIdentifier,
    UploadStopCallback,
    VariantPlanner,
    VariantSetting,
)
from ..exceptions import ConflictError, MediaIOError, ObjectExistsError
from ..infrastructure.media_storage import BackingStore
from ..ingest.source_fetcher import SourceFetcher, SourceStream
from ..ingest.stream_tee import StreamTee
from .hashing import ContentHasher
from .identifiers import IdentifierCodec, StagingToken
from .variants import default_variant_planner, validate_plan

logger = structlog.stdlib.get_logger(__name__)


class UploadState(str, Enum):
    FETCHING = "fetching"
    STAGING = "staging"
    HASHING = "hashing"
    PROMOTING = "promoting"
    DISCARDING = "discarding"
    DONE = "done"
    FAILED = "failed"


@dataclass(slots=True, eq=False)
class UploadCompletion:
    """Single-assignment completion signal of one insert."""

    token: str
    on_upload_stop: UploadStopCallback | None = None
    state: UploadState = UploadState.FETCHING
    log: Any = field(default=None, repr=False)
    _future: asyncio.Future = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if self.log is None:
            self.log = logger
        self._future = asyncio.get_running_loop().create_future()
        # Outcomes are consumed through wait() or the callback, maybe never.
        self._future.add_done_callback(
            lambda fut: fut.cancelled() or fut.exception()
        )

    @property
    def future(self) -> asyncio.Future:
        return self._future

    def done(self) -> bool:
        return self._future.done()

    def transition(self, state: UploadState) -> None:
        self.log.debug("upload.state", previous=self.state.value, state=state.value)
        self.state = state

    def resolve(self, error: BaseException | None) -> bool:
        """Deliver the outcome; only the first call has an effect."""
        if self._future.done():
            return False
        if error is None:
            self._future.set_result(None)
        else:
            self._future.set_exception(error)
        if self.on_upload_stop is not None:
            try:
                self.on_upload_stop(error)
            except Exception:
                self.log.exception("upload.callback.failed")
        return True


@dataclass(slots=True, eq=False)
class UploadHandle:
    """Entry descriptor of an insert plus its completion signal.

    ``entry`` is available as soon as the identity is known;
    ``entry.get_url()`` is only meaningful after :meth:`wait` returned
    without error.
    """

    entry: MediaEntry
    completion: UploadCompletion

    @property
    def id(self) -> str:
        return self.entry.id

    @property
    def state(self) -> UploadState:
        return self.completion.state

    def done(self) -> bool:
        return self.completion.done()

    async def wait(self) -> None:
        """Wait for promotion; raises ``ConflictError`` or the failure.

        Cancelling the waiter does not cancel the promotion itself.
        """
        await asyncio.shield(self.completion.future)


def _task_error(task: asyncio.Task) -> BaseException | None:
    if not task.done() or task.cancelled():
        return None
    return task.exception()


@dataclass(slots=True)
class UploadCoordinator:
    store: BackingStore
    codec: IdentifierCodec
    fetcher: SourceFetcher
    hasher: ContentHasher = field(default_factory=ContentHasher)
    default_planner: VariantPlanner = default_variant_planner
    fan_out: Literal["refetch", "tee"] = "refetch"
    tee_buffer_chunks: int = 16
    _background: set[asyncio.Task] = field(init=False, default_factory=set)

    async def insert(
        self,
        url: str,
        *,
        variant_planner: VariantPlanner | None = None,
        on_upload_stop: UploadStopCallback | None = None,
    ) -> UploadHandle:
        token = StagingToken.new()
        log = logger.bind(token=token.value, url=url)
        completion = UploadCompletion(token=token.value, on_upload_stop=on_upload_stop, log=log)

        try:
            source = await self.fetcher.open(url)
        except BaseException as exc:
            self._fail(completion, exc)
            raise
        try:
            planner = variant_planner or self.default_planner
            plan = validate_plan(
                planner(type=source.media_type, content_type=source.content_type, size=source.size)
            )
        except BaseException as exc:
            await source.aclose()
            self._fail(completion, exc)
            raise

        temp_keys = [self.codec.staging_key(token, setting.name) for setting in plan]
        completion.transition(UploadState.STAGING)
        hash_stream, staging, tee = self._start_staging(source, plan, temp_keys)
        staging.add_done_callback(partial(self._on_staging_done, completion))

        completion.transition(UploadState.HASHING)
        try:
            async with aclosing(hash_stream):
                hashes = await self.hasher.hash_for(
                    source.media_type,
                    hash_stream,
                    byte_size=source.size,
                    content_type=source.content_type,
                )
        except BaseException as exc:
            # A failed stage is the root cause of whatever hashing saw next.
            error = _task_error(staging) or exc
            staging.cancel()
            self._fail(completion, error)
            if error is exc or isinstance(exc, asyncio.CancelledError):
                raise
            raise error from exc
        finally:
            if tee is None:
                await source.aclose()
            else:
                # Transforms may stop early; the tee lives until both sides finished.
                self._spawn(self._close_after(staging, tee, source))

        identifier = MediaEntryIdentifier(type=source.media_type, hashes=hashes)
        media_id = self.codec.encode_id(identifier)
        final_keys = [
            self.codec.file_key(MediaFileIdentifier.of(identifier, setting.name))
            for setting in plan
        ]
        entry = MediaEntry(
            id=media_id,
            type=identifier.type,
            files={setting.name: key for setting, key in zip(plan, final_keys)},
            store=self.store,
        )
        handle = UploadHandle(entry=entry, completion=completion)
        log = log.bind(media_id=media_id)
        completion.log = log

        if completion.done():
            # Staging already failed; nothing is eligible for promotion.
            return handle

        try:
            exists = await self.store.exists(final_keys[0])
        except BaseException as exc:
            staging.cancel()
            self._fail(completion, exc)
            raise

        if exists:
            completion.transition(UploadState.DISCARDING)
            completion.resolve(ConflictError(media_id))
            log.info("upload.conflict", stage="existence_check")
            self._spawn(self._discard(completion, staging, temp_keys))
        else:
            self._spawn(self._promote(completion, staging, temp_keys, final_keys, media_id))
        return handle

    async def drain(self) -> None:
        """Wait until every background promotion and cleanup finished."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    def _start_staging(
        self,
        source: SourceStream,
        plan: list[VariantSetting],
        temp_keys: list[str],
    ) -> tuple[ByteStream, asyncio.Task, StreamTee | None]:
        if self.fan_out == "tee":
            tee = StreamTee(
                source.body,
                consumers=len(plan) + 1,
                max_buffered_chunks=self.tee_buffer_chunks,
            )
            hash_stream, *branches = tee.branches()
            jobs = [
                self._stage_variant(setting, key, stream=branch)
                for setting, key, branch in zip(plan, temp_keys, branches)
            ]
            return hash_stream, self._spawn(self._stage_all(jobs)), tee

        jobs = [
            self._stage_variant(setting, key, url=source.url)
            for setting, key in zip(plan, temp_keys)
        ]
        return source.body, self._spawn(self._stage_all(jobs)), None

    async def _stage_variant(
        self,
        setting: VariantSetting,
        key: str,
        *,
        stream: ByteStream | None = None,
        url: str | None = None,
    ) -> None:
        source: SourceStream | None = None
        if stream is None:
            # Independent request per variant: a transform may read the
            # source at its own pace or stop before the end.
            source = await self.fetcher.open(url)
            stream = source.body
        try:
            async with aclosing(stream), aclosing(setting.transform(stream)) as derived:
                await self.store.write(key, derived, setting.content_type)
        finally:
            if source is not None:
                await source.aclose()

    async def _stage_all(self, jobs: list[Awaitable[None]]) -> None:
        tasks = [asyncio.ensure_future(job) for job in jobs]
        try:
            done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
            for task in done:
                if not task.cancelled() and task.exception() is not None:
                    raise task.exception()
        except asyncio.CancelledError:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    async def _close_after(self, staging: asyncio.Task, tee: StreamTee, source: SourceStream) -> None:
        await asyncio.wait([staging])
        await tee.aclose()
        await source.aclose()

    def _on_staging_done(self, completion: UploadCompletion, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is None:
            return
        if completion.done():
            completion.log.warning("upload.staging.failed_after_outcome", error=str(error))
            return
        completion.log.warning("upload.staging.failed", error=str(error))
        self._fail(completion, error)

    async def _promote(
        self,
        completion: UploadCompletion,
        staging: asyncio.Task,
        temp_keys: list[str],
        final_keys: list[str],
        media_id: str,
    ) -> None:
        try:
            await staging
        except Exception as exc:
            self._fail(completion, exc)
            return

        completion.transition(UploadState.PROMOTING)
        try:
            await self.store.move(temp_keys[0], final_keys[0], overwrite=False)
        except ObjectExistsError:
            completion.transition(UploadState.DISCARDING)
            completion.resolve(ConflictError(media_id))
            completion.log.info("upload.conflict", stage="promotion")
            await self._delete_staged(completion, temp_keys)
            completion.transition(UploadState.DONE)
            return
        except Exception as exc:
            self._fail(completion, exc)
            return

        for temp_key, final_key in zip(temp_keys[1:], final_keys[1:]):
            try:
                await self.store.move(temp_key, final_key, overwrite=True)
            except Exception as exc:
                completion.log.error("upload.promotion.partial", key=final_key, error=str(exc))
                self._fail(completion, exc)
                return

        completion.transition(UploadState.DONE)
        completion.resolve(None)
        completion.log.info("upload.promoted", variants=len(final_keys))

    async def _discard(
        self,
        completion: UploadCompletion,
        staging: asyncio.Task,
        temp_keys: list[str],
    ) -> None:
        try:
            await staging
        except Exception as exc:
            completion.log.warning("upload.discard.staging_failed", error=str(exc))
        await self._delete_staged(completion, temp_keys)
        completion.transition(UploadState.DONE)

    async def _delete_staged(self, completion: UploadCompletion, temp_keys: list[str]) -> None:
        for key in temp_keys:
            try:
                await self.store.delete(key)
            except Exception as exc:
                # Best effort; stale staging objects are collected by age.
                completion.log.warning("upload.discard.failed", key=key, error=str(exc))

    def _fail(self, completion: UploadCompletion, error: BaseException) -> None:
        if completion.done():
            return
        if isinstance(error, asyncio.CancelledError):
            error = MediaIOError("insert aborted before completion")
        completion.transition(UploadState.FAILED)
        completion.resolve(error)
        completion.log.warning("upload.failed", error=str(error), error_type=type(error).__name__)

    def _spawn(self, coro: Awaitable[None]) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task


__all__ = ["UploadCompletion", "UploadCoordinator", "UploadHandle", "UploadState"]
