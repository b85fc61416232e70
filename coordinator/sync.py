# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Synchronization of credential status between an external status tracking system, the remote
status service & the local credential references.

The caller provides a unique sync id & a source of status updates paged by a cursor. A pass
reads the stored cursor, gets one page of updates, applies every update remotely & locally
and stores the new cursor. The cursor is only stored once the whole page has been applied;
on any failure the next pass applies the same page again.
"""

import asyncio
import collections
import inspect
import logging
import time
from collections.abc import Callable, Mapping
from typing import Any, Protocol, runtime_checkable

from sqlalchemy.orm import sessionmaker

from common.logging.setup import ensure_log_id

import coordinator.db.reference as db_reference
import coordinator.db.sync_record as db_sync
from coordinator import models
from coordinator.exception import CredentialNotFoundError, IndexAllocatorConflictError, InvalidStatusUpdateError, StatusSyncError, SyncAbortedError
from coordinator.logging import CoordinatorOperationsLogEntry as LogEntry
from coordinator.status_matcher import match_credential_status
from coordinator.status_updater import RemoteStatusUpdater

_logger = logging.getLogger(__name__)


@runtime_checkable
class StatusUpdateSource(Protocol):
    """External system telling which credential status changed"""

    async def next_page(self, cursor: Any, limit: int) -> models.StatusUpdatePage:
        """
        Returns up to `limit` status updates following `cursor` and the cursor for the next page.
        The first call of a sync gets the cursor None. The returned cursor has to be json
        serializable; a `hasMore` entry tells whether more updates are available right now.
        """
        ...


class PageFunctionSource:
    """Status update source calling a plain function `(cursor, limit)`; either sync or async"""

    def __init__(self, page_function: Callable) -> None:
        self._page_function = page_function

    async def next_page(self, cursor: Any, limit: int) -> models.StatusUpdatePage:
        page = self._page_function(cursor, limit)
        if inspect.isawaitable(page):
            page = await page
        return page


def _to_page(page: Any) -> models.StatusUpdatePage:
    """Accepts a StatusUpdatePage, a tuple (updates, cursor) or a mapping with `updates` & `cursor`"""
    match page:
        case models.StatusUpdatePage():
            updates, cursor = page
        case Mapping() if "updates" in page:
            updates, cursor = page["updates"], page.get("cursor")
        case tuple() if len(page) == 2:
            updates, cursor = page
        case _:
            raise InvalidStatusUpdateError("Status update page must provide updates and a cursor.")
    if not isinstance(updates, (list, tuple)):
        raise InvalidStatusUpdateError('"updates" must be a list.')
    return models.StatusUpdatePage(list(updates), cursor)


def _abort_if_signaled(signal: asyncio.Event | None) -> None:
    if signal is not None and signal.is_set():
        raise SyncAbortedError()


class RollingWindowRateLimiter:
    """Allows at most `limit` starts within every rolling window of `interval` seconds"""

    def __init__(self, limit: int, interval: float) -> None:
        self._limit = limit
        self._interval = interval
        self._starts: collections.deque[float] = collections.deque()
        self._lock = asyncio.Lock()

    async def acquire(self) -> None:
        async with self._lock:
            while True:
                now = time.monotonic()
                while self._starts and now - self._starts[0] >= self._interval:
                    self._starts.popleft()
                if len(self._starts) < self._limit:
                    self._starts.append(now)
                    return
                await asyncio.sleep(self._interval - (now - self._starts[0]))


class StatusSynchronizer:
    def __init__(self, session_factory: sessionmaker, status_updater: RemoteStatusUpdater) -> None:
        """
        * session_factory: creates the sessions for the record stores; one session per store access
        * status_updater: reads credentials from the issuer & writes their status
        """
        self._session_factory = session_factory
        self.status_updater = status_updater

    async def _store(self, store_function: Callable, *args, **kwargs):
        """Runs a store function in a worker thread with a session of its own"""

        def run():
            with self._session_factory() as session:
                return store_function(session, *args, **kwargs)

        return await asyncio.to_thread(run)

    async def synchronize(
        self,
        sync_id: str,
        source: StatusUpdateSource | Callable,
        options: models.SyncOptions | None = None,
    ) -> models.SyncResult:
        """
        Runs a single sync pass; see module documentation.

        Raises
        * InvalidStatusUpdateError if any update of the page is malformed; nothing is applied
        * StatusSyncError for the first status update failing after its retry
        * SyncAbortedError if the signal of the options is set
        The stored cursor is not changed in any of these cases.
        """
        if not isinstance(sync_id, str) or not sync_id:
            raise ValueError('"sync_id" must be a non-empty string.')
        if not isinstance(source, StatusUpdateSource):
            if not callable(source):
                raise TypeError('"source" must be a status update source or a page function.')
            source = PageFunctionSource(source)
        options = options or models.SyncOptions()
        ensure_log_id()

        try:
            return await self._synchronize(sync_id, source, options)
        except Exception as e:
            _logger.error(
                LogEntry(
                    message=f"Status sync failed: {e}",
                    status=LogEntry.Status.error,
                    operation=LogEntry.Operation.status_sync,
                    step=LogEntry.Step.sync_progress,
                    sync_id=sync_id,
                ),
                exc_info=not isinstance(e, SyncAbortedError),
            )
            raise

    async def _synchronize(self, sync_id: str, source: StatusUpdateSource, options: models.SyncOptions) -> models.SyncResult:
        record = await self._store(db_sync.get, sync_id, create=True)
        _abort_if_signaled(options.signal)

        page = _to_page(await source.next_page(record.sync.cursor, options.limit))
        _logger.info(
            LogEntry(
                message="Got status update page.",
                status=LogEntry.Status.success,
                operation=LogEntry.Operation.status_sync,
                step=LogEntry.Step.sync_page,
                sync_id=sync_id,
                update_count=len(page.updates),
            )
        )

        updates = self._validate(sync_id, page.updates)
        update_count = await self._apply_all(sync_id, updates, options)
        _abort_if_signaled(options.signal)

        await self._store(
            db_sync.update,
            models.SyncState(id=sync_id, sequence=record.sync.sequence + 1, cursor=page.cursor),
        )
        _logger.info(
            LogEntry(
                message="Stored status sync cursor.",
                status=LogEntry.Status.success,
                operation=LogEntry.Operation.status_sync,
                step=LogEntry.Step.sync_cursor,
                sync_id=sync_id,
                update_count=update_count,
            )
        )
        return models.SyncResult(updateCount=update_count, hasMore=models.cursor_has_more(page.cursor))

    def _validate(self, sync_id: str, updates: list) -> list[models.StatusUpdate]:
        """All updates are validated before the first one is applied"""
        validated = []
        for position, update in enumerate(updates):
            try:
                validated.append(models.parse_status_update(update))
            except InvalidStatusUpdateError as e:
                _logger.warning(
                    LogEntry(
                        message=f"Invalid status update at position {position}.",
                        status=LogEntry.Status.error,
                        operation=LogEntry.Operation.status_sync,
                        step=LogEntry.Step.sync_validation,
                        sync_id=sync_id,
                    )
                )
                e.details["position"] = position
                raise
        return validated

    async def _apply_all(self, sync_id: str, updates: list[models.StatusUpdate], options: models.SyncOptions) -> int:
        """
        Applies the updates with at most `options.concurrency` at the same time.
        The first failure stops starting further updates; the ones in progress are awaited, then the failure is raised.
        """
        if not updates:
            return 0
        limiter = RollingWindowRateLimiter(options.rate_limit, options.rate_interval)
        pending = iter(updates)
        failed = asyncio.Event()
        errors: list[Exception] = []
        applied = 0

        async def worker() -> None:
            nonlocal applied
            for update in pending:
                if failed.is_set():
                    return
                try:
                    _abort_if_signaled(options.signal)
                    await limiter.acquire()
                    if failed.is_set():
                        return
                    await self._apply_with_retry(update, options)
                except Exception as e:
                    if not isinstance(e, SyncAbortedError):
                        _logger.error(
                            LogEntry(
                                message=f"Could not sync status for credential ID {update.credential_id}.",
                                status=LogEntry.Status.error,
                                operation=LogEntry.Operation.status_sync,
                                step=LogEntry.Step.sync_credential,
                                sync_id=sync_id,
                                credential_id=update.credential_id,
                                failed_step=getattr(e, "step", None),
                            )
                        )
                    errors.append(e)
                    failed.set()
                    return
                applied += 1

        await asyncio.gather(*(worker() for _ in range(min(options.concurrency, len(updates)))))
        if errors:
            raise errors[0]
        return applied

    async def _apply_with_retry(self, update: models.StatusUpdate, options: models.SyncOptions) -> None:
        try:
            await self._apply(update, options, use_embedded_reference=True)
        except SyncAbortedError:
            raise
        except Exception as e:
            _logger.info(f"Retrying status update of credential ID {update.credential_id}: {e}")
            # the embedded reference may be outdated, the retry reads the stored one
            await self._apply(update, options, use_embedded_reference=False)

    async def _apply(self, update: models.StatusUpdate, options: models.SyncOptions, use_embedded_reference: bool) -> None:
        credential_id = update.credential_id
        signal = options.signal
        step = "fetch"
        try:
            _abort_if_signaled(signal)
            credential, reference, from_store = await self._resolve(update, options, use_embedded_reference)
            _abort_if_signaled(signal)

            index_allocator = None
            if credential is not None:
                step = "allocate"
                index_allocator = _reconcile_index_allocator(update, reference)

                step = "match"
                credential_status = match_credential_status(credential, update.status.credentialStatus, update.expand)

                # remote before local; a crash in between is repaired by the next pass
                step = "remote_update"
                await self.status_updater.update_status(
                    credential_id,
                    credential_status,
                    update.status.value,
                    update.updateStatusCapability,
                    index_allocator=index_allocator,
                )
                _abort_if_signaled(signal)

            if update.referenceUpdate is not None:
                step = "reference_update"
                await self._update_reference(reference, update.referenceUpdate, index_allocator, skip_unchanged=from_store)
        except SyncAbortedError:
            raise
        except Exception as e:
            raise StatusSyncError(credential_id, step) from e

    async def _resolve(
        self,
        update: models.StatusUpdate,
        options: models.SyncOptions,
        use_embedded_reference: bool,
    ) -> tuple[dict | None, models.CredentialReference, bool]:
        """
        Gets the credential & its reference concurrently. The credential is None if it is unknown and that is ignored.

        The embedded reference is only used if the update brings no index allocator; an allocator is
        always checked against the stored one before the remote write. The last value returned tells
        whether the reference was read from the store.
        """
        credential_id = update.credential_id

        async def get_credential() -> dict | None:
            try:
                return await self.status_updater.get_credential(credential_id, update.getCredentialCapability)
            except CredentialNotFoundError:
                if not options.ignore_credential_not_found:
                    raise
                _logger.info(f"Credential ID {credential_id} not found, skipping remote status update.")
                return None

        async def get_reference() -> tuple[models.CredentialReference, bool]:
            embedded = update.embedded_reference
            if use_embedded_reference and embedded is not None and update.status.indexAllocator is None:
                return embedded, False
            record = await self._store(db_reference.get, credential_id)
            return record.reference, True

        results = await asyncio.gather(get_credential(), get_reference(), return_exceptions=True)
        for result in results:
            if isinstance(result, BaseException):
                raise result
        credential, (reference, from_store) = results
        return credential, reference, from_store

    async def _update_reference(
        self,
        reference: models.CredentialReference,
        reference_update: dict,
        index_allocator: str | None,
        skip_unchanged: bool,
    ) -> None:
        """
        Writes the merged reference with the next sequence. An unchanged merge is only skipped for a
        reference read from the store; an embedded one is written so the sequence gate rejects it if outdated.
        """
        current = reference.model_dump(mode="json", exclude_none=True)
        merged = {**current, **reference_update, "credentialId": reference.credentialId, "sequence": reference.sequence}
        if index_allocator is not None:
            merged.setdefault("indexAllocator", index_allocator)
        if merged == current and skip_unchanged:
            _logger.debug(f"Reference of credential ID {reference.credentialId} is up to date.")
            return
        merged["sequence"] = reference.sequence + 1
        await self._store(db_reference.update, models.CredentialReference.model_validate(merged))


def _reconcile_index_allocator(update: models.StatusUpdate, reference: models.CredentialReference) -> str | None:
    """The stored index allocator wins; a different one given with the update is a conflict"""
    requested = update.status.indexAllocator
    stored = reference.indexAllocator
    if stored is None:
        return requested
    if requested is not None and requested != stored:
        raise IndexAllocatorConflictError(
            f'Status update for credential ID "{reference.credentialId}" has index allocator "{requested}", stored is "{stored}".',
            credential_id=reference.credentialId,
        )
    return stored
