"""
Sync coordinator.

Pushes dirty UserCoin records to the remote collection service. Local
writes never wait for it: mutations call schedule(), which enqueues a
snapshot on a bounded asyncio.Queue drained by background workers.

A record only becomes clean after the server acknowledged the exact
version that was sent. Anything that fails stays dirty and is picked up
by the next sync_all()/push_all().
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from coincatalog.models.failure import KnownError, NotFoundError
from coincatalog.models.user_coin import UserCoin, utcnow
from coincatalog.services.remote_client import RemoteCollectionClient
from coincatalog.storage.base import CollectionStorage

logger = logging.getLogger(__name__)

ChangeListener = Callable[[str], Awaitable[None]]


class SyncState(str, Enum):
    CLEAN = "clean"
    DIRTY = "dirty"
    IN_FLIGHT = "in_flight"


@dataclass(frozen=True, slots=True)
class SyncReport:
    attempted: int = 0
    succeeded: int = 0
    failed: int = 0


class SyncCoordinator:
    """
    Background push of local changes.

    Args:
        storage: Local store the records live in
        remote: Client for the remote collection service
        queue_size: Bound on queued snapshots; extra snapshots are dropped
            and left for the next full sync
        workers: Number of queue consumers. One keeps pushes in mutation order.
    """

    def __init__(
        self,
        storage: CollectionStorage,
        remote: RemoteCollectionClient,
        queue_size: int = 256,
        workers: int = 1,
    ) -> None:
        self._storage = storage
        self.remote = remote
        self._queue_size = queue_size
        self._worker_count = max(1, workers)
        self._queue: asyncio.Queue[UserCoin] | None = None
        self._workers: list[asyncio.Task[None]] = []
        self._in_flight: set[str] = set()
        self._listeners: list[ChangeListener] = []

    @property
    def running(self) -> bool:
        return bool(self._workers)

    def add_listener(self, listener: ChangeListener) -> None:
        """Register a callback run with the catalog coin id of every record sync changed."""
        self._listeners.append(listener)

    async def _notify(self, catalog_coin_ids: Iterable[str]) -> None:
        for catalog_coin_id in set(catalog_coin_ids):
            for listener in self._listeners:
                await listener(catalog_coin_id)

    # --- Lifecycle ---

    async def start(self) -> None:
        if self._workers:
            return
        self._queue = asyncio.Queue(maxsize=self._queue_size)
        self._workers = [
            asyncio.create_task(self._worker(), name=f"sync-worker-{i}")
            for i in range(self._worker_count)
        ]
        logger.info("Sync coordinator started with %d worker(s)", self._worker_count)

    async def stop(self, drain: bool = True) -> None:
        if not self._workers:
            return
        if drain:
            await self.join()
        for task in self._workers:
            task.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        self._queue = None
        logger.info("Sync coordinator stopped")

    async def join(self) -> None:
        """Wait until every queued snapshot has been processed."""
        if self._queue is not None:
            await self._queue.join()

    # --- Scheduling ---

    def schedule(self, coin: UserCoin) -> bool:
        """
        Queue a snapshot of `coin` for push. Never blocks.

        Returns False when the snapshot was not queued; the record stays
        dirty either way.
        """
        if self._queue is None:
            logger.debug("Sync not running, %s left dirty", coin.id)
            return False
        try:
            self._queue.put_nowait(coin.snapshot())
        except asyncio.QueueFull:
            logger.warning("Sync queue full, %s left for next full sync", coin.id)
            return False
        return True

    async def _worker(self) -> None:
        assert self._queue is not None
        queue = self._queue
        while True:
            coin = await queue.get()
            try:
                await self.sync_one(coin)
            except Exception as e:
                logger.exception("Unexpected error syncing %s: %s", coin.id, e)
            finally:
                queue.task_done()

    def state_of(self, coin: UserCoin) -> SyncState:
        if coin.id in self._in_flight:
            return SyncState.IN_FLIGHT
        if coin.needs_sync:
            return SyncState.DIRTY
        return SyncState.CLEAN

    # --- Push ---

    async def sync_one(self, coin: UserCoin) -> bool:
        """
        Push one record snapshot.

        Returns True if the server acknowledged it. Failures are logged,
        never raised; the record stays dirty.
        """
        if not self.remote.is_authenticated:
            logger.debug("No credential, %s left dirty", coin.id)
            return False

        self._in_flight.add(coin.id)
        try:
            server = await self._push(coin)
        except KnownError as e:
            logger.warning("Sync of %s failed: %s", coin.id, e.message)
            return False
        finally:
            self._in_flight.discard(coin.id)

        await self._acknowledge(coin, server)
        return True

    async def _push(self, coin: UserCoin) -> dict[str, Any] | None:
        payload = coin.to_server_format()
        if coin.is_deleted:
            await self.remote.delete_coin(
                coin.catalog_coin_id, payload["updatedAt"], local_id=coin.id
            )
            return None
        if coin.remote_id:
            try:
                return await self.remote.update_coin(coin.remote_id, payload)
            except NotFoundError:
                # Server row missing or deleted; the upsert reports which
                logger.debug("Remote %s gone, upserting %s", coin.remote_id, coin.id)
        return await self.remote.upsert_coin(payload)

    async def _acknowledge(self, sent: UserCoin, server: dict[str, Any] | None) -> None:
        """
        Record the server's acknowledgment of `sent`.

        Applied only if the stored record is still the version that was
        sent; a record changed meanwhile stays dirty for the next push.
        """
        if sent.is_deleted or (server and server.get("isDeleted")):
            # Deletion confirmed (or the server copy was deleted elsewhere)
            applied = await self._storage.delete_user_coin_if_unchanged(sent)
        else:
            acked = sent.snapshot()
            acked.mark_as_synced(utcnow(), remote_id=server.get("id") if server else None)
            if server:
                acked.merge_from_server(server)
                acked.user_id = server.get("userId") or acked.user_id
            applied = await self._storage.save_user_coin_if_unchanged(acked, sent)
        if not applied:
            logger.debug("%s changed while in flight, left dirty", sent.id)
            return
        await self._notify([sent.catalog_coin_id])

    async def sync_all(self) -> SyncReport:
        """Push every dirty record one by one, oldest change first."""
        pending = await self._storage.list_pending()
        succeeded = 0
        for coin in pending:
            if await self.sync_one(coin):
                succeeded += 1
        report = SyncReport(
            attempted=len(pending),
            succeeded=succeeded,
            failed=len(pending) - succeeded,
        )
        if pending:
            logger.info(
                "Sync: %d attempted, %d succeeded, %d failed",
                report.attempted,
                report.succeeded,
                report.failed,
            )
        return report

    async def push_all(self) -> SyncReport:
        """
        Push every dirty record in one bulk request and fold back the
        server's merged collection.
        """
        pending = await self._storage.list_pending()
        if not pending:
            return SyncReport()
        if not self.remote.is_authenticated:
            logger.debug("No credential, bulk push skipped")
            return SyncReport(attempted=len(pending), failed=len(pending))

        try:
            merged = await self.remote.bulk_sync([c.to_server_format() for c in pending])
        except KnownError as e:
            logger.warning("Bulk sync failed: %s", e.message)
            return SyncReport(attempted=len(pending), failed=len(pending))

        by_catalog_id = {record["catalogCoinId"]: record for record in merged}
        for coin in pending:
            await self._acknowledge(
                coin, None if coin.is_deleted else by_catalog_id.get(coin.catalog_coin_id)
            )
        await self.fold(merged)

        logger.info("Bulk sync pushed %d record(s)", len(pending))
        return SyncReport(attempted=len(pending), succeeded=len(pending))

    # --- Pull ---

    async def pull(self) -> int:
        """
        Fetch the full server collection and fold it into the local store.

        Returns the number of local records created, updated or removed.
        Failures are logged and return 0.
        """
        if not self.remote.is_authenticated:
            return 0
        try:
            records = await self.remote.fetch_collection(is_wishlist=False)
            records += await self.remote.fetch_collection(is_wishlist=True)
        except KnownError as e:
            logger.warning("Pull failed: %s", e.message)
            return 0
        return await self.fold(records)

    async def fold(self, records: list[dict[str, Any]]) -> int:
        """
        Apply an authoritative server collection to the local store.

        Dirty local records are left alone; they win until pushed, including
        records that turn dirty while the fold runs. Clean, previously synced
        records the server no longer has are removed.
        """
        local = await self._storage.list_all_user_coins()
        by_id = {c.id: c for c in local}
        by_remote = {c.remote_id: c for c in local if c.remote_id}
        by_catalog = {c.catalog_coin_id: c for c in local if c.is_live}

        changed: list[str] = []
        seen: set[str] = set()
        now = utcnow()
        for record in records:
            match = (
                by_id.get(record.get("localId") or "")
                or by_remote.get(record.get("id") or "")
                or by_catalog.get(record["catalogCoinId"])
            )
            if match is None:
                coin = UserCoin.from_server(record)
                await self._storage.insert_user_coin(coin)
                seen.add(coin.id)
                changed.append(coin.catalog_coin_id)
                continue

            seen.add(match.id)
            if match.needs_sync:
                continue
            merged = match.snapshot()
            merged.merge_from_server(record)
            merged.remote_id = record.get("id") or merged.remote_id
            merged.user_id = record.get("userId") or merged.user_id
            merged.mark_as_synced(now)
            if await self._storage.save_user_coin_if_unchanged(merged, match):
                changed.append(match.catalog_coin_id)

        for coin in local:
            if coin.id in seen or coin.needs_sync or coin.synced_at is None:
                continue
            if await self._storage.delete_user_coin_if_unchanged(coin):
                changed.append(coin.catalog_coin_id)

        await self._notify(changed)
        if changed:
            logger.info("Folded %d server change(s) into local store", len(changed))
        return len(changed)
