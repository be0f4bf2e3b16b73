"""WiFi-gated queue of photos waiting for encrypted cloud backup.

The queue is a write-through cache over a durable store. Drains are
reentrancy-guarded, run only on WiFi with the internet reachable, and work on
a snapshot so items enqueued mid-drain wait for the next pass.
"""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import replace
from datetime import UTC, datetime
from pathlib import Path
from typing import Protocol

from yogaageproof.domain.errors import NetworkError
from yogaageproof.domain.photos import SYNC_STATUS_SYNCED, SyncQueueItem, SyncStatus
from yogaageproof.services.cloud import CloudBackupService
from yogaageproof.services.network import NetworkMonitor, NetworkState, NetworkWatcher
from yogaageproof.services.photo_records import PhotoRecordRepository

MAX_SYNC_RETRIES = 3

_logger = logging.getLogger(__name__)


class SyncQueueStore(Protocol):
    """Durable persistence for queued uploads."""

    def load(self) -> list[SyncQueueItem]:
        """Return all queued items in FIFO order."""

    def add(self, item: SyncQueueItem) -> bool:
        """Insert an item unless its photo is already queued."""

    def remove(self, photo_id: str) -> None:
        """Delete an item."""

    def update_retry(self, photo_id: str, retry_count: int) -> None:
        """Persist a new retry count."""

    def clear(self) -> None:
        """Delete every item."""


class SyncQueue:
    """Backs up queued photos when the device is on WiFi."""

    def __init__(  # noqa: PLR0913
        self,
        *,
        store: SyncQueueStore,
        cloud: CloudBackupService,
        photo_records: PhotoRecordRepository,
        network: NetworkMonitor,
        max_retries: int = MAX_SYNC_RETRIES,
        now: Callable[[], datetime] = lambda: datetime.now(tz=UTC),
    ) -> None:
        self.store = store
        self.cloud = cloud
        self.photo_records = photo_records
        self.network = network
        self.max_retries = max_retries
        self._now = now
        self._items: dict[str, SyncQueueItem] = {
            item.photo_id: item for item in store.load()
        }
        self._is_syncing = False
        self._tasks: set[asyncio.Task[None]] = set()
        # Store writes run off the loop in the order the cache changed.
        self._store_lock = asyncio.Lock()

    @property
    def is_syncing(self) -> bool:
        return self._is_syncing

    async def enqueue(self, photo_id: str, user_id: str, local_reference: str) -> bool:
        """Queue a photo for backup and schedule a drain.

        Returns False if the photo is already queued.
        """
        if photo_id in self._items:
            return False
        item = SyncQueueItem(
            photo_id=photo_id,
            user_id=user_id,
            local_reference=local_reference,
            enqueued_at=self._now(),
        )
        self._items[photo_id] = item
        await self._write(self.store.add, item)
        _logger.info("Queued photo %s for backup (queue=%s)", photo_id, len(self._items))
        self.schedule_drain()
        return True

    async def remove(self, photo_id: str) -> bool:
        if self._items.pop(photo_id, None) is None:
            return False
        await self._write(self.store.remove, photo_id)
        return True

    async def clear(self) -> None:
        self._items.clear()
        await self._write(self.store.clear)

    def items(self) -> list[SyncQueueItem]:
        return list(self._items.values())

    def status(self) -> SyncStatus:
        oldest = min((item.enqueued_at for item in self._items.values()), default=None)
        return SyncStatus(
            queue_length=len(self._items),
            is_syncing=self._is_syncing,
            oldest_item=oldest,
        )

    async def process_queue(self) -> int:
        """Drain a snapshot of the queue; returns the number of photos synced."""
        if self._is_syncing:
            return 0
        self._is_syncing = True
        try:
            state = await self.network.current()
            if not state.is_wifi_ready:
                _logger.info(
                    "Sync deferred, not on WiFi (queue=%s)", len(self._items)
                )
                return 0
            synced = 0
            for item in list(self._items.values()):
                if await self._sync_item(item):
                    synced += 1
            if synced:
                _logger.info("Synced %s photos (remaining=%s)", synced, len(self._items))
            return synced
        finally:
            self._is_syncing = False

    async def force_sync_all(self) -> int:
        """Drain now, failing fast when not on WiFi."""
        state = await self.network.current()
        if not state.is_wifi_ready:
            raise NetworkError("Must be connected to WiFi to sync photos")
        return await self.process_queue()

    def start_background_sync(self, watcher: NetworkWatcher) -> Callable[[], None]:
        """Drain on every transition into WiFi and once now.

        Returns a callable that stops listening.
        """

        async def on_wifi_ready(_state: NetworkState) -> None:
            await self.process_queue()

        unsubscribe = watcher.subscribe(on_wifi_ready)
        self.schedule_drain()
        return unsubscribe

    def schedule_drain(self) -> None:
        task = asyncio.create_task(self._drain_in_background())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def wait_idle(self) -> None:
        """Wait for all scheduled drains to finish."""
        while self._tasks:
            await asyncio.gather(*self._tasks)

    async def _drain_in_background(self) -> None:
        try:
            await self.process_queue()
        except Exception:
            _logger.exception("Background sync failed")

    async def _sync_item(self, item: SyncQueueItem) -> bool:
        current = self._items.get(item.photo_id)
        if current is None:
            return False
        if not await self.cloud.is_backup_enabled(current.user_id):
            await self.remove(current.photo_id)
            return False
        local_path = Path(current.local_reference)
        if not await asyncio.to_thread(local_path.exists):
            _logger.warning(
                "Photo %s no longer exists at %s, dropping from sync queue",
                current.photo_id,
                local_path,
            )
            await self.remove(current.photo_id)
            return False
        try:
            result = await self.cloud.upload(local_path, current.photo_id, current.user_id)
            await asyncio.to_thread(
                self.photo_records.update_photo_record,
                current.photo_id,
                {
                    "cloud_url": result.remote_url,
                    "cloud_path": result.remote_path,
                    "sync_status": SYNC_STATUS_SYNCED,
                },
            )
        except Exception as exc:
            await self._record_failure(current, exc)
            return False
        await self.remove(current.photo_id)
        return True

    async def _record_failure(self, item: SyncQueueItem, exc: Exception) -> None:
        if item.photo_id not in self._items:
            _logger.info(
                "Upload of photo %s failed after it left the queue: %s", item.photo_id, exc
            )
            return
        retry_count = item.retry_count + 1
        if retry_count >= self.max_retries:
            _logger.error(
                "Dropping photo %s after %s failed uploads: %s",
                item.photo_id,
                retry_count,
                exc,
            )
            await self.remove(item.photo_id)
            return
        _logger.warning(
            "Upload of photo %s failed (attempt %s/%s): %s",
            item.photo_id,
            retry_count,
            self.max_retries,
            exc,
        )
        self._items[item.photo_id] = replace(item, retry_count=retry_count)
        await self._write(self.store.update_retry, item.photo_id, retry_count)

    async def _write(self, func: Callable[..., object], *args: object) -> None:
        async with self._store_lock:
            await asyncio.to_thread(func, *args)
