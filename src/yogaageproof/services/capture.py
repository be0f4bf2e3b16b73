"""Capturing new progress photos."""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from uuid import uuid4

from yogaageproof.domain.photos import SYNC_STATUS_LOCAL_ONLY, SYNC_STATUS_PENDING, PhotoRecord
from yogaageproof.services.cloud import CloudBackupService
from yogaageproof.services.local_storage import LocalPhotoStore
from yogaageproof.services.photo_records import PhotoRecordRepository
from yogaageproof.services.sync_queue import SyncQueue

_logger = logging.getLogger(__name__)


@dataclass
class PhotoCaptureService:
    """Stores a captured photo locally and queues it for backup."""

    local_store: LocalPhotoStore
    photo_records: PhotoRecordRepository
    cloud: CloudBackupService
    sync_queue: SyncQueue
    now: Callable[[], datetime] = field(default=lambda: datetime.now(tz=UTC))
    new_id: Callable[[], str] = field(default=lambda: str(uuid4()))

    async def capture(self, user_id: str, image_bytes: bytes) -> PhotoRecord:
        """Save the photo, record it and enqueue it when backup is enabled.

        Raises StorageFullError when the device is low on space.
        """
        photo_id = self.new_id()
        stored = await self.local_store.save_photo(image_bytes, photo_id)
        backup_enabled = await self.cloud.is_backup_enabled(user_id)
        record = await asyncio.to_thread(
            self.photo_records.create_photo_record,
            PhotoRecord(
                id=photo_id,
                user_id=user_id,
                captured_at=self.now(),
                local_path=str(stored.local_path),
                sync_status=SYNC_STATUS_PENDING if backup_enabled else SYNC_STATUS_LOCAL_ONLY,
            ),
            stored.size_bytes,
        )
        if backup_enabled:
            await self.sync_queue.enqueue(photo_id, user_id, str(stored.local_path))
        _logger.info(
            "Captured photo %s for %s (%s bytes, backup=%s)",
            photo_id,
            user_id,
            stored.size_bytes,
            backup_enabled,
        )
        return record
