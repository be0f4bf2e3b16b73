"""Bulk restoration of a user's gallery from cloud backup."""

import asyncio
import logging
import math
import time
from collections.abc import Callable
from dataclasses import dataclass, field

from yogaageproof.domain.errors import BackupDisabledError, StorageError
from yogaageproof.domain.photos import (
    IntegrityReport,
    PhotoRecord,
    RestorationProgress,
    RestorationResult,
    RestorationStatus,
)
from yogaageproof.services.cloud import CloudBackupService
from yogaageproof.services.local_storage import LocalPhotoStore
from yogaageproof.services.photo_records import PhotoRecordRepository

RESTORE_BATCH_SIZE = 5
SECONDS_PER_BATCH = 3

ProgressCallback = Callable[[RestorationProgress], None]

_logger = logging.getLogger(__name__)


@dataclass
class RestorationEngine:
    """Restores photos in sequential batches of concurrent downloads."""

    cloud: CloudBackupService
    local_store: LocalPhotoStore
    photo_records: PhotoRecordRepository
    batch_size: int = RESTORE_BATCH_SIZE
    clock: Callable[[], float] = field(default=time.monotonic)

    async def restore_all(
        self, user_id: str, on_progress: ProgressCallback | None = None
    ) -> RestorationResult:
        """Restore every photo record that is missing locally.

        Per-photo failures are collected, never raised.
        """
        started = self.clock()
        if not await self.cloud.is_backup_enabled(user_id):
            raise BackupDisabledError(user_id)
        photos = await self._photos(user_id)
        total = len(photos)
        completed = 0
        failed_ids: list[str] = []

        async def restore_one(photo: PhotoRecord) -> None:
            nonlocal completed
            try:
                await self._restore_record(photo, user_id)
            except Exception as exc:
                _logger.warning("Failed to restore photo %s: %s", photo.id, exc)
                failed_ids.append(photo.id)
            completed += 1
            if on_progress is None:
                return
            try:
                on_progress(
                    RestorationProgress(
                        current=completed,
                        total=total,
                        percentage=round(completed / total * 100),
                        photo_id=photo.id,
                    )
                )
            except Exception:
                _logger.exception("Progress callback failed for photo %s", photo.id)

        for start in range(0, total, self.batch_size):
            batch = photos[start : start + self.batch_size]
            await asyncio.gather(*(restore_one(photo) for photo in batch))

        result = RestorationResult(
            total_photos=total,
            success_count=total - len(failed_ids),
            failure_count=len(failed_ids),
            failed_photo_ids=failed_ids,
            duration_ms=int((self.clock() - started) * 1000),
        )
        _logger.info(
            "Restoration for %s finished: %s/%s restored in %sms",
            user_id,
            result.success_count,
            total,
            result.duration_ms,
        )
        return result

    async def restore_single(self, photo_id: str, user_id: str) -> bool:
        """Restore one photo on demand; returns False on any failure."""
        try:
            if await self.local_store.load_photo(photo_id) is not None:
                return True
            if not await self.cloud.is_backup_enabled(user_id):
                raise BackupDisabledError(user_id)
            photo = next(
                (record for record in await self._photos(user_id) if record.id == photo_id),
                None,
            )
            if photo is None:
                raise StorageError("Photo not found in database", photo_id=photo_id)
            await self._restore_record(photo, user_id)
        except Exception as exc:
            _logger.warning("Failed to restore photo %s: %s", photo_id, exc)
            return False
        return True

    async def restoration_status(self, user_id: str) -> RestorationStatus:
        photos = await self._photos(user_id)
        local = cloud_only = missing = 0
        for photo in photos:
            if await self.local_store.load_photo(photo.id) is not None:
                local += 1
            elif photo.cloud_path:
                cloud_only += 1
            else:
                missing += 1
        total = len(photos)
        return RestorationStatus(
            total_photos=total,
            local_photos=local,
            cloud_only_photos=cloud_only,
            missing_photos=missing,
            percentage_local=round(local / total * 100) if total else 100,
        )

    async def estimate_restoration_seconds(self, user_id: str) -> int:
        """Rough restore time for the photos that exist only in the cloud."""
        status = await self.restoration_status(user_id)
        return math.ceil(status.cloud_only_photos / self.batch_size) * SECONDS_PER_BATCH

    async def verify_backup_integrity(self, user_id: str) -> IntegrityReport:
        """Report remote pointers whose blob is missing, listing metadata only."""
        cloud_photos = [photo for photo in await self._photos(user_id) if photo.cloud_path]
        broken: list[str] = []
        for photo in cloud_photos:
            try:
                exists = await self.cloud.remote_exists(user_id, photo.id)
            except Exception as exc:
                _logger.warning("Integrity check failed for photo %s: %s", photo.id, exc)
                exists = False
            if not exists:
                broken.append(photo.id)
        return IntegrityReport(
            total_cloud_photos=len(cloud_photos),
            valid_photos=len(cloud_photos) - len(broken),
            broken_photos=len(broken),
            broken_photo_ids=broken,
        )

    async def _photos(self, user_id: str) -> list[PhotoRecord]:
        return await asyncio.to_thread(self.photo_records.get_photos_for_user, user_id)

    async def _restore_record(self, photo: PhotoRecord, user_id: str) -> None:
        if await self.local_store.load_photo(photo.id) is not None:
            return
        if not photo.cloud_path:
            raise StorageError("Photo has no cloud backup", photo_id=photo.id)
        await self.cloud.download(photo.cloud_path, photo.id, user_id)
