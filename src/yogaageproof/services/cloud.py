"""Encrypted cloud backup of progress photos."""

import asyncio
import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Protocol

from yogaageproof.domain.errors import StorageError
from yogaageproof.domain.photos import UploadResult
from yogaageproof.services.crypto import KeyManager, PhotoCipher
from yogaageproof.services.local_storage import LocalPhotoStore

BLOB_SUFFIX = ".jpg.encrypted"
REMOVE_BATCH_SIZE = 1000

_logger = logging.getLogger(__name__)


class BlobStorage(Protocol):
    """Interface for the remote object bucket."""

    async def upload(self, path: str, data: bytes) -> None:
        """Store bytes at path, overwriting any existing blob."""

    async def download(self, path: str) -> bytes:
        """Return the raw bytes at path."""

    async def remove(self, paths: list[str]) -> None:
        """Delete the blobs at the given paths."""

    async def list(self, prefix: str, search: str | None = None) -> list[str]:
        """Return object names directly under prefix, without downloading."""

    def public_url(self, path: str) -> str:
        """Return the public URL for a path."""


class BackupSettingsRepository(Protocol):
    """Interface for the per-user backup opt-in flag."""

    def is_cloud_backup_enabled(self, user_id: str) -> bool:
        """Return whether the user opted into cloud backup."""

    def set_cloud_backup_enabled(self, user_id: str, enabled: bool) -> None:
        """Persist the user's backup opt-in flag."""


def remote_path(user_id: str, photo_id: str) -> str:
    """Bucket-relative path of a user's encrypted photo."""
    return f"{user_id}/{photo_id}{BLOB_SUFFIX}"


@dataclass
class CloudBackupService:
    """Encrypts, uploads, downloads and deletes backed-up photos."""

    storage: BlobStorage
    settings_repository: BackupSettingsRepository
    key_manager: KeyManager
    cipher: PhotoCipher
    local_store: LocalPhotoStore

    def remote_path(self, user_id: str, photo_id: str) -> str:
        return remote_path(user_id, photo_id)

    async def upload(self, local_path: Path, photo_id: str, user_id: str) -> UploadResult:
        """Encrypt a local photo with the user's key and upload it."""
        key = await self.key_manager.get_or_create_key(user_id)
        try:
            data = await asyncio.to_thread(local_path.read_bytes)
        except OSError as exc:
            raise StorageError(f"Failed to read photo {photo_id}: {exc}") from exc
        blob = self.cipher.encrypt(data, key, user_id)
        path = self.remote_path(user_id, photo_id)
        await self.storage.upload(path, blob)
        _logger.info("Uploaded photo %s (%s bytes)", photo_id, len(blob))
        return UploadResult(
            remote_url=self.storage.public_url(path),
            remote_path=path,
            uploaded_at=datetime.now(tz=UTC),
        )

    async def download(self, path: str, photo_id: str, user_id: str) -> Path:
        """Download, decrypt and store a photo locally."""
        blob = await self.storage.download(path)
        key = await self.key_manager.get_existing_key(user_id)
        data = self.cipher.decrypt(blob, key, user_id)
        return await self.local_store.write_photo(photo_id, data)

    async def delete_remote(self, path: str) -> None:
        await self.storage.remove([path])

    async def remote_exists(self, user_id: str, photo_id: str) -> bool:
        """Check for a blob by listing metadata only."""
        name = f"{photo_id}{BLOB_SUFFIX}"
        names = await self.storage.list(user_id, search=name)
        return name in names

    async def is_backup_enabled(self, user_id: str) -> bool:
        """Return the opt-in flag, treating lookup failures as disabled."""
        try:
            return await asyncio.to_thread(
                self.settings_repository.is_cloud_backup_enabled, user_id
            )
        except Exception:
            _logger.exception("Failed to check cloud backup status for %s", user_id)
            return False

    async def enable_backup(self, user_id: str) -> None:
        await asyncio.to_thread(
            self.settings_repository.set_cloud_backup_enabled, user_id, True
        )

    async def disable_backup(self, user_id: str, delete_existing: bool = False) -> int:
        """Opt out of backup, optionally deleting every stored blob.

        Returns the number of blobs removed.
        """
        await asyncio.to_thread(
            self.settings_repository.set_cloud_backup_enabled, user_id, False
        )
        if not delete_existing:
            return 0
        names = await self.storage.list(user_id)
        paths = [f"{user_id}/{name}" for name in names]
        for start in range(0, len(paths), REMOVE_BATCH_SIZE):
            await self.storage.remove(paths[start : start + REMOVE_BATCH_SIZE])
        if paths:
            _logger.info("Deleted %s cloud backups for user %s", len(paths), user_id)
        return len(paths)
