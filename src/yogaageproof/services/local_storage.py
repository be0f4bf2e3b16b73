"""On-device progress photo storage with a low-space policy."""

import asyncio
import logging
import shutil
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from yogaageproof.domain.errors import StorageError, StorageFullError
from yogaageproof.domain.photos import StorageResult

LOW_STORAGE_THRESHOLD_BYTES = 500 * 1024 * 1024
PHOTO_SUFFIX = ".jpg"

_logger = logging.getLogger(__name__)


class ImageCompressor(Protocol):
    """Interface for shrinking captured images before storage."""

    def compress(self, data: bytes) -> bytes:
        """Return compressed image bytes."""


@dataclass
class LocalPhotoStore:
    """Stores photos as ``{photo_id}.jpg`` under a single directory."""

    directory: Path
    compressor: ImageCompressor
    low_storage_threshold_bytes: int = LOW_STORAGE_THRESHOLD_BYTES
    free_space: Callable[[Path], int] = field(
        default=lambda path: shutil.disk_usage(path).free
    )

    def path_for(self, photo_id: str) -> Path:
        return self.directory / f"{photo_id}{PHOTO_SUFFIX}"

    async def save_photo(self, source: bytes, photo_id: str) -> StorageResult:
        """Compress and store a captured photo."""
        if await self.is_storage_low():
            raise StorageFullError(await self.available_storage())
        compressed = await asyncio.to_thread(self.compressor.compress, source)
        path = await self.write_photo(photo_id, compressed)
        return StorageResult(
            local_path=path, size_bytes=len(compressed), file_name=path.name
        )

    async def write_photo(self, photo_id: str, data: bytes) -> Path:
        """Write photo bytes as-is, replacing any existing file."""
        path = self.path_for(photo_id)
        try:
            await asyncio.to_thread(self._write, path, data)
        except OSError as exc:
            raise StorageError(f"Failed to save photo locally: {exc}") from exc
        return path

    async def load_photo(self, photo_id: str) -> Path | None:
        path = self.path_for(photo_id)
        exists = await asyncio.to_thread(path.is_file)
        return path if exists else None

    async def read_photo(self, photo_id: str) -> bytes:
        try:
            return await asyncio.to_thread(self.path_for(photo_id).read_bytes)
        except OSError as exc:
            raise StorageError(f"Failed to read photo {photo_id}: {exc}") from exc

    async def delete_photo(self, photo_id: str) -> None:
        try:
            await asyncio.to_thread(self.path_for(photo_id).unlink, missing_ok=True)
        except OSError as exc:
            raise StorageError(f"Failed to delete photo locally: {exc}") from exc

    async def local_photo_ids(self) -> list[str]:
        return await asyncio.to_thread(self._list_ids)

    async def clear_all_photos(self) -> None:
        """Permanently delete every local photo."""
        await asyncio.to_thread(self._clear)
        _logger.warning("Cleared all local photos in %s", self.directory)

    async def total_storage_used(self) -> int:
        return await asyncio.to_thread(self._total_size)

    async def available_storage(self) -> int:
        """Free bytes on the device, or 0 when it cannot be determined."""
        try:
            return await asyncio.to_thread(self.free_space, self._existing_root())
        except OSError:
            _logger.exception("Failed to get available storage")
            return 0

    async def is_storage_low(self) -> bool:
        return await self.available_storage() < self.low_storage_threshold_bytes

    def _existing_root(self) -> Path:
        path = self.directory
        while not path.exists() and path != path.parent:
            path = path.parent
        return path

    def _write(self, path: Path, data: bytes) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_suffix(".tmp")
        tmp_path.write_bytes(data)
        tmp_path.replace(path)

    def _list_ids(self) -> list[str]:
        if not self.directory.is_dir():
            return []
        return sorted(path.stem for path in self.directory.glob(f"*{PHOTO_SUFFIX}"))

    def _total_size(self) -> int:
        if not self.directory.is_dir():
            return 0
        return sum(
            path.stat().st_size
            for path in self.directory.glob(f"*{PHOTO_SUFFIX}")
            if path.is_file()
        )

    def _clear(self) -> None:
        if self.directory.is_dir():
            shutil.rmtree(self.directory)
        self.directory.mkdir(parents=True, exist_ok=True)
