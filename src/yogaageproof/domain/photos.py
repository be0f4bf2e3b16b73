"""Domain models for progress photos, backup, and restoration."""

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

SYNC_STATUS_LOCAL_ONLY = "local_only"
SYNC_STATUS_PENDING = "pending"
SYNC_STATUS_SYNCED = "synced"


@dataclass(frozen=True)
class PhotoRecord:
    """Progress photo row as stored in the database."""

    id: str
    user_id: str
    captured_at: datetime
    local_path: str | None = None
    cloud_url: str | None = None
    cloud_path: str | None = None
    sync_status: str = SYNC_STATUS_LOCAL_ONLY
    is_deleted: bool = False


@dataclass(frozen=True)
class StorageResult:
    """Outcome of saving a photo to the local store."""

    local_path: Path
    size_bytes: int
    file_name: str


@dataclass(frozen=True)
class UploadResult:
    """Remote pointer produced by an encrypted upload."""

    remote_url: str
    remote_path: str
    uploaded_at: datetime


@dataclass(frozen=True)
class SyncQueueItem:
    """Photo waiting for cloud backup."""

    photo_id: str
    user_id: str
    local_reference: str
    enqueued_at: datetime
    retry_count: int = 0


@dataclass(frozen=True)
class SyncStatus:
    """Snapshot of the sync queue for display."""

    queue_length: int
    is_syncing: bool
    oldest_item: datetime | None


@dataclass(frozen=True)
class RestorationProgress:
    """Progress notification emitted during a restoration run."""

    current: int
    total: int
    percentage: int
    photo_id: str


@dataclass(frozen=True)
class RestorationResult:
    """Summary of one restoration run."""

    total_photos: int
    success_count: int
    failure_count: int
    failed_photo_ids: list[str] = field(default_factory=list)
    duration_ms: int = 0


@dataclass(frozen=True)
class RestorationStatus:
    """Local availability of a user's gallery."""

    total_photos: int
    local_photos: int
    cloud_only_photos: int
    missing_photos: int
    percentage_local: int


@dataclass(frozen=True)
class IntegrityReport:
    """Which remote pointers still resolve to a stored blob."""

    total_cloud_photos: int
    valid_photos: int
    broken_photos: int
    broken_photo_ids: list[str] = field(default_factory=list)
