"""Supabase-backed progress photo records."""

from dataclasses import dataclass
from datetime import UTC, datetime

from supabase import Client

from yogaageproof.domain.errors import StorageError
from yogaageproof.domain.photos import SYNC_STATUS_LOCAL_ONLY, PhotoRecord
from yogaageproof.services.photo_records import PhotoRecordRepository

_COLUMNS = (
    "id, user_id, captured_at, local_path, cloud_url, cloud_path, "
    "sync_status, is_deleted"
)


@dataclass
class SupabasePhotoRecordRepository(PhotoRecordRepository):
    """Supabase implementation for the progress_photos table."""

    client: Client

    def get_photos_for_user(self, user_id: str) -> list[PhotoRecord]:
        """Return non-deleted photos for a user, newest first."""
        response = (
            self.client.table("progress_photos")
            .select(_COLUMNS)
            .eq("user_id", user_id)
            .eq("is_deleted", False)
            .order("captured_at", desc=True)
            .execute()
        )
        return [_row_to_record(row) for row in response.data or []]

    def create_photo_record(self, record: PhotoRecord, file_size_bytes: int) -> PhotoRecord:
        response = (
            self.client.table("progress_photos")
            .insert(
                {
                    "id": record.id,
                    "user_id": record.user_id,
                    "captured_at": record.captured_at.isoformat(),
                    "local_path": record.local_path,
                    "sync_status": record.sync_status,
                    "file_size_bytes": file_size_bytes,
                }
            )
            .execute()
        )
        if not response.data:
            raise StorageError("Failed to create photo record", photo_id=record.id)
        return _row_to_record(response.data[0])

    def update_photo_record(self, photo_id: str, fields: dict[str, object]) -> None:
        """Update columns of a photo row."""
        self.client.table("progress_photos").update(
            {**fields, "updated_at": datetime.now(tz=UTC).isoformat()}
        ).eq("id", photo_id).execute()


def _row_to_record(row: dict[str, object]) -> PhotoRecord:
    return PhotoRecord(
        id=str(row["id"]),
        user_id=str(row["user_id"]),
        captured_at=_parse_datetime(row.get("captured_at")),
        local_path=row.get("local_path"),
        cloud_url=row.get("cloud_url"),
        cloud_path=row.get("cloud_path"),
        sync_status=row.get("sync_status") or SYNC_STATUS_LOCAL_ONLY,
        is_deleted=bool(row.get("is_deleted")),
    )


def _parse_datetime(value: object) -> datetime:
    if isinstance(value, str):
        return datetime.fromisoformat(value)
    return datetime.now(tz=UTC)
