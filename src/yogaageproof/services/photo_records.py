"""Persistence interface for progress photo records."""

from typing import Protocol

from yogaageproof.domain.photos import PhotoRecord


class PhotoRecordRepository(Protocol):
    """Database collaborator for progress photo rows."""

    def get_photos_for_user(self, user_id: str) -> list[PhotoRecord]:
        """Return non-deleted photos for a user, newest first."""

    def create_photo_record(self, record: PhotoRecord, file_size_bytes: int) -> PhotoRecord:
        """Insert a newly captured photo row."""

    def update_photo_record(self, photo_id: str, fields: dict[str, object]) -> None:
        """Update columns of a photo row."""
