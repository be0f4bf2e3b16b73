"""Supabase repository for the cloud backup opt-in flag."""

from dataclasses import dataclass
from datetime import UTC, datetime

from supabase import Client

from yogaageproof.services.cloud import BackupSettingsRepository


@dataclass
class SupabaseProfileRepository(BackupSettingsRepository):
    """Supabase implementation over user_profiles."""

    client: Client

    def is_cloud_backup_enabled(self, user_id: str) -> bool:
        response = (
            self.client.table("user_profiles")
            .select("cloud_backup_enabled")
            .eq("id", user_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            return False
        return bool(response.data[0].get("cloud_backup_enabled"))

    def set_cloud_backup_enabled(self, user_id: str, enabled: bool) -> None:
        """Update the user's opt-in flag."""
        self.client.table("user_profiles").update(
            {
                "cloud_backup_enabled": enabled,
                "updated_at": datetime.now(tz=UTC).isoformat(),
            }
        ).eq("id", user_id).execute()
