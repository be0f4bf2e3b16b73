"""Supabase repository for routine sessions and step completions."""

from dataclasses import dataclass
from datetime import datetime

from supabase import Client

from yogaageproof.domain.errors import StorageError
from yogaageproof.domain.sessions import STATUS_IN_PROGRESS, StepEvent
from yogaageproof.services.routine_session import SessionRepository


@dataclass
class SupabaseRoutineSessionRepository(SessionRepository):
    """Supabase implementation over routine_sessions and step_completions."""

    client: Client

    def create_session(self, user_id: str, routine_id: str, started_at: datetime) -> str:
        """Insert an in-progress session row and return its id."""
        response = (
            self.client.table("routine_sessions")
            .insert(
                {
                    "user_id": user_id,
                    "routine_id": routine_id,
                    "started_at": started_at.isoformat(),
                    "status": STATUS_IN_PROGRESS,
                }
            )
            .execute()
        )
        if not response.data:
            raise StorageError("Failed to create routine session", routine_id=routine_id)
        return str(response.data[0]["id"])

    def update_session(self, session_id: str, fields: dict[str, object]) -> None:
        self.client.table("routine_sessions").update(fields).eq(
            "id", session_id
        ).execute()

    def create_step_completion(self, event: StepEvent) -> None:
        """Upsert so a retried write for the same step stays a single row."""
        self.client.table("step_completions").upsert(
            {
                "session_id": event.session_id,
                "step_id": event.step_id,
                "status": event.status,
                "started_at": event.started_at.isoformat(),
                "completed_at": event.occurred_at.isoformat(),
                "duration_seconds": max(
                    int((event.occurred_at - event.started_at).total_seconds()), 0
                ),
            },
            on_conflict="session_id,step_id",
        ).execute()
