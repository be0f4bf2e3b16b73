"""Domain models for guided routine sessions."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum


class SessionState(StrEnum):
    """Observable state of the routine session machine."""

    NO_SESSION = "no_session"
    IN_PROGRESS = "in_progress"
    PAUSED = "paused"


STATUS_IN_PROGRESS = "in_progress"
STATUS_COMPLETED = "completed"
STATUS_ABANDONED = "abandoned"

STEP_COMPLETED = "completed"
STEP_SKIPPED = "skipped"


@dataclass(frozen=True)
class ActiveSession:
    """In-memory state of a routine being played."""

    id: str
    user_id: str
    routine_id: str
    started_at: datetime
    step_ids: tuple[str, ...] = ()
    current_step_index: int = 0
    completed_steps: frozenset[str] = field(default_factory=frozenset)
    skipped_steps: frozenset[str] = field(default_factory=frozenset)
    is_paused: bool = False
    paused_at: datetime | None = None
    total_paused_seconds: float = 0.0
    step_started_at: datetime | None = None

    @property
    def current_step_id(self) -> str | None:
        if 0 <= self.current_step_index < len(self.step_ids):
            return self.step_ids[self.current_step_index]
        return None

    @property
    def is_last_step(self) -> bool:
        return self.current_step_index >= len(self.step_ids) - 1


@dataclass(frozen=True)
class StepEvent:
    """Step completion or skip waiting to be persisted."""

    session_id: str
    step_id: str
    status: str
    started_at: datetime
    occurred_at: datetime


@dataclass(frozen=True)
class SessionSummary:
    """Terminal record written when a session ends."""

    session_id: str
    status: str
    ended_at: datetime
    total_duration_seconds: int | None = None
    steps_completed: int = 0
    steps_skipped: int = 0


@dataclass(frozen=True)
class PlannedStep:
    """Step of the routine being played and how long its timer runs."""

    step_id: str
    duration_seconds: int
