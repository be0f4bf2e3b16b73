"""State machine for a guided routine session.

States are NO_SESSION, IN_PROGRESS and PAUSED. Completing or abandoning a
session persists a terminal record and returns the machine to NO_SESSION.
Step completions and skips update memory synchronously and are persisted
through an outbox so the player never waits on the database.
"""

import asyncio
import contextlib
import logging
from collections import deque
from collections.abc import Callable, Sequence
from dataclasses import replace
from datetime import UTC, datetime
from typing import Protocol

from yogaageproof.domain.errors import AppError, InvalidSessionStateError
from yogaageproof.domain.sessions import (
    STATUS_ABANDONED,
    STATUS_COMPLETED,
    STEP_COMPLETED,
    STEP_SKIPPED,
    ActiveSession,
    SessionState,
    SessionSummary,
    StepEvent,
)
from yogaageproof.services.retry import Sleep, call_with_retry

_logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


class SessionRepository(Protocol):
    """Persistence interface for routine sessions and step events."""

    def create_session(self, user_id: str, routine_id: str, started_at: datetime) -> str:
        """Create an in-progress session row and return its id."""

    def update_session(self, session_id: str, fields: dict[str, object]) -> None:
        """Update columns of a session row."""

    def create_step_completion(self, event: StepEvent) -> None:
        """Record a completed or skipped step."""


class SessionEventOutbox:
    """FIFO of step events persisted in the background with retry."""

    def __init__(
        self,
        repository: SessionRepository,
        *,
        max_retries: int = 3,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.repository = repository
        self.max_retries = max_retries
        self._sleep = sleep
        self._pending: deque[StepEvent] = deque()
        self._wakeup = asyncio.Event()
        self._lock = asyncio.Lock()
        self._task: asyncio.Task[None] | None = None

    @property
    def pending(self) -> list[StepEvent]:
        return list(self._pending)

    def emit(self, event: StepEvent) -> None:
        """Queue an event without waiting for persistence."""
        self._pending.append(event)
        self._wakeup.set()

    async def flush(self) -> int:
        """Persist pending events in order; returns how many were stored.

        An event that still fails after retries is logged and dropped.
        """
        stored = 0
        async with self._lock:
            while self._pending:
                event = self._pending[0]
                try:
                    await call_with_retry(
                        lambda event=event: asyncio.to_thread(
                            self.repository.create_step_completion, event
                        ),
                        action=f"Persist step {event.step_id}",
                        max_retries=self.max_retries,
                        should_retry=lambda _exc: True,
                        sleep=self._sleep,
                    )
                    stored += 1
                except AppError as exc:
                    _logger.error(
                        "Dropping step event %s/%s after retries: %s",
                        event.session_id,
                        event.step_id,
                        exc,
                    )
                self._pending.popleft()
        return stored

    async def run(self) -> None:
        """Background worker that flushes whenever events arrive."""
        while True:
            await self._wakeup.wait()
            self._wakeup.clear()
            await self.flush()

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run())

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
        await self.flush()


class RoutineSessionMachine:
    """Tracks the single active routine session."""

    def __init__(
        self,
        repository: SessionRepository,
        outbox: SessionEventOutbox,
        now: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.repository = repository
        self.outbox = outbox
        self._now = now
        self._session: ActiveSession | None = None
        self._starting = False
        self._ending = False

    @property
    def session(self) -> ActiveSession | None:
        return self._session

    @property
    def state(self) -> SessionState:
        if self._session is None:
            return SessionState.NO_SESSION
        if self._session.is_paused:
            return SessionState.PAUSED
        return SessionState.IN_PROGRESS

    async def start(
        self, user_id: str, routine_id: str, step_ids: Sequence[str]
    ) -> ActiveSession:
        """Start a session; only valid when no session is active."""
        if self._session is not None or self._starting:
            raise InvalidSessionStateError("A routine session is already in progress")
        self._starting = True
        try:
            started_at = self._now()
            session_id = await asyncio.to_thread(
                self.repository.create_session, user_id, routine_id, started_at
            )
        finally:
            self._starting = False
        self._session = ActiveSession(
            id=session_id,
            user_id=user_id,
            routine_id=routine_id,
            started_at=started_at,
            step_ids=tuple(step_ids),
            step_started_at=started_at,
        )
        _logger.info("Started session %s for routine %s", session_id, routine_id)
        return self._session

    def pause(self) -> None:
        session = self._session
        if session is None or session.is_paused or self._ending:
            return
        self._session = replace(session, is_paused=True, paused_at=self._now())

    def resume(self) -> None:
        session = self._session
        if session is None or not session.is_paused or self._ending:
            return
        self._session = replace(
            session,
            is_paused=False,
            paused_at=None,
            total_paused_seconds=session.total_paused_seconds
            + self._paused_for(session),
        )

    def complete_step(self, step_id: str) -> bool:
        return self._record_step(step_id, STEP_COMPLETED)

    def skip_step(self, step_id: str) -> bool:
        return self._record_step(step_id, STEP_SKIPPED)

    async def complete(self) -> SessionSummary:
        """Persist a completed session record and clear the session."""
        session = self._begin_ending()
        try:
            await self.outbox.flush()
            ended_at = self._now()
            paused = session.total_paused_seconds + self._paused_for(session)
            duration = max(
                int((ended_at - session.started_at).total_seconds() - paused), 0
            )
            summary = SessionSummary(
                session_id=session.id,
                status=STATUS_COMPLETED,
                ended_at=ended_at,
                total_duration_seconds=duration,
                steps_completed=len(session.completed_steps),
                steps_skipped=len(session.skipped_steps),
            )
            await asyncio.to_thread(
                self.repository.update_session,
                session.id,
                {
                    "status": STATUS_COMPLETED,
                    "completed_at": ended_at.isoformat(),
                    "total_duration_seconds": duration,
                    "steps_completed": summary.steps_completed,
                    "steps_skipped": summary.steps_skipped,
                },
            )
        finally:
            self._ending = False
        self._session = None
        _logger.info("Completed session %s in %ss", session.id, duration)
        return summary

    async def abandon(self) -> SessionSummary:
        """Persist an abandoned session record and clear the session."""
        session = self._begin_ending()
        try:
            await self.outbox.flush()
            ended_at = self._now()
            await asyncio.to_thread(
                self.repository.update_session,
                session.id,
                {"status": STATUS_ABANDONED, "completed_at": ended_at.isoformat()},
            )
        finally:
            self._ending = False
        self._session = None
        _logger.info("Abandoned session %s", session.id)
        return SessionSummary(
            session_id=session.id,
            status=STATUS_ABANDONED,
            ended_at=ended_at,
            steps_completed=len(session.completed_steps),
            steps_skipped=len(session.skipped_steps),
        )

    def _require_session(self) -> ActiveSession:
        if self._session is None:
            raise InvalidSessionStateError("No routine session is in progress")
        return self._session

    def _begin_ending(self) -> ActiveSession:
        """Claim the session for a terminal transition; one per session."""
        session = self._require_session()
        if self._ending:
            raise InvalidSessionStateError("The routine session is already ending")
        self._ending = True
        return session

    def _paused_for(self, session: ActiveSession) -> float:
        if not session.is_paused or session.paused_at is None:
            return 0.0
        return max((self._now() - session.paused_at).total_seconds(), 0.0)

    def _record_step(self, step_id: str, status: str) -> bool:
        session = self._session
        if session is None or self._ending:
            return False
        if step_id in session.completed_steps or step_id in session.skipped_steps:
            return False
        now = self._now()
        last_index = max(len(session.step_ids) - 1, 0)
        if status == STEP_COMPLETED:
            session = replace(session, completed_steps=session.completed_steps | {step_id})
        else:
            session = replace(session, skipped_steps=session.skipped_steps | {step_id})
        self._session = replace(
            session,
            current_step_index=min(session.current_step_index + 1, last_index),
            step_started_at=now,
        )
        self.outbox.emit(
            StepEvent(
                session_id=session.id,
                step_id=step_id,
                status=status,
                started_at=session.step_started_at or session.started_at,
                occurred_at=now,
            )
        )
        return True
