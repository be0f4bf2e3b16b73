"""Plays a routine by driving the session machine from step timers."""

import asyncio
import logging
from collections.abc import Sequence

from yogaageproof.domain.errors import ValidationError
from yogaageproof.domain.sessions import ActiveSession, PlannedStep, SessionSummary
from yogaageproof.services.retry import Sleep
from yogaageproof.services.routine_session import RoutineSessionMachine
from yogaageproof.services.step_timer import StepTimer

_logger = logging.getLogger(__name__)


class RoutinePlayer:
    """Advances through steps as their timers expire.

    Finishing or skipping the last step completes the session.
    """

    def __init__(self, machine: RoutineSessionMachine, sleep: Sleep = asyncio.sleep) -> None:
        self.machine = machine
        self.timer = StepTimer(
            on_tick=self._on_tick, on_complete=self._on_timer_complete, sleep=sleep
        )
        self.remaining_seconds = 0
        self.last_summary: SessionSummary | None = None
        self._durations: dict[str, int] = {}

    async def start(
        self, user_id: str, routine_id: str, steps: Sequence[PlannedStep]
    ) -> ActiveSession:
        if not steps:
            raise ValidationError("A routine needs at least one step", routine_id=routine_id)
        session = await self.machine.start(
            user_id, routine_id, [step.step_id for step in steps]
        )
        self._durations = {step.step_id: step.duration_seconds for step in steps}
        self.last_summary = None
        self.sync_timer()
        self.timer.set_active(True)
        return session

    def pause(self) -> None:
        self.machine.pause()
        self.timer.set_active(False)

    def resume(self) -> None:
        self.machine.resume()
        if self.machine.session is not None:
            self.timer.set_active(True)

    async def complete_current(self) -> SessionSummary | None:
        """Complete the current step; returns the summary if it was the last."""
        return await self._finish_step(skipped=False)

    async def skip(self) -> SessionSummary | None:
        """Skip the current step; returns the summary if it was the last."""
        return await self._finish_step(skipped=True)

    async def complete(self) -> SessionSummary:
        """Finish the session early, keeping whatever steps were recorded."""
        self.timer.set_active(False)
        try:
            self.last_summary = await self.machine.complete()
        except Exception:
            self._restore_timer()
            raise
        return self.last_summary

    async def abandon(self) -> SessionSummary:
        self.timer.set_active(False)
        try:
            return await self.machine.abandon()
        except Exception:
            self._restore_timer()
            raise

    def sync_timer(self) -> None:
        """Point the timer at the machine's current step."""
        session = self.machine.session
        step_id = session.current_step_id if session is not None else None
        self.timer.set_duration(self._durations.get(step_id, 0) if step_id else 0)
        self.remaining_seconds = self.timer.remaining_seconds

    async def close(self) -> None:
        await self.timer.close()

    def _restore_timer(self) -> None:
        session = self.machine.session
        if session is not None and not session.is_paused:
            self.timer.set_active(True)

    def _on_tick(self, remaining: int) -> None:
        self.remaining_seconds = remaining

    async def _on_timer_complete(self) -> None:
        try:
            await self._finish_step(skipped=False)
        except Exception:
            _logger.exception("Failed to advance routine after timer expired")

    async def _finish_step(self, *, skipped: bool) -> SessionSummary | None:
        session = self.machine.session
        if session is None or session.current_step_id is None:
            self.timer.set_active(False)
            return None
        step_id = session.current_step_id
        was_last = session.is_last_step
        if skipped:
            self.machine.skip_step(step_id)
        else:
            self.machine.complete_step(step_id)
        if not was_last:
            self.sync_timer()
            return None
        self.timer.set_active(False)
        self.last_summary = await self.machine.complete()
        return self.last_summary
