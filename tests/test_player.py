"""Tests for the routine player that drives sessions from step timers."""

import asyncio

import pytest

from yogaageproof.domain.errors import InvalidSessionStateError, ValidationError
from yogaageproof.domain.sessions import (
    STATUS_COMPLETED,
    STEP_COMPLETED,
    STEP_SKIPPED,
    PlannedStep,
    SessionState,
)
from yogaageproof.services.player import RoutinePlayer
from yogaageproof.services.routine_session import (
    RoutineSessionMachine,
    SessionEventOutbox,
)
from tests.conftest import FakeSleep, InMemorySessionRepository


def _player(
    repository: InMemorySessionRepository, sleep: FakeSleep | None = None
) -> RoutinePlayer:
    outbox = SessionEventOutbox(repository, sleep=FakeSleep())
    return RoutinePlayer(RoutineSessionMachine(repository, outbox), sleep=sleep or FakeSleep())


def test_timers_advance_through_steps_and_complete_session(
    session_repository: InMemorySessionRepository,
) -> None:
    sleep = FakeSleep()
    player = _player(session_repository, sleep)

    async def run() -> None:
        await player.start(
            "user-1", "routine-1", [PlannedStep("cleanse", 2), PlannedStep("massage", 1)]
        )
        await player.timer.wait()

    asyncio.run(run())

    summary = player.last_summary
    assert summary is not None
    assert summary.status == STATUS_COMPLETED
    assert summary.steps_completed == 2
    assert sleep.delays == [1, 1, 1]
    assert player.machine.state == SessionState.NO_SESSION
    assert [(event.step_id, event.status) for event in session_repository.completions] == [
        ("cleanse", STEP_COMPLETED),
        ("massage", STEP_COMPLETED),
    ]


def test_start_requires_steps(session_repository: InMemorySessionRepository) -> None:
    player = _player(session_repository)

    with pytest.raises(ValidationError):
        asyncio.run(player.start("user-1", "routine-1", []))

    assert session_repository.sessions == {}


def test_skip_moves_timer_to_next_step(
    session_repository: InMemorySessionRepository,
) -> None:
    player = _player(session_repository)

    async def run() -> None:
        await player.start(
            "user-1", "routine-1", [PlannedStep("cleanse", 5), PlannedStep("massage", 3)]
        )
        assert player.remaining_seconds == 5
        assert await player.skip() is None
        assert player.remaining_seconds == 3
        await player.close()

    asyncio.run(run())

    assert player.machine.session.skipped_steps == {"cleanse"}
    assert player.machine.session.current_step_id == "massage"


def test_skipping_last_step_completes_session(
    session_repository: InMemorySessionRepository,
) -> None:
    player = _player(session_repository)

    async def run():
        await player.start("user-1", "routine-1", [PlannedStep("cleanse", 30)])
        return await player.skip()

    summary = asyncio.run(run())

    assert summary.steps_skipped == 1
    assert summary.steps_completed == 0
    assert session_repository.completions[0].status == STEP_SKIPPED
    assert player.timer.is_active is False
    assert player.machine.session is None


def test_complete_current_on_last_step_completes_session(
    session_repository: InMemorySessionRepository,
) -> None:
    player = _player(session_repository)

    async def run():
        await player.start(
            "user-1", "routine-1", [PlannedStep("cleanse", 30), PlannedStep("massage", 30)]
        )
        first = await player.complete_current()
        second = await player.complete_current()
        return first, second

    first, second = asyncio.run(run())

    assert first is None
    assert second.steps_completed == 2
    assert player.last_summary == second


def test_pause_stops_the_countdown_until_resume(
    session_repository: InMemorySessionRepository,
) -> None:
    sleep = FakeSleep()
    player = _player(session_repository, sleep)

    async def run() -> tuple[int, SessionState]:
        await player.start("user-1", "routine-1", [PlannedStep("cleanse", 3)])
        player.pause()
        await player.timer.wait()
        paused = (player.remaining_seconds, player.machine.state)
        player.resume()
        await player.timer.wait()
        return paused

    remaining, state = asyncio.run(run())

    assert (remaining, state) == (3, SessionState.PAUSED)
    assert sleep.delays == [1, 1, 1]
    assert player.last_summary.steps_completed == 1


def test_complete_early_keeps_recorded_steps(
    session_repository: InMemorySessionRepository,
) -> None:
    player = _player(session_repository)

    async def run():
        await player.start(
            "user-1", "routine-1", [PlannedStep("cleanse", 30), PlannedStep("massage", 30)]
        )
        await player.complete_current()
        return await player.complete()

    summary = asyncio.run(run())

    assert summary.steps_completed == 1
    assert player.timer.is_active is False
    assert player.machine.state == SessionState.NO_SESSION


def test_sync_timer_follows_steps_recorded_on_the_machine(
    session_repository: InMemorySessionRepository,
) -> None:
    player = _player(session_repository)

    async def run() -> int:
        await player.start(
            "user-1", "routine-1", [PlannedStep("cleanse", 5), PlannedStep("massage", 7)]
        )
        player.machine.complete_step("cleanse")
        player.sync_timer()
        remaining = player.remaining_seconds
        await player.close()
        return remaining

    assert asyncio.run(run()) == 7


def test_abandon_without_session_is_rejected(
    session_repository: InMemorySessionRepository,
) -> None:
    player = _player(session_repository)

    with pytest.raises(InvalidSessionStateError):
        asyncio.run(player.abandon())

    assert player.timer.is_active is False
