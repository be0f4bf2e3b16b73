"""Tests for the routine session state machine and its event outbox."""

import asyncio
from datetime import timedelta

import pytest

from yogaageproof.domain.errors import InvalidSessionStateError
from yogaageproof.domain.sessions import (
    STATUS_ABANDONED,
    STATUS_COMPLETED,
    STEP_COMPLETED,
    STEP_SKIPPED,
    SessionState,
    StepEvent,
)
from yogaageproof.services.routine_session import (
    RoutineSessionMachine,
    SessionEventOutbox,
)
from tests.conftest import FakeSleep, InMemorySessionRepository, SteppingNow

STEPS = ("cleanse", "massage", "stretch")


def _machine(
    repository: InMemorySessionRepository,
    now: SteppingNow | None = None,
    sleep: FakeSleep | None = None,
) -> tuple[RoutineSessionMachine, SessionEventOutbox, SteppingNow]:
    clock = now or SteppingNow()
    outbox = SessionEventOutbox(repository, sleep=sleep or FakeSleep())
    return RoutineSessionMachine(repository, outbox, now=clock), outbox, clock


def test_start_creates_in_progress_session(
    session_repository: InMemorySessionRepository,
) -> None:
    machine, _, clock = _machine(session_repository)

    session = asyncio.run(machine.start("user-1", "routine-1", STEPS))

    assert machine.state == SessionState.IN_PROGRESS
    assert session.current_step_id == "cleanse"
    assert session.step_started_at == clock.current
    assert session_repository.sessions[session.id]["status"] == "in_progress"


def test_start_while_active_is_rejected(
    session_repository: InMemorySessionRepository,
) -> None:
    machine, _, _ = _machine(session_repository)

    async def run() -> None:
        await machine.start("user-1", "routine-1", STEPS)
        await machine.start("user-1", "routine-2", STEPS)

    with pytest.raises(InvalidSessionStateError):
        asyncio.run(run())

    assert len(session_repository.sessions) == 1
    assert machine.session is not None
    assert machine.session.routine_id == "routine-1"


def test_pause_and_resume_track_paused_time(
    session_repository: InMemorySessionRepository,
) -> None:
    machine, _, clock = _machine(session_repository)
    asyncio.run(machine.start("user-1", "routine-1", STEPS))

    machine.pause()
    paused_at = machine.session.paused_at
    clock.advance(30)
    machine.pause()

    assert machine.state == SessionState.PAUSED
    assert machine.session.paused_at == paused_at

    machine.resume()

    assert machine.state == SessionState.IN_PROGRESS
    assert machine.session.total_paused_seconds == 30
    assert machine.session.paused_at is None


def test_immediate_resume_adds_no_paused_time(
    session_repository: InMemorySessionRepository,
) -> None:
    machine, _, _ = _machine(session_repository)
    asyncio.run(machine.start("user-1", "routine-1", STEPS))

    machine.pause()
    machine.resume()

    assert machine.session.total_paused_seconds == 0


def test_pause_and_resume_without_session_are_ignored(
    session_repository: InMemorySessionRepository,
) -> None:
    machine, _, _ = _machine(session_repository)

    machine.pause()
    machine.resume()
    machine.resume()

    assert machine.state == SessionState.NO_SESSION


def test_steps_advance_and_are_recorded_once(
    session_repository: InMemorySessionRepository,
) -> None:
    machine, outbox, _ = _machine(session_repository)
    asyncio.run(machine.start("user-1", "routine-1", STEPS))

    assert machine.complete_step("cleanse") is True
    assert machine.skip_step("cleanse") is False
    assert machine.complete_step("cleanse") is False
    assert machine.skip_step("massage") is True

    session = machine.session
    assert session.completed_steps == {"cleanse"}
    assert session.skipped_steps == {"massage"}
    assert session.completed_steps.isdisjoint(session.skipped_steps)
    assert session.current_step_id == "stretch"
    assert [(event.step_id, event.status) for event in outbox.pending] == [
        ("cleanse", STEP_COMPLETED),
        ("massage", STEP_SKIPPED),
    ]


def test_step_index_stops_at_last_step(
    session_repository: InMemorySessionRepository,
) -> None:
    machine, _, _ = _machine(session_repository)
    asyncio.run(machine.start("user-1", "routine-1", STEPS))

    for step_id in STEPS:
        machine.complete_step(step_id)
    machine.complete_step("bonus")

    assert machine.session.current_step_index == len(STEPS) - 1
    assert machine.session.is_last_step is True


def test_step_events_carry_step_timing(
    session_repository: InMemorySessionRepository,
) -> None:
    machine, outbox, clock = _machine(session_repository)
    asyncio.run(machine.start("user-1", "routine-1", STEPS))
    started = clock.current

    clock.advance(10)
    machine.complete_step("cleanse")
    clock.advance(5)
    machine.complete_step("massage")

    first, second = outbox.pending
    assert (first.started_at, first.occurred_at) == (started, started + timedelta(seconds=10))
    assert second.started_at == first.occurred_at
    assert second.occurred_at == started + timedelta(seconds=15)


def test_step_calls_without_session_return_false(
    session_repository: InMemorySessionRepository,
) -> None:
    machine, outbox, _ = _machine(session_repository)

    assert machine.complete_step("cleanse") is False
    assert machine.skip_step("cleanse") is False
    assert outbox.pending == []


def test_complete_persists_summary_excluding_paused_time(
    session_repository: InMemorySessionRepository,
) -> None:
    machine, _, clock = _machine(session_repository)

    async def run():
        session = await machine.start("user-1", "routine-1", STEPS)
        clock.advance(100)
        machine.complete_step("cleanse")
        machine.pause()
        clock.advance(50)
        machine.resume()
        clock.advance(20)
        machine.skip_step("massage")
        return session, await machine.complete()

    session, summary = asyncio.run(run())

    assert summary.status == STATUS_COMPLETED
    assert summary.total_duration_seconds == 120
    assert (summary.steps_completed, summary.steps_skipped) == (1, 1)
    row = session_repository.sessions[session.id]
    assert row["status"] == STATUS_COMPLETED
    assert row["total_duration_seconds"] == 120
    assert row["completed_at"] == summary.ended_at.isoformat()
    assert [event.step_id for event in session_repository.completions] == [
        "cleanse",
        "massage",
    ]
    assert machine.state == SessionState.NO_SESSION


def test_complete_while_paused_excludes_ongoing_pause(
    session_repository: InMemorySessionRepository,
) -> None:
    machine, _, clock = _machine(session_repository)

    async def run():
        await machine.start("user-1", "routine-1", STEPS)
        clock.advance(60)
        machine.pause()
        clock.advance(40)
        return await machine.complete()

    assert asyncio.run(run()).total_duration_seconds == 60


def test_abandon_writes_abandoned_status(
    session_repository: InMemorySessionRepository,
) -> None:
    machine, _, _ = _machine(session_repository)

    async def run():
        session = await machine.start("user-1", "routine-1", STEPS)
        machine.complete_step("cleanse")
        return session, await machine.abandon()

    session, summary = asyncio.run(run())

    assert summary.status == STATUS_ABANDONED
    assert summary.steps_completed == 1
    assert session_repository.sessions[session.id]["status"] == STATUS_ABANDONED
    assert len(session_repository.completions) == 1
    assert machine.session is None


@pytest.mark.parametrize("action", ["complete", "abandon"])
def test_ending_without_session_is_rejected(
    session_repository: InMemorySessionRepository, action: str
) -> None:
    machine, _, _ = _machine(session_repository)

    with pytest.raises(InvalidSessionStateError):
        asyncio.run(getattr(machine, action)())

    assert session_repository.sessions == {}


def test_concurrent_complete_and_abandon_end_session_once(
    session_repository: InMemorySessionRepository,
) -> None:
    machine, _, _ = _machine(session_repository)

    async def run():
        await machine.start("user-1", "routine-1", STEPS)
        return await asyncio.gather(
            machine.complete(), machine.abandon(), return_exceptions=True
        )

    completed, abandoned = asyncio.run(run())

    assert completed.status == STATUS_COMPLETED
    assert isinstance(abandoned, InvalidSessionStateError)
    assert [fields["status"] for _, fields in session_repository.session_updates] == [
        STATUS_COMPLETED
    ]
    assert machine.state == SessionState.NO_SESSION


def test_steps_are_refused_while_session_is_ending(
    session_repository: InMemorySessionRepository,
) -> None:
    machine, outbox, _ = _machine(session_repository)
    recorded: list[bool] = []
    session_repository.on_update = lambda: recorded.append(machine.complete_step("cleanse"))

    async def run():
        await machine.start("user-1", "routine-1", STEPS)
        return await machine.complete()

    summary = asyncio.run(run())

    assert recorded == [False]
    assert summary.steps_completed == 0
    assert outbox.pending == []


def test_failed_ending_keeps_session_active(
    session_repository: InMemorySessionRepository,
) -> None:
    machine, _, _ = _machine(session_repository)
    session_repository.failing_updates = 1

    async def run():
        await machine.start("user-1", "routine-1", STEPS)
        with pytest.raises(ConnectionError):
            await machine.complete()
        assert machine.state == SessionState.IN_PROGRESS
        assert machine.complete_step("cleanse") is True
        return await machine.abandon()

    summary = asyncio.run(run())

    assert summary.status == STATUS_ABANDONED
    assert summary.steps_completed == 1
    assert machine.session is None


def _event(step_id: str) -> StepEvent:
    clock = SteppingNow()
    return StepEvent(
        session_id="session-1",
        step_id=step_id,
        status=STEP_COMPLETED,
        started_at=clock(),
        occurred_at=clock(),
    )


def test_outbox_persists_events_in_order(
    session_repository: InMemorySessionRepository,
) -> None:
    outbox = SessionEventOutbox(session_repository, sleep=FakeSleep())
    for step_id in ("a", "b", "c"):
        outbox.emit(_event(step_id))

    stored = asyncio.run(outbox.flush())

    assert stored == 3
    assert [event.step_id for event in session_repository.completions] == ["a", "b", "c"]
    assert outbox.pending == []


def test_outbox_retries_transient_failures(
    session_repository: InMemorySessionRepository,
) -> None:
    sleep = FakeSleep()
    session_repository.failing_completions = 2
    outbox = SessionEventOutbox(session_repository, sleep=sleep)
    outbox.emit(_event("a"))

    stored = asyncio.run(outbox.flush())

    assert stored == 1
    assert session_repository.completion_attempts == 3
    assert sleep.delays == [1.0, 2.0]


def test_outbox_drops_event_after_retries_and_continues(
    session_repository: InMemorySessionRepository,
) -> None:
    session_repository.failing_completions = 4
    outbox = SessionEventOutbox(session_repository, max_retries=3, sleep=FakeSleep())
    outbox.emit(_event("a"))
    outbox.emit(_event("b"))

    stored = asyncio.run(outbox.flush())

    assert stored == 1
    assert [event.step_id for event in session_repository.completions] == ["b"]
    assert outbox.pending == []


def test_outbox_worker_flushes_on_stop(
    session_repository: InMemorySessionRepository,
) -> None:
    outbox = SessionEventOutbox(session_repository, sleep=FakeSleep())

    async def run() -> None:
        outbox.start()
        outbox.emit(_event("a"))
        await outbox.stop()

    asyncio.run(run())

    assert [event.step_id for event in session_repository.completions] == ["a"]


def test_failing_persistence_does_not_block_steps(
    session_repository: InMemorySessionRepository,
) -> None:
    session_repository.failing_completions = 100
    machine, _, _ = _machine(session_repository)

    async def run():
        await machine.start("user-1", "routine-1", STEPS)
        recorded = [machine.complete_step(step_id) for step_id in STEPS]
        return recorded, await machine.complete()

    recorded, summary = asyncio.run(run())

    assert recorded == [True, True, True]
    assert summary.steps_completed == 3
    assert session_repository.completions == []
