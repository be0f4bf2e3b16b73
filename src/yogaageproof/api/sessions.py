"""Routine session endpoints."""

from __future__ import annotations

from dataclasses import asdict
from typing import TYPE_CHECKING

from fastapi import APIRouter, Request, status
from pydantic import BaseModel, Field

from yogaageproof.domain.sessions import PlannedStep, SessionSummary

if TYPE_CHECKING:
    from yogaageproof.containers import AppContainer

router = APIRouter(prefix="/sessions", tags=["sessions"])


class StepPayload(BaseModel):
    """Step to play and its timer length."""

    step_id: str
    duration_seconds: int = Field(default=60, ge=0)


class StartSessionRequest(BaseModel):
    """Routine to start playing."""

    user_id: str
    routine_id: str
    steps: list[StepPayload] = Field(min_length=1)


def _current(container: AppContainer) -> dict[str, object]:
    machine = container.session_machine
    session = machine.session
    return {
        "state": machine.state.value,
        "session": asdict(session) if session is not None else None,
        "remaining_seconds": container.routine_player.remaining_seconds,
    }


def _summary(summary: SessionSummary | None) -> dict[str, object] | None:
    return asdict(summary) if summary is not None else None


@router.post("", status_code=status.HTTP_201_CREATED)
async def start_session(
    payload: StartSessionRequest, request: Request
) -> dict[str, object]:
    """Start playing a routine; 409 if a session is already active."""
    container: AppContainer = request.app.state.container
    await container.routine_player.start(
        payload.user_id,
        payload.routine_id,
        [PlannedStep(step.step_id, step.duration_seconds) for step in payload.steps],
    )
    return _current(container)


@router.get("/current")
async def current_session(request: Request) -> dict[str, object]:
    container: AppContainer = request.app.state.container
    return _current(container)


@router.post("/current/pause")
async def pause_session(request: Request) -> dict[str, object]:
    container: AppContainer = request.app.state.container
    container.routine_player.pause()
    return _current(container)


@router.post("/current/resume")
async def resume_session(request: Request) -> dict[str, object]:
    container: AppContainer = request.app.state.container
    container.routine_player.resume()
    return _current(container)


@router.post("/current/complete")
async def complete_session(request: Request) -> dict[str, object]:
    """Complete the session and return its summary."""
    container: AppContainer = request.app.state.container
    summary = await container.routine_player.complete()
    return {"summary": _summary(summary), **_current(container)}


@router.post("/current/abandon")
async def abandon_session(request: Request) -> dict[str, object]:
    container: AppContainer = request.app.state.container
    summary = await container.routine_player.abandon()
    return {"summary": _summary(summary), **_current(container)}


@router.post("/current/steps/{step_id}/complete")
async def complete_step(step_id: str, request: Request) -> dict[str, object]:
    """Mark a step completed; recording the same step twice is ignored."""
    container: AppContainer = request.app.state.container
    recorded = container.session_machine.complete_step(step_id)
    if recorded:
        container.routine_player.sync_timer()
    return {"recorded": recorded, **_current(container)}


@router.post("/current/steps/{step_id}/skip")
async def skip_step(step_id: str, request: Request) -> dict[str, object]:
    """Mark a step skipped; recording the same step twice is ignored."""
    container: AppContainer = request.app.state.container
    recorded = container.session_machine.skip_step(step_id)
    if recorded:
        container.routine_player.sync_timer()
    return {"recorded": recorded, **_current(container)}


@router.post("/current/skip")
async def skip_current_step(request: Request) -> dict[str, object]:
    """Skip whatever step is playing, completing the session after the last."""
    container: AppContainer = request.app.state.container
    summary = await container.routine_player.skip()
    return {"summary": _summary(summary), **_current(container)}
