"""Photo capture, backup, sync and restore endpoints."""

from __future__ import annotations

from dataclasses import asdict
from typing import TYPE_CHECKING

from fastapi import APIRouter, HTTPException, Request, status
from pydantic import BaseModel

from yogaageproof.domain.errors import NetworkError

if TYPE_CHECKING:
    from yogaageproof.containers import AppContainer

router = APIRouter(tags=["photos"])


class BackupSettingsRequest(BaseModel):
    """Toggle for a user's cloud backup opt-in."""

    enabled: bool
    delete_existing: bool = False


@router.get("/sync/status")
async def sync_status(request: Request) -> dict[str, object]:
    """Return queue length, whether a drain is running and the oldest item."""
    container: AppContainer = request.app.state.container
    return asdict(container.sync_queue.status())


@router.post("/sync/now")
async def sync_now(request: Request) -> dict[str, object]:
    """Drain the sync queue immediately; 409 when not on WiFi."""
    container: AppContainer = request.app.state.container
    try:
        synced = await container.sync_queue.force_sync_all()
    except NetworkError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=exc.message) from exc
    return {"synced": synced, **asdict(container.sync_queue.status())}


@router.post("/users/{user_id}/photos", status_code=status.HTTP_201_CREATED)
async def capture_photo(user_id: str, request: Request) -> dict[str, object]:
    """Store a captured photo sent as the raw request body."""
    container: AppContainer = request.app.state.container
    image_bytes = await request.body()
    if not image_bytes:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Empty photo")
    record = await container.capture_service.capture(user_id, image_bytes)
    return asdict(record)


@router.post("/users/{user_id}/photos/{photo_id}/backup")
async def backup_photo(user_id: str, photo_id: str, request: Request) -> dict[str, object]:
    """Queue an existing local photo for backup."""
    container: AppContainer = request.app.state.container
    local_path = await container.local_store.load_photo(photo_id)
    if local_path is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Photo not found")
    queued = await container.sync_queue.enqueue(photo_id, user_id, str(local_path))
    return {"queued": queued, "queue_length": container.sync_queue.status().queue_length}


@router.put("/users/{user_id}/backup")
async def update_backup_settings(
    user_id: str, payload: BackupSettingsRequest, request: Request
) -> dict[str, object]:
    """Opt in to or out of cloud backup."""
    container: AppContainer = request.app.state.container
    if payload.enabled:
        await container.cloud_backup.enable_backup(user_id)
        return {"enabled": True, "deleted": 0}
    deleted = await container.cloud_backup.disable_backup(
        user_id, delete_existing=payload.delete_existing
    )
    return {"enabled": False, "deleted": deleted}


@router.post("/users/{user_id}/restore")
async def restore_photos(user_id: str, request: Request) -> dict[str, object]:
    """Restore every backed-up photo missing from this device."""
    container: AppContainer = request.app.state.container
    result = await container.restoration_engine.restore_all(user_id)
    return asdict(result)


@router.post("/users/{user_id}/photos/{photo_id}/restore")
async def restore_photo(user_id: str, photo_id: str, request: Request) -> dict[str, object]:
    """Restore one photo on demand."""
    container: AppContainer = request.app.state.container
    restored = await container.restoration_engine.restore_single(photo_id, user_id)
    return {"restored": restored}


@router.get("/users/{user_id}/restore/status")
async def restore_status(user_id: str, request: Request) -> dict[str, object]:
    """Return local and cloud-only photo counts with a time estimate."""
    container: AppContainer = request.app.state.container
    engine = container.restoration_engine
    restoration = await engine.restoration_status(user_id)
    return {
        **asdict(restoration),
        "estimated_seconds": await engine.estimate_restoration_seconds(user_id),
    }


@router.get("/users/{user_id}/backup/integrity")
async def backup_integrity(user_id: str, request: Request) -> dict[str, object]:
    """Report backed-up photos whose blob is missing from the bucket."""
    container: AppContainer = request.app.state.container
    report = await container.restoration_engine.verify_backup_integrity(user_id)
    return asdict(report)
