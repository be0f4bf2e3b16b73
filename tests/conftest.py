"""Shared test fixtures."""

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from pathlib import Path
from uuid import uuid4

import pytest

from yogaageproof.config import Settings
from yogaageproof.containers import AppContainer
from yogaageproof.domain.errors import ServerError
from yogaageproof.domain.photos import PhotoRecord, SyncQueueItem
from yogaageproof.domain.sessions import StepEvent
from yogaageproof.services.ai_client import AIClient, ChatMessage
from yogaageproof.services.ai_gateway import AIRequestGateway
from yogaageproof.services.capture import PhotoCaptureService
from yogaageproof.services.cloud import (
    BackupSettingsRepository,
    BlobStorage,
    CloudBackupService,
)
from yogaageproof.services.crypto import KeyManager, KeyStore, PhotoCipher
from yogaageproof.services.local_storage import ImageCompressor, LocalPhotoStore
from yogaageproof.services.network import (
    CONNECTION_WIFI,
    NetworkMonitor,
    NetworkState,
    NetworkWatcher,
)
from yogaageproof.services.photo_comparison import PhotoComparisonService
from yogaageproof.services.photo_records import PhotoRecordRepository
from yogaageproof.services.player import RoutinePlayer
from yogaageproof.services.product_insights import ProductInsightService
from yogaageproof.services.restore import RestorationEngine
from yogaageproof.services.routine_generator import RoutineGenerator
from yogaageproof.services.routine_session import (
    RoutineSessionMachine,
    SessionEventOutbox,
    SessionRepository,
)
from yogaageproof.services.skin_analysis import SkinAnalyzer
from yogaageproof.services.sync_queue import SyncQueue, SyncQueueStore

WIFI = NetworkState(
    connection_type=CONNECTION_WIFI, is_connected=True, is_internet_reachable=True
)
PLENTY_OF_SPACE = 10 * 1024 * 1024 * 1024


@dataclass
class FakeClock:
    """Monotonic clock advanced by hand or by FakeSleep."""

    now: float = 0.0

    def __call__(self) -> float:
        return self.now


@dataclass
class FakeSleep:
    """Records requested delays and advances the clock instead of waiting."""

    clock: FakeClock = field(default_factory=FakeClock)
    delays: list[float] = field(default_factory=list)

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        self.clock.now += delay
        await asyncio.sleep(0)


@dataclass
class SteppingNow:
    """Wall clock that moves forward a fixed step on every read."""

    current: datetime = field(
        default_factory=lambda: datetime(2025, 1, 1, 9, 0, tzinfo=UTC)
    )
    step: timedelta = timedelta(0)

    def __call__(self) -> datetime:
        value = self.current
        self.current += self.step
        return value

    def advance(self, seconds: float) -> None:
        self.current += timedelta(seconds=seconds)


@dataclass
class InMemoryKeyStore(KeyStore):
    """In-memory key store for tests."""

    keys: dict[str, bytes] = field(default_factory=dict)
    writes: int = 0

    def get_key(self, user_id: str) -> bytes | None:
        return self.keys.get(user_id)

    def set_key(self, user_id: str, key: bytes) -> None:
        self.writes += 1
        self.keys[user_id] = key


@dataclass
class FakeImageCompressor(ImageCompressor):
    """Marks bytes as compressed without decoding them."""

    def compress(self, data: bytes) -> bytes:
        return b"jpeg:" + data


@dataclass
class InMemoryBlobStorage(BlobStorage):
    """In-memory bucket that tracks download concurrency."""

    blobs: dict[str, bytes] = field(default_factory=dict)
    failing_uploads: int = 0
    failing_downloads: set[str] = field(default_factory=set)
    upload_calls: list[str] = field(default_factory=list)
    list_calls: list[tuple[str, str | None]] = field(default_factory=list)
    remove_calls: list[int] = field(default_factory=list)
    active_downloads: int = 0
    max_active_downloads: int = 0

    async def upload(self, path: str, data: bytes) -> None:
        self.upload_calls.append(path)
        if self.failing_uploads:
            self.failing_uploads -= 1
            raise ServerError("Storage unavailable", 503)
        self.blobs[path] = data

    async def download(self, path: str) -> bytes:
        self.active_downloads += 1
        self.max_active_downloads = max(self.max_active_downloads, self.active_downloads)
        try:
            await asyncio.sleep(0)
            await asyncio.sleep(0)
            if path in self.failing_downloads:
                raise ServerError("Download failed", 500)
            return self.blobs[path]
        finally:
            self.active_downloads -= 1

    async def remove(self, paths: list[str]) -> None:
        self.remove_calls.append(len(paths))
        for path in paths:
            self.blobs.pop(path, None)

    async def list(self, prefix: str, search: str | None = None) -> list[str]:
        self.list_calls.append((prefix, search))
        names = [
            path.removeprefix(f"{prefix}/")
            for path in self.blobs
            if path.startswith(f"{prefix}/")
        ]
        if search:
            names = [name for name in names if search in name]
        return names

    def public_url(self, path: str) -> str:
        return f"https://storage.test/progress-photos/{path}"


@dataclass
class InMemoryBackupSettings(BackupSettingsRepository):
    """In-memory backup opt-in flags."""

    enabled: set[str] = field(default_factory=set)
    fail: bool = False

    def is_cloud_backup_enabled(self, user_id: str) -> bool:
        if self.fail:
            raise RuntimeError("database unavailable")
        return user_id in self.enabled

    def set_cloud_backup_enabled(self, user_id: str, enabled: bool) -> None:
        if enabled:
            self.enabled.add(user_id)
        else:
            self.enabled.discard(user_id)


@dataclass
class InMemoryPhotoRecordRepository(PhotoRecordRepository):
    """In-memory progress photo rows."""

    records: dict[str, PhotoRecord] = field(default_factory=dict)
    updates: list[tuple[str, dict[str, object]]] = field(default_factory=list)
    sizes: dict[str, int] = field(default_factory=dict)

    def add(self, record: PhotoRecord) -> None:
        self.records[record.id] = record

    def get_photos_for_user(self, user_id: str) -> list[PhotoRecord]:
        photos = [
            record
            for record in self.records.values()
            if record.user_id == user_id and not record.is_deleted
        ]
        return sorted(photos, key=lambda record: record.captured_at, reverse=True)

    def create_photo_record(self, record: PhotoRecord, file_size_bytes: int) -> PhotoRecord:
        self.records[record.id] = record
        self.sizes[record.id] = file_size_bytes
        return record

    def update_photo_record(self, photo_id: str, fields: dict[str, object]) -> None:
        self.updates.append((photo_id, fields))


@dataclass
class InMemorySyncQueueStore(SyncQueueStore):
    """In-memory durable queue store."""

    rows: dict[str, SyncQueueItem] = field(default_factory=dict)

    def load(self) -> list[SyncQueueItem]:
        return list(self.rows.values())

    def add(self, item: SyncQueueItem) -> bool:
        if item.photo_id in self.rows:
            return False
        self.rows[item.photo_id] = item
        return True

    def remove(self, photo_id: str) -> None:
        self.rows.pop(photo_id, None)

    def update_retry(self, photo_id: str, retry_count: int) -> None:
        item = self.rows[photo_id]
        self.rows[photo_id] = SyncQueueItem(
            photo_id=item.photo_id,
            user_id=item.user_id,
            local_reference=item.local_reference,
            enqueued_at=item.enqueued_at,
            retry_count=retry_count,
        )

    def clear(self) -> None:
        self.rows.clear()


@dataclass
class FakeNetworkMonitor(NetworkMonitor):
    """Network monitor returning a settable state."""

    state: NetworkState = WIFI
    checks: int = 0

    async def current(self) -> NetworkState:
        self.checks += 1
        return self.state


@dataclass
class InMemorySessionRepository(SessionRepository):
    """In-memory routine session rows and step completions."""

    sessions: dict[str, dict[str, object]] = field(default_factory=dict)
    completions: list[StepEvent] = field(default_factory=list)
    failing_completions: int = 0
    completion_attempts: int = 0
    session_updates: list[tuple[str, dict[str, object]]] = field(default_factory=list)
    failing_updates: int = 0
    on_update: Callable[[], None] | None = None

    def create_session(self, user_id: str, routine_id: str, started_at: datetime) -> str:
        session_id = str(uuid4())
        self.sessions[session_id] = {
            "user_id": user_id,
            "routine_id": routine_id,
            "started_at": started_at,
            "status": "in_progress",
        }
        return session_id

    def update_session(self, session_id: str, fields: dict[str, object]) -> None:
        if self.on_update is not None:
            self.on_update()
        if self.failing_updates:
            self.failing_updates -= 1
            raise ConnectionError("database unreachable")
        self.session_updates.append((session_id, fields))
        self.sessions[session_id].update(fields)

    def create_step_completion(self, event: StepEvent) -> None:
        self.completion_attempts += 1
        if self.failing_completions:
            self.failing_completions -= 1
            raise ConnectionError("database unreachable")
        self.completions.append(event)


@dataclass
class FakeAIClient(AIClient):
    """AI client returning queued responses and recording calls."""

    responses: list[str | Exception] = field(default_factory=list)
    model: str = "test-model"
    calls: list[dict[str, object]] = field(default_factory=list)
    handler: Callable[[], Awaitable[None]] | None = None

    async def create_message(  # noqa: PLR0913
        self,
        *,
        messages: Sequence[ChatMessage],
        system: str | None = None,
        max_tokens: int = 4096,
        temperature: float | None = None,
        images: Sequence[bytes] = (),
    ) -> str:
        self.calls.append(
            {
                "messages": list(messages),
                "system": system,
                "max_tokens": max_tokens,
                "temperature": temperature,
                "images": list(images),
            }
        )
        if self.handler is not None:
            await self.handler()
        response = self.responses.pop(0) if self.responses else "{}"
        if isinstance(response, Exception):
            raise response
        return response


def fast_gateway() -> AIRequestGateway:
    """Gateway whose retry backoff does not actually wait."""
    return AIRequestGateway(sleep=FakeSleep())


def make_local_store(directory: Path, free_space: int = PLENTY_OF_SPACE) -> LocalPhotoStore:
    return LocalPhotoStore(
        directory=directory,
        compressor=FakeImageCompressor(),
        free_space=lambda _path: free_space,
    )


def make_cloud(
    local_store: LocalPhotoStore,
    storage: InMemoryBlobStorage | None = None,
    backup_settings: InMemoryBackupSettings | None = None,
    key_store: InMemoryKeyStore | None = None,
) -> CloudBackupService:
    return CloudBackupService(
        storage=storage or InMemoryBlobStorage(),
        settings_repository=backup_settings or InMemoryBackupSettings(),
        key_manager=KeyManager(key_store or InMemoryKeyStore()),
        cipher=PhotoCipher(),
        local_store=local_store,
    )


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        supabase_url="https://example.supabase.co",
        supabase_service_key="header.payload.signature",
        openai_api_key="openai-key",
        data_dir=tmp_path / "data",
        connection_type_override=CONNECTION_WIFI,
    )


@pytest.fixture
def blob_storage() -> InMemoryBlobStorage:
    return InMemoryBlobStorage()


@pytest.fixture
def backup_settings() -> InMemoryBackupSettings:
    return InMemoryBackupSettings(enabled={"user-1"})


@pytest.fixture
def photo_records() -> InMemoryPhotoRecordRepository:
    return InMemoryPhotoRecordRepository()


@pytest.fixture
def session_repository() -> InMemorySessionRepository:
    return InMemorySessionRepository()


@pytest.fixture
def network_monitor() -> FakeNetworkMonitor:
    return FakeNetworkMonitor()


@pytest.fixture
def ai_client() -> FakeAIClient:
    return FakeAIClient()


@pytest.fixture
def container(  # noqa: PLR0913
    settings: Settings,
    tmp_path: Path,
    blob_storage: InMemoryBlobStorage,
    backup_settings: InMemoryBackupSettings,
    photo_records: InMemoryPhotoRecordRepository,
    session_repository: InMemorySessionRepository,
    network_monitor: FakeNetworkMonitor,
    ai_client: FakeAIClient,
) -> AppContainer:
    local_store = make_local_store(tmp_path / "photos")
    cloud_backup = make_cloud(local_store, blob_storage, backup_settings)
    sync_queue = SyncQueue(
        store=InMemorySyncQueueStore(),
        cloud=cloud_backup,
        photo_records=photo_records,
        network=network_monitor,
    )
    gateway = fast_gateway()
    outbox = SessionEventOutbox(session_repository, sleep=FakeSleep())
    machine = RoutineSessionMachine(session_repository, outbox)
    player = RoutinePlayer(machine)

    async def close_resources() -> None:
        await player.close()
        await gateway.close()

    return AppContainer(
        settings=settings,
        cloud_backup=cloud_backup,
        local_store=local_store,
        capture_service=PhotoCaptureService(
            local_store=local_store,
            photo_records=photo_records,
            cloud=cloud_backup,
            sync_queue=sync_queue,
        ),
        sync_queue=sync_queue,
        network_watcher=NetworkWatcher(network_monitor, poll_interval=3600),
        restoration_engine=RestorationEngine(
            cloud=cloud_backup, local_store=local_store, photo_records=photo_records
        ),
        ai_gateway=gateway,
        skin_analyzer=SkinAnalyzer(gateway=gateway, client=ai_client),
        routine_generator=RoutineGenerator(gateway=gateway, client=ai_client),
        product_insights=ProductInsightService(gateway=gateway, client=ai_client),
        photo_comparison=PhotoComparisonService(gateway=gateway, client=ai_client),
        session_outbox=outbox,
        session_machine=machine,
        routine_player=player,
        close_resources=close_resources,
    )
