"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import create_client

from yogaageproof.adapters.file_key_store import FileKeyStore
from yogaageproof.adapters.network_probe import ProbeNetworkMonitor
from yogaageproof.adapters.openai_ai_client import OpenAIMessageClient
from yogaageproof.adapters.pillow_compressor import PillowImageCompressor
from yogaageproof.adapters.sqlite_sync_queue_store import SqliteSyncQueueStore
from yogaageproof.adapters.supabase_photo_record_repository import (
    SupabasePhotoRecordRepository,
)
from yogaageproof.adapters.supabase_photo_storage import SupabasePhotoStorage
from yogaageproof.adapters.supabase_profile_repository import SupabaseProfileRepository
from yogaageproof.adapters.supabase_routine_session_repository import (
    SupabaseRoutineSessionRepository,
)
from yogaageproof.config import Settings
from yogaageproof.services.ai_gateway import AIRequestGateway
from yogaageproof.services.capture import PhotoCaptureService
from yogaageproof.services.cloud import CloudBackupService
from yogaageproof.services.crypto import KeyManager, PhotoCipher
from yogaageproof.services.local_storage import LocalPhotoStore
from yogaageproof.services.network import NetworkWatcher
from yogaageproof.services.photo_comparison import PhotoComparisonService
from yogaageproof.services.player import RoutinePlayer
from yogaageproof.services.product_insights import ProductInsightService
from yogaageproof.services.restore import RestorationEngine
from yogaageproof.services.routine_generator import RoutineGenerator
from yogaageproof.services.routine_session import (
    RoutineSessionMachine,
    SessionEventOutbox,
)
from yogaageproof.services.skin_analysis import SkinAnalyzer
from yogaageproof.services.sync_queue import SyncQueue


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    cloud_backup: CloudBackupService
    local_store: LocalPhotoStore
    capture_service: PhotoCaptureService
    sync_queue: SyncQueue
    network_watcher: NetworkWatcher
    restoration_engine: RestorationEngine
    ai_gateway: AIRequestGateway
    skin_analyzer: SkinAnalyzer
    routine_generator: RoutineGenerator
    product_insights: ProductInsightService
    photo_comparison: PhotoComparisonService
    session_outbox: SessionEventOutbox
    session_machine: RoutineSessionMachine
    routine_player: RoutinePlayer
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    photo_records = SupabasePhotoRecordRepository(supabase_client)
    session_repository = SupabaseRoutineSessionRepository(supabase_client)
    local_store = LocalPhotoStore(
        directory=resolved_settings.photos_dir,
        compressor=PillowImageCompressor(),
        low_storage_threshold_bytes=resolved_settings.low_storage_threshold_bytes,
    )
    cloud_backup = CloudBackupService(
        storage=SupabasePhotoStorage(supabase_client, resolved_settings.photos_bucket),
        settings_repository=SupabaseProfileRepository(supabase_client),
        key_manager=KeyManager(FileKeyStore(resolved_settings.keys_dir)),
        cipher=PhotoCipher(),
        local_store=local_store,
    )
    network_monitor = ProbeNetworkMonitor.create(
        resolved_settings.probe_url,
        connection_type_override=resolved_settings.connection_type_override,
    )
    network_watcher = NetworkWatcher(
        network_monitor,
        poll_interval=resolved_settings.network_poll_interval_seconds,
    )
    sync_store = SqliteSyncQueueStore(resolved_settings.sync_db_path)
    sync_queue = SyncQueue(
        store=sync_store,
        cloud=cloud_backup,
        photo_records=photo_records,
        network=network_monitor,
    )
    restoration_engine = RestorationEngine(
        cloud=cloud_backup,
        local_store=local_store,
        photo_records=photo_records,
        batch_size=resolved_settings.restore_batch_size,
    )
    ai_client = OpenAIMessageClient.create(
        resolved_settings.openai_api_key, resolved_settings.openai_model
    )
    ai_gateway = AIRequestGateway(
        rate_limit=resolved_settings.ai_rate_limit,
        window_seconds=resolved_settings.ai_rate_window_seconds,
    )
    session_outbox = SessionEventOutbox(session_repository)
    session_machine = RoutineSessionMachine(session_repository, session_outbox)
    routine_player = RoutinePlayer(session_machine)

    async def close_resources() -> None:
        await routine_player.close()
        await ai_gateway.close()
        await ai_client.close()
        await network_monitor.close()
        sync_store.close()

    return AppContainer(
        settings=resolved_settings,
        cloud_backup=cloud_backup,
        local_store=local_store,
        capture_service=PhotoCaptureService(
            local_store=local_store,
            photo_records=photo_records,
            cloud=cloud_backup,
            sync_queue=sync_queue,
        ),
        sync_queue=sync_queue,
        network_watcher=network_watcher,
        restoration_engine=restoration_engine,
        ai_gateway=ai_gateway,
        skin_analyzer=SkinAnalyzer(gateway=ai_gateway, client=ai_client),
        routine_generator=RoutineGenerator(gateway=ai_gateway, client=ai_client),
        product_insights=ProductInsightService(gateway=ai_gateway, client=ai_client),
        photo_comparison=PhotoComparisonService(gateway=ai_gateway, client=ai_client),
        session_outbox=session_outbox,
        session_machine=session_machine,
        routine_player=routine_player,
        close_resources=close_resources,
    )
