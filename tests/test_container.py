"""Tests for container wiring."""

import asyncio

from yogaageproof.containers import build_container


def test_build_container_creates_services(settings) -> None:
    container = build_container(settings)

    assert container.capture_service.sync_queue is container.sync_queue
    assert container.routine_player.machine is container.session_machine
    assert container.session_machine.outbox is container.session_outbox
    assert container.skin_analyzer.gateway is container.ai_gateway
    assert container.local_store.directory == settings.photos_dir
    assert settings.sync_db_path.exists()
    asyncio.run(container.close_resources())
