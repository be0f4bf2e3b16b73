"""Tests for on-device photo storage and compression."""

import asyncio
import io
from pathlib import Path

import pytest
from PIL import Image

from yogaageproof.adapters.pillow_compressor import PillowImageCompressor
from yogaageproof.domain.errors import StorageFullError, ValidationError
from tests.conftest import make_local_store


def test_save_photo_compresses_and_writes(tmp_path: Path) -> None:
    store = make_local_store(tmp_path / "photos")

    result = asyncio.run(store.save_photo(b"raw", "photo-1"))

    assert result.local_path == tmp_path / "photos" / "photo-1.jpg"
    assert result.file_name == "photo-1.jpg"
    assert result.size_bytes == len(b"jpeg:raw")
    assert result.local_path.read_bytes() == b"jpeg:raw"


def test_save_photo_refuses_when_storage_is_low(tmp_path: Path) -> None:
    store = make_local_store(tmp_path / "photos", free_space=100 * 1024 * 1024)

    with pytest.raises(StorageFullError) as exc_info:
        asyncio.run(store.save_photo(b"raw", "photo-1"))

    assert exc_info.value.metadata["available_bytes"] == 100 * 1024 * 1024
    assert not (tmp_path / "photos" / "photo-1.jpg").exists()


def test_load_read_delete_photo(tmp_path: Path) -> None:
    store = make_local_store(tmp_path / "photos")

    async def run() -> tuple[Path | None, bytes, Path | None]:
        await store.write_photo("photo-1", b"bytes")
        loaded = await store.load_photo("photo-1")
        content = await store.read_photo("photo-1")
        await store.delete_photo("photo-1")
        return loaded, content, await store.load_photo("photo-1")

    loaded, content, after_delete = asyncio.run(run())

    assert loaded == tmp_path / "photos" / "photo-1.jpg"
    assert content == b"bytes"
    assert after_delete is None


def test_storage_accounting_and_clear(tmp_path: Path) -> None:
    store = make_local_store(tmp_path / "photos")

    async def run() -> tuple[list[str], int, list[str]]:
        await store.write_photo("b", b"12345")
        await store.write_photo("a", b"123")
        ids = await store.local_photo_ids()
        used = await store.total_storage_used()
        await store.clear_all_photos()
        return ids, used, await store.local_photo_ids()

    ids, used, remaining = asyncio.run(run())

    assert ids == ["a", "b"]
    assert used == 8
    assert remaining == []


def test_is_storage_low_uses_threshold(tmp_path: Path) -> None:
    low = make_local_store(tmp_path, free_space=1)
    roomy = make_local_store(tmp_path)

    assert asyncio.run(low.is_storage_low()) is True
    assert asyncio.run(roomy.is_storage_low()) is False


def test_pillow_compressor_bounds_size_and_outputs_jpeg() -> None:
    image = Image.new("RGBA", (4000, 1000), (200, 100, 50, 255))
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")

    compressed = PillowImageCompressor(max_dimension=1024).compress(buffer.getvalue())

    with Image.open(io.BytesIO(compressed)) as result:
        assert result.format == "JPEG"
        assert result.mode == "RGB"
        assert max(result.size) == 1024


def test_pillow_compressor_rejects_non_images() -> None:
    with pytest.raises(ValidationError):
        PillowImageCompressor().compress(b"definitely not an image")
