"""Tests for ServerApp processing and latest-request-wins results."""

import asyncio

import pytest

from oled_art.code_generator import Library
from oled_art.config import AppConfig, ProcessOptions, ServerConfig
from oled_art.processor import VideoProcessingError
from oled_art.result_store import ResultStore, StaleResultError, UploadRecord
from oled_art.server_app import ServerApp
from oled_art.video_source import SyntheticVideoSource


class GatedVideoSource(SyntheticVideoSource):
    """Synthetic source whose seeks block until the gate is opened."""

    def __init__(self, *args, gate: asyncio.Event, **kwargs):
        super().__init__(*args, **kwargs)
        self.gate = gate

    async def seek(self, timestamp: float) -> None:
        await self.gate.wait()
        await super().seek(timestamp)


def make_record(tmp_path, upload_id="abc"):
    path = tmp_path / f"{upload_id}.mp4"
    path.write_bytes(b"data")
    return UploadRecord(
        upload_id=upload_id,
        path=path,
        original_filename="clip.mp4",
        size=4,
        duration=2.0,
    )


@pytest.fixture
def config(tmp_path):
    return AppConfig(server=ServerConfig(upload_dir=tmp_path / "uploads"))


@pytest.mark.asyncio
async def test_newer_request_supersedes_older(tmp_path, config):
    gate = asyncio.Event()
    sources = []

    def factory(path):
        if not sources:
            source = GatedVideoSource.solid((255, 255, 255), duration=2.0, gate=gate)
        else:
            source = SyntheticVideoSource.solid((255, 255, 255), duration=2.0)
        sources.append(source)
        return source

    server = ServerApp(config=config, source_factory=factory)
    await server.startup()
    record = await server.store.add(make_record(tmp_path))

    slow = asyncio.create_task(
        server.process("abc", ProcessOptions(128, 64, target_frames=8), Library.U8G2)
    )
    while record.generation < 1:
        await asyncio.sleep(0)

    fast = await server.process(
        "abc", ProcessOptions(128, 64, target_frames=4), Library.ADAFRUIT_GFX_SSD1331
    )
    assert fast.result.frame_count == 4

    gate.set()
    with pytest.raises(StaleResultError):
        await slow

    stored = server.store.get("abc")
    assert stored.generation == 2
    assert stored.status == "completed"
    assert stored.result.frame_count == 4
    assert stored.library is Library.ADAFRUIT_GFX_SSD1331
    assert all(not s.is_open() for s in sources)

    await server.shutdown()
    assert not record.path.exists()


@pytest.mark.asyncio
async def test_failed_processing_marks_record(tmp_path, config):
    def factory(path):
        return SyntheticVideoSource.solid((0, 0, 0), duration=1.0, fail_at=[0.0])

    server = ServerApp(config=config, source_factory=factory)
    await server.startup()
    await server.store.add(make_record(tmp_path))

    with pytest.raises(VideoProcessingError):
        await server.process("abc", ProcessOptions(128, 64, target_frames=1), Library.U8G2)

    record = server.store.get("abc")
    assert record.status == "failed"
    assert "No frames could be extracted" in record.error
    assert record.result is None
    await server.shutdown()


@pytest.mark.asyncio
async def test_unknown_upload(config):
    server = ServerApp(config=config)
    await server.startup()
    with pytest.raises(KeyError):
        await server.process("missing", ProcessOptions(128, 64), Library.U8G2)
    await server.shutdown()


@pytest.mark.asyncio
async def test_startup_creates_upload_dir(config):
    server = ServerApp(config=config)
    await server.startup()
    assert config.server.upload_dir.is_dir()
    await server.shutdown()


@pytest.mark.asyncio
async def test_store_rejects_stale_generation(tmp_path):
    store = ResultStore()
    await store.add(make_record(tmp_path))

    first = await store.begin_processing("abc")
    second = await store.begin_processing("abc")
    assert (first, second) == (1, 2)

    with pytest.raises(StaleResultError):
        await store.complete("abc", first, None, None, Library.U8G2)

    # a stale failure doesn't overwrite the newer request's state
    await store.fail("abc", first, "boom")
    assert store.get("abc").status == "processing"
    assert store.get("abc").error is None

    with pytest.raises(KeyError):
        await store.begin_processing("missing")
