"""End-to-end pipeline tests against synthetic video sources."""

import re

import numpy as np
import pytest

from oled_art.bit_packer import unpack_frame
from oled_art.code_generator import generate_arduino_code
from oled_art.config import PipelineConfig, ProcessOptions
from oled_art.processor import (
    InvalidVideoError,
    NoFramesExtractedError,
    VideoProcessingError,
    VideoProcessor,
)
from oled_art.video_source import SyntheticVideoSource


WHITE = (255, 255, 255)
GREY = (200, 200, 200)


def half_white_frames(count, width=160, height=120):
    """Frames whose left half is white and right half black."""
    frame = np.zeros((height, width, 3), dtype=np.uint8)
    frame[:, : width // 2] = 255
    return [frame] * count


@pytest.fixture
def processor():
    return VideoProcessor(PipelineConfig())


@pytest.mark.asyncio
async def test_two_second_clip_to_ssd1306_sketch(processor):
    source = SyntheticVideoSource.solid(GREY, duration=2.0, fps=30)
    opts = ProcessOptions.for_display(
        "128x64", "horizontal", target_fps=30, max_frames=20, target_frames=10
    )

    result = await processor.process_video(source, opts)

    assert result.frame_count == 10
    assert all(len(p) == 1024 for p in result.frames_packed)
    assert result.fps == pytest.approx(5.0)
    assert (result.width, result.height) == (128, 64)
    assert all(m.sum() == 128 * 64 for m in result.frames_mono)

    code = generate_arduino_code(
        result.frames_packed, result.width, result.height, result.fps, "adafruit_gfx_ssd1306"
    )
    assert "#define SCREEN_WIDTH 128" in code
    assert "#define SCREEN_HEIGHT 64" in code
    assert len(re.findall(r"const uint8_t PROGMEM frame_\d+\[", code)) == 10


@pytest.mark.asyncio
async def test_frames_capped_by_max_frames(processor):
    source = SyntheticVideoSource.solid(WHITE, duration=3.0, fps=30)
    opts = ProcessOptions(128, 64, target_fps=30, max_frames=20, target_frames=50)

    result = await processor.process_video(source, opts)
    assert result.frame_count == 20


@pytest.mark.asyncio
async def test_seeks_follow_plan_in_order(processor):
    source = SyntheticVideoSource.solid(WHITE, duration=2.0, fps=30)
    opts = ProcessOptions(64, 48, target_fps=30, target_frames=4)

    await processor.process_video(source, opts)
    assert source.seeks == pytest.approx([0.0, 0.5, 1.0, 1.5])


@pytest.mark.asyncio
async def test_packed_frames_match_mono_frames(processor):
    source = SyntheticVideoSource(half_white_frames(30), fps=30)
    opts = ProcessOptions(96, 64, target_frames=3)

    result = await processor.process_video(source, opts)
    assert result.bytes_per_frame == 12 * 64
    for mono, packed in zip(result.frames_mono, result.frames_packed):
        assert np.array_equal(unpack_frame(packed, 96, 64), mono)


@pytest.mark.asyncio
async def test_horizontal_stretches_to_display(processor):
    source = SyntheticVideoSource(half_white_frames(30), fps=30)
    opts = ProcessOptions(128, 64, target_frames=1)

    result = await processor.process_video(source, opts)
    image = result.frames_mono[0].reshape(64, 128)
    assert image[:, :60].all()
    assert not image[:, 68:].any()


@pytest.mark.asyncio
async def test_vertical_swaps_dimensions_and_rotates_clockwise(processor):
    source = SyntheticVideoSource(half_white_frames(30), fps=30)
    opts = ProcessOptions.for_display("128x64", "vertical", target_frames=2)

    result = await processor.process_video(source, opts)

    assert (result.width, result.height) == (64, 128)
    assert all(len(p) == 8 * 128 for p in result.frames_packed)
    # the left half of the source ends up on top
    image = result.frames_mono[0].reshape(128, 64)
    assert image[:60].all()
    assert not image[68:].any()


@pytest.mark.asyncio
async def test_threshold_is_honoured(processor):
    source = SyntheticVideoSource.solid((100, 100, 100), duration=1.0)
    opts = ProcessOptions(128, 32, target_frames=2, threshold=101)

    result = await processor.process_video(source, opts)
    assert all(p == bytes(len(p)) for p in result.frames_packed)


@pytest.mark.asyncio
async def test_duration_capped_to_configured_maximum():
    processor = VideoProcessor(PipelineConfig(max_duration=1.0))
    source = SyntheticVideoSource.solid(WHITE, duration=5.0, fps=30)
    opts = ProcessOptions(128, 64, target_fps=10, max_frames=100)

    result = await processor.process_video(source, opts)
    assert result.duration == pytest.approx(1.0)
    assert result.frame_count == 10
    assert max(source.seeks) < 1.0


@pytest.mark.asyncio
async def test_tiny_clip_yields_first_frame(processor):
    source = SyntheticVideoSource.solid(WHITE, duration=1e-4, fps=30)
    result = await processor.process_video(source, ProcessOptions(128, 64))
    assert result.frame_count == 1
    assert source.seeks == [0.0]


@pytest.mark.asyncio
async def test_failed_frames_are_skipped(processor):
    source = SyntheticVideoSource.solid(WHITE, duration=2.0, fps=30, fail_at=[0.2])
    opts = ProcessOptions(128, 64, target_fps=30, target_frames=10)

    result = await processor.process_video(source, opts)
    assert result.frame_count == 9
    assert result.skipped_timestamps == pytest.approx([0.2])
    assert source.close_count == 1


@pytest.mark.asyncio
async def test_all_frames_failing_raises(processor):
    timestamps = [i * 0.5 for i in range(4)]
    source = SyntheticVideoSource.solid(WHITE, duration=2.0, fps=30, fail_at=timestamps)
    opts = ProcessOptions(128, 64, target_fps=30, target_frames=4)

    with pytest.raises(NoFramesExtractedError) as excinfo:
        await processor.process_video(source, opts)

    assert str(excinfo.value) == "Failed to process video: No frames could be extracted from video"
    assert not source.is_open()
    assert source.close_count == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("duration", [0.0, float("nan"), -1.0])
async def test_invalid_duration(processor, duration):
    source = SyntheticVideoSource(half_white_frames(1), duration=duration)

    with pytest.raises(InvalidVideoError, match="^Failed to process video: Invalid video duration$"):
        await processor.process_video(source, ProcessOptions(128, 64))
    assert source.close_count == 1


@pytest.mark.asyncio
async def test_source_released_after_success(processor):
    source = SyntheticVideoSource.solid(WHITE, duration=1.0)
    await processor.process_video(source, ProcessOptions(128, 64, target_frames=3))
    assert source.open_count == 1
    assert source.close_count == 1
    assert not source.is_open()


@pytest.mark.asyncio
async def test_unopenable_path(processor, tmp_path):
    missing = tmp_path / "missing.mp4"
    with pytest.raises(VideoProcessingError, match="^Failed to process video: "):
        await processor.process_video(missing, ProcessOptions(128, 64))
