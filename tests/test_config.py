"""Tests for configuration loading and display presets."""

import tempfile
from pathlib import Path

import pytest

from oled_art.config import (
    ConfigValidationError,
    DISPLAY_SIZES,
    PipelineConfig,
    ProcessOptions,
    ServerConfig,
    load_from_toml,
    resolve_display_size,
)
from oled_art.validation import DimensionValidationError, ValidationError


def test_load_from_toml():
    toml_content = """
[pipeline]
max_duration = 12.5
max_frames = 40
target_fps = 24
threshold = 100
supported_formats = ["MP4", "webm"]

[server]
host = "127.0.0.1"
port = 9000
upload_dir = "/tmp/oled-uploads"
"""
    with tempfile.NamedTemporaryFile(mode="w", suffix=".toml", delete=False) as f:
        f.write(toml_content)
        path = f.name

    cfg = load_from_toml(path)
    assert cfg.pipeline.max_duration == 12.5
    assert cfg.pipeline.max_frames == 40
    assert cfg.pipeline.target_fps == 24.0
    assert cfg.pipeline.threshold == 100
    assert cfg.pipeline.supported_formats == ("mp4", "webm")
    assert cfg.pipeline.max_file_size == 100 * 1024 * 1024
    assert cfg.server.host == "127.0.0.1"
    assert cfg.server.port == 9000
    assert cfg.server.upload_dir == Path("/tmp/oled-uploads")


def test_load_from_toml_defaults(tmp_path):
    path = tmp_path / "empty.toml"
    path.write_text("")
    cfg = load_from_toml(path)
    assert cfg.pipeline == PipelineConfig()
    assert cfg.server == ServerConfig()


def test_load_from_toml_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_from_toml(tmp_path / "nope.toml")


def test_invalid_values_in_toml(tmp_path):
    path = tmp_path / "bad.toml"
    path.write_text("[pipeline]\nthreshold = 400\n")
    with pytest.raises(ValidationError):
        load_from_toml(path)


@pytest.mark.parametrize(
    "name,expected",
    [("128x64", (128, 64)), ("96x64", (96, 64)), ("128x32", (128, 32)), ("64x48", (64, 48))],
)
def test_presets(name, expected):
    size = resolve_display_size(name)
    assert (size.w, size.h) == expected
    assert name in DISPLAY_SIZES


def test_custom_falls_back_to_128x64():
    size = resolve_display_size("custom")
    assert (size.w, size.h) == (128, 64)


def test_explicit_size_string():
    size = resolve_display_size("200x100")
    assert (size.w, size.h) == (200, 100)


@pytest.mark.parametrize("name", ["bogus", "128x", "0x64"])
def test_bad_display_size(name):
    with pytest.raises(ConfigValidationError):
        resolve_display_size(name)


def test_process_options_validation():
    with pytest.raises(DimensionValidationError):
        ProcessOptions(width=0, height=64)
    with pytest.raises(ValidationError):
        ProcessOptions(width=128, height=64, threshold=300)
    with pytest.raises(ConfigValidationError):
        ProcessOptions(width=128, height=64, orientation="diagonal")
    with pytest.raises(ConfigValidationError):
        ProcessOptions(width=128, height=64, max_frames=0)


def test_frame_size_follows_orientation():
    assert ProcessOptions(128, 64).frame_size == (128, 64)
    assert ProcessOptions(128, 64, orientation="vertical").frame_size == (64, 128)


def test_pipeline_options_fill_defaults():
    pipeline = PipelineConfig(target_fps=12, max_frames=8, threshold=90)
    opts = pipeline.options("96x64", "vertical")
    assert (opts.width, opts.height) == (96, 64)
    assert opts.orientation == "vertical"
    assert opts.target_fps == 12
    assert opts.max_frames == 8
    assert opts.threshold == 90
    assert opts.target_frames is None

    overridden = pipeline.options(target_fps=30, threshold=0, target_frames=5)
    assert (overridden.width, overridden.height) == (128, 64)
    assert overridden.target_fps == 30
    assert overridden.threshold == 0
    assert overridden.target_frames == 5


def test_pipeline_config_validation():
    with pytest.raises(ConfigValidationError):
        PipelineConfig(max_duration=0)
    with pytest.raises(ConfigValidationError):
        ServerConfig(port=0)


def test_pipeline_options_never_exceed_frame_cap():
    pipeline = PipelineConfig(max_frames=20)
    assert pipeline.options(max_frames=500).max_frames == 20
    assert pipeline.options(max_frames=5).max_frames == 5
