# oled_art/config.py
from __future__ import annotations

import logging
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Literal, Optional, Tuple

from .validation import ValidationError, validate_dimensions, validate_threshold

logger = logging.getLogger(__name__)


class ConfigValidationError(ValidationError):
    """Raised when configuration values are invalid."""
    pass


@dataclass(frozen=True)
class Size:
    w: int
    h: int

    def __post_init__(self) -> None:
        if self.w <= 0 or self.h <= 0:
            raise ConfigValidationError(
                f"Size must be positive, got ({self.w}x{self.h})"
            )

    def __str__(self) -> str:
        return f"{self.w}x{self.h}"


Orientation = Literal["horizontal", "vertical"]

DEFAULT_DISPLAY_SIZE = "128x64"
CUSTOM_DISPLAY_SIZE = "custom"

DISPLAY_SIZES: Dict[str, Size] = {
    "128x64": Size(128, 64),
    "96x64": Size(96, 64),
    "128x32": Size(128, 32),
    "64x48": Size(64, 48),
}


def _parse_orientation(orient: Optional[str]) -> Orientation:
    orient = (orient or "horizontal").lower()
    if orient not in {"horizontal", "vertical"}:
        raise ConfigValidationError(f"Invalid orientation '{orient}'")
    return orient  # type: ignore[return-value]


def resolve_display_size(name: Optional[str]) -> Size:
    """
    Resolve a display size preset name to a Size.

    Accepts the known presets, ``custom`` (which falls back to 128x64) and
    explicit ``<w>x<h>`` strings.

    Raises:
        ConfigValidationError: If the name is not a preset and does not parse
    """
    key = (name or DEFAULT_DISPLAY_SIZE).strip().lower()
    if key == CUSTOM_DISPLAY_SIZE:
        return DISPLAY_SIZES[DEFAULT_DISPLAY_SIZE]
    if key in DISPLAY_SIZES:
        return DISPLAY_SIZES[key]

    parts = key.split("x")
    if len(parts) == 2 and all(p.isdigit() for p in parts):
        return Size(int(parts[0]), int(parts[1]))
    raise ConfigValidationError(f"Invalid display size '{name}'")


@dataclass(frozen=True)
class ProcessOptions:
    """Options for one run of the video pipeline.

    ``width``/``height`` are display cells before orientation is applied; a
    vertical orientation swaps them for the rasterized frames.
    """

    width: int
    height: int
    orientation: Orientation = "horizontal"
    target_fps: float = 15.0
    max_frames: int = 20
    target_frames: Optional[int] = None
    threshold: int = 128

    def __post_init__(self) -> None:
        validate_dimensions(self.width, self.height)
        validate_threshold(self.threshold)
        _parse_orientation(self.orientation)
        if self.max_frames < 1:
            raise ConfigValidationError(
                f"max_frames must be >= 1, got {self.max_frames}"
            )

    @property
    def frame_size(self) -> Tuple[int, int]:
        """(width, height) of the rasterized frames after orientation."""
        if self.orientation == "vertical":
            return self.height, self.width
        return self.width, self.height

    @classmethod
    def for_display(
        cls,
        display_size: Optional[str] = None,
        orientation: Optional[str] = None,
        **kwargs,
    ) -> "ProcessOptions":
        size = resolve_display_size(display_size)
        return cls(
            width=size.w,
            height=size.h,
            orientation=_parse_orientation(orientation),
            **kwargs,
        )


@dataclass(frozen=True)
class PipelineConfig:
    max_duration: float = 30.0
    max_frames: int = 20
    target_fps: float = 15.0
    threshold: int = 128
    max_file_size: int = 100 * 1024 * 1024
    supported_formats: Tuple[str, ...] = ("mp4", "avi", "mov", "mkv", "webm")
    preview_cache_size: int = 64

    def __post_init__(self) -> None:
        if self.max_duration <= 0:
            raise ConfigValidationError("max_duration must be > 0")
        if self.max_frames < 1:
            raise ConfigValidationError("max_frames must be >= 1")
        if self.target_fps <= 0:
            raise ConfigValidationError("target_fps must be > 0")
        if self.max_file_size <= 0:
            raise ConfigValidationError("max_file_size must be > 0")
        if self.preview_cache_size < 1:
            raise ConfigValidationError("preview_cache_size must be >= 1")
        validate_threshold(self.threshold)

    def options(
        self,
        display_size: Optional[str] = None,
        orientation: Optional[str] = None,
        target_fps: Optional[float] = None,
        max_frames: Optional[int] = None,
        target_frames: Optional[int] = None,
        threshold: Optional[int] = None,
    ) -> ProcessOptions:
        """Build ProcessOptions, filling unset values from this config.

        ``max_frames`` can lower the configured cap but never raise it.
        """
        return ProcessOptions.for_display(
            display_size,
            orientation,
            target_fps=self.target_fps if target_fps is None else target_fps,
            max_frames=self.max_frames if max_frames is None else min(max_frames, self.max_frames),
            target_frames=target_frames,
            threshold=self.threshold if threshold is None else threshold,
        )


@dataclass(frozen=True)
class ServerConfig:
    host: str = "0.0.0.0"
    port: int = 8000
    upload_dir: Path = Path("./uploads")

    def __post_init__(self) -> None:
        if not (0 < self.port < 65536):
            raise ConfigValidationError(f"Invalid port {self.port}")


@dataclass(frozen=True)
class AppConfig:
    pipeline: PipelineConfig = field(default_factory=PipelineConfig)
    server: ServerConfig = field(default_factory=ServerConfig)


def load_from_toml(config_path: str | Path) -> AppConfig:
    """
    Load an AppConfig from a TOML file.

    Expected TOML structure (every key optional):

    [pipeline]
    max_duration = 30.0
    max_frames = 20
    target_fps = 15.0
    threshold = 128
    max_file_size = 104857600
    supported_formats = ["mp4", "avi", "mov", "mkv", "webm"]
    preview_cache_size = 64

    [server]
    host = "0.0.0.0"
    port = 8000
    upload_dir = "./uploads"
    """
    p = Path(config_path)
    if not p.exists():
        raise FileNotFoundError(f"Configuration file not found: {p}")

    with p.open("rb") as f:
        data = tomllib.load(f)

    pipeline = data.get("pipeline") or {}
    server = data.get("server") or {}
    defaults = PipelineConfig()

    cfg = AppConfig(
        pipeline=PipelineConfig(
            max_duration=float(pipeline.get("max_duration", defaults.max_duration)),
            max_frames=int(pipeline.get("max_frames", defaults.max_frames)),
            target_fps=float(pipeline.get("target_fps", defaults.target_fps)),
            threshold=int(pipeline.get("threshold", defaults.threshold)),
            max_file_size=int(pipeline.get("max_file_size", defaults.max_file_size)),
            supported_formats=tuple(
                str(f).lower()
                for f in pipeline.get("supported_formats", defaults.supported_formats)
            ),
            preview_cache_size=int(
                pipeline.get("preview_cache_size", defaults.preview_cache_size)
            ),
        ),
        server=ServerConfig(
            host=str(server.get("host", "0.0.0.0")),
            port=int(server.get("port", 8000)),
            upload_dir=Path(server.get("upload_dir", "./uploads")),
        ),
    )

    logger.info(
        "Loaded AppConfig: max_duration=%.1fs, max_frames=%d, target_fps=%.1f, "
        "threshold=%d, upload_dir=%s",
        cfg.pipeline.max_duration,
        cfg.pipeline.max_frames,
        cfg.pipeline.target_fps,
        cfg.pipeline.threshold,
        cfg.server.upload_dir,
    )
    return cfg


def default_config() -> AppConfig:
    """Defaults matching the hosted converter: 30s clips, 20 frames, 15fps."""
    return AppConfig()
