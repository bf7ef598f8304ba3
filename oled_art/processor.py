"""
Video Processor - Orchestration Layer

This module contains the VideoProcessor class, which runs one video through
the pipeline: sample timestamps, then for each timestamp in order seek, draw,
quantize and pack.

Policy decisions made here:
- Cap clip duration to the configured maximum
- Skip frames whose seek/decode fails, fail only when none survive
- Release the video source and drawing surface on every exit path
- Report every failure as "Failed to process video: <cause>"
"""

from __future__ import annotations

import logging
import math
import os
from dataclasses import dataclass, field
from typing import List, Optional, Union

import cv2
import numpy as np

from .bit_packer import pack_frame
from .config import PipelineConfig, ProcessOptions
from .quantizer import quantize
from .rasterizer import FrameRasterizer
from .sampler import FrameSampler
from .validation import ValidationError, packed_frame_size, validate_dimensions
from .video_source import VideoSource, VideoSourceError, create_video_source


logger = logging.getLogger(__name__)


class VideoProcessingError(Exception):
    """Base exception for pipeline failures."""

    pass


class InvalidVideoError(VideoProcessingError):
    """Raised when the input video itself is unusable."""

    pass


class NoFramesExtractedError(VideoProcessingError):
    """Raised when every sampled timestamp failed to decode."""

    pass


@dataclass
class ProcessResult:
    """Frames extracted from one video.

    ``width``/``height`` are the rasterized dimensions (after orientation).
    """

    frames_mono: List[np.ndarray]
    frames_packed: List[bytes]
    width: int
    height: int
    fps: float
    duration: float
    skipped_timestamps: List[float] = field(default_factory=list)

    def __post_init__(self) -> None:
        if len(self.frames_mono) != len(self.frames_packed):
            raise ValueError(
                f"frames_mono ({len(self.frames_mono)}) and frames_packed "
                f"({len(self.frames_packed)}) must have the same length"
            )

    @property
    def frame_count(self) -> int:
        return len(self.frames_packed)

    @property
    def bytes_per_frame(self) -> int:
        return packed_frame_size(self.width, self.height)


class VideoProcessor:
    """
    Orchestrates sampling, rasterizing, quantizing and packing.

    Stateless between calls; each process_video call owns exactly one video
    source and one drawing surface.
    """

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        sampler: Optional[FrameSampler] = None,
    ):
        self.config = config or PipelineConfig()
        self.sampler = sampler or FrameSampler()

    async def process_video(
        self,
        source: Union[VideoSource, str, os.PathLike],
        opts: ProcessOptions,
    ) -> ProcessResult:
        """
        Run a video through the pipeline.

        Args:
            source: Open-able VideoSource or a path to a video file
            opts: Processing options

        Returns:
            ProcessResult: At least one frame

        Raises:
            VideoProcessingError: On any failure, with the cause chained
        """
        try:
            video = create_video_source(source)
            async with video:
                return await self._process_open_video(video, opts)
        except VideoProcessingError as e:
            logger.error(f"Video processing error: {e}")
            raise type(e)(f"Failed to process video: {e}") from e
        except (VideoSourceError, ValidationError, ValueError, OSError) as e:
            logger.error(f"Video processing error: {e}")
            raise VideoProcessingError(f"Failed to process video: {e}") from e

    async def _process_open_video(
        self, video: VideoSource, opts: ProcessOptions
    ) -> ProcessResult:
        raw_duration = video.duration
        if not raw_duration or math.isnan(raw_duration) or raw_duration < 0:
            raise InvalidVideoError("Invalid video duration")
        duration = min(raw_duration, self.config.max_duration)
        if duration < raw_duration:
            logger.info(
                f"Clip duration {raw_duration:.2f}s capped to {duration:.2f}s"
            )

        plan = self.sampler.sample(duration, opts)

        width, height = opts.frame_size
        validate_dimensions(width, height)

        rasterizer = FrameRasterizer(width, height, opts.orientation)
        frames_mono: List[np.ndarray] = []
        frames_packed: List[bytes] = []
        skipped: List[float] = []

        try:
            for t in plan.timestamps:
                try:
                    rgba = await rasterizer.rasterize(video, t)
                except (VideoSourceError, cv2.error) as e:
                    logger.warning(f"Skipping frame at {t:.3f}s: {e}")
                    skipped.append(t)
                    continue

                mono = quantize(rgba, opts.threshold)
                frames_mono.append(mono)
                frames_packed.append(pack_frame(mono, width, height))
                logger.debug(f"Extracted frame {len(frames_packed) - 1} at {t:.3f}s")
        finally:
            rasterizer.release()

        if not frames_mono:
            raise NoFramesExtractedError("No frames could be extracted from video")

        logger.info(
            f"Processed video: {len(frames_packed)} frames @ {plan.fps:.2f}fps "
            f"({width}x{height}), {len(skipped)} skipped"
        )
        return ProcessResult(
            frames_mono=frames_mono,
            frames_packed=frames_packed,
            width=width,
            height=height,
            fps=plan.fps,
            duration=duration,
            skipped_timestamps=skipped,
        )
