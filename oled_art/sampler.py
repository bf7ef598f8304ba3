"""
Pure Frame Sampling Logic

This module contains the FrameSampler class, which turns a clip duration and
ProcessOptions into the ordered timestamps to extract. No media decoding
happens here.

Playback fps is tied to the actual sampling density so that the generated
sketch's timing matches what was sampled.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import List, TYPE_CHECKING

if TYPE_CHECKING:
    from .config import ProcessOptions

logger = logging.getLogger(__name__)

MIN_FPS = 1.0
MAX_FPS = 30.0


@dataclass(frozen=True)
class SamplePlan:
    timestamps: List[float]
    fps: float
    total_desired: int

    def __len__(self) -> int:
        return len(self.timestamps)


def clamp_fps(fps: float) -> float:
    return max(MIN_FPS, min(MAX_FPS, float(fps)))


class FrameSampler:
    """
    Pure timestamp planning for frame extraction.

    All methods are pure functions of their inputs.
    """

    def desired_frame_count(self, duration: float, opts: "ProcessOptions") -> int:
        """
        Number of frames to aim for.

        An explicit positive ``target_frames`` wins (capped by ``max_frames``);
        otherwise the clip is covered at the clamped target fps.
        """
        if opts.target_frames and opts.target_frames > 0:
            return min(opts.max_frames, opts.target_frames)
        return min(opts.max_frames, math.floor(duration * clamp_fps(opts.target_fps)))

    def effective_fps(self, duration: float, total_desired: int, fps_clamped: float) -> float:
        if total_desired > 0 and duration > 0:
            return min(fps_clamped, total_desired / duration)
        return fps_clamped

    def sample(self, duration: float, opts: "ProcessOptions") -> SamplePlan:
        """
        Compute the ordered timestamps to sample.

        Args:
            duration: Clip duration in seconds (already capped by the caller)
            opts: Processing options

        Returns:
            SamplePlan: timestamps in [0, duration), the effective fps and the
            desired frame count. Never empty: falls back to a single frame at 0.
        """
        fps_clamped = clamp_fps(opts.target_fps)
        total_desired = self.desired_frame_count(duration, opts)
        fps = self.effective_fps(duration, total_desired, fps_clamped)

        step = 1.0 / fps
        timestamps: List[float] = []
        i = 0
        while len(timestamps) < total_desired:
            t = i * step
            if t >= duration:
                break
            timestamps.append(t)
            i += 1

        if not timestamps:
            timestamps.append(0.0)

        logger.debug(
            "Sample plan: %d timestamps (desired %d) over %.3fs at %.3ffps",
            len(timestamps),
            total_desired,
            duration,
            fps,
        )
        return SamplePlan(timestamps=timestamps, fps=fps, total_desired=total_desired)
