"""
Video Source I/O Boundary

This module provides the VideoSource classes, which handle all video decoding
for the pipeline. It abstracts away the decoder/synthetic distinction and
provides a clean interface: open, read duration, await a seek, read the
current frame as RGBA, close.

I/O boundary class - handles all decoder interaction and resource management.
"""

import asyncio
import logging
import math
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterable, Optional, Sequence, Union

import cv2
import numpy as np


logger = logging.getLogger(__name__)


class VideoSourceError(Exception):
    """Raised when a video cannot be opened or its metadata read."""

    pass


class FrameDecodeError(VideoSourceError):
    """Raised when seeking to or decoding a single frame fails."""

    pass


def to_rgba(frame: np.ndarray, bgr: bool = False) -> np.ndarray:
    """Convert a grey, RGB/BGR or RGBA frame to an (h, w, 4) uint8 array."""
    a = np.asarray(frame)
    if a.dtype != np.uint8:
        a = np.clip(a, 0, 255).astype(np.uint8)
    if a.ndim == 2:
        return cv2.cvtColor(a, cv2.COLOR_GRAY2RGBA)
    if a.ndim == 3 and a.shape[2] == 3:
        return cv2.cvtColor(a, cv2.COLOR_BGR2RGBA if bgr else cv2.COLOR_RGB2RGBA)
    if a.ndim == 3 and a.shape[2] == 4:
        return cv2.cvtColor(a, cv2.COLOR_BGRA2RGBA) if bgr else a
    raise FrameDecodeError(f"Unsupported frame shape {a.shape}")


class VideoSource(ABC):
    """
    Abstract base class for decodable video resources.

    Use as an async context manager so the underlying handle is released on
    every exit path:

        async with source:
            await source.seek(0.5)
            rgba = source.current_frame()
    """

    @abstractmethod
    async def open(self) -> None:
        """
        Acquire the decoder handle.

        Raises:
            VideoSourceError: If the video cannot be opened
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Release the decoder handle. Safe to call more than once."""
        pass

    @abstractmethod
    def is_open(self) -> bool:
        pass

    @property
    @abstractmethod
    def duration(self) -> Optional[float]:
        """Clip duration in seconds, or None when unknown."""
        pass

    @abstractmethod
    async def seek(self, timestamp: float) -> None:
        """
        Seek to a timestamp and wait until its frame is decoded.

        Raises:
            FrameDecodeError: If the frame cannot be decoded
        """
        pass

    @abstractmethod
    def current_frame(self) -> np.ndarray:
        """
        Return the frame at the last seek position as (h, w, 4) RGBA.

        Raises:
            FrameDecodeError: If no frame has been decoded yet
        """
        pass

    async def __aenter__(self) -> "VideoSource":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()


class OpenCVVideoSource(VideoSource):
    """
    Video file source decoded with OpenCV.

    Blocking decoder calls run in a worker thread so the event loop stays
    responsive; a lock keeps seeks strictly ordered.
    """

    def __init__(self, path: Union[str, os.PathLike]):
        self.path = Path(path)
        self._cap: Optional[cv2.VideoCapture] = None
        self._duration: Optional[float] = None
        self._frame: Optional[np.ndarray] = None
        self._io_lock = asyncio.Lock()

    async def open(self) -> None:
        async with self._io_lock:
            if self._cap is not None:
                return
            cap = await asyncio.to_thread(cv2.VideoCapture, str(self.path))
            if not cap.isOpened():
                cap.release()
                raise VideoSourceError(f"Cannot open video '{self.path.name}'")
            self._cap = cap
            self._duration = await asyncio.to_thread(self._probe_duration, cap)
            logger.info(
                "Opened video %s (duration=%s)",
                self.path.name,
                f"{self._duration:.3f}s" if self._duration is not None else "unknown",
            )

    @staticmethod
    def _probe_duration(cap: cv2.VideoCapture) -> Optional[float]:
        """
        Clip duration from the container metadata.

        Streamed containers (e.g. MediaRecorder WebM) often report no frame
        count; those are measured by seeking to the end instead.
        """
        frame_count = cap.get(cv2.CAP_PROP_FRAME_COUNT)
        fps = cap.get(cv2.CAP_PROP_FPS)
        if fps and fps > 0 and frame_count and frame_count > 0:
            duration = frame_count / fps
            if not (math.isnan(duration) or math.isinf(duration)):
                return duration
        return OpenCVVideoSource._duration_by_seeking(cap, fps)

    @staticmethod
    def _duration_by_seeking(cap: cv2.VideoCapture, fps: float) -> Optional[float]:
        logger.debug("Frame count unknown, measuring duration by seeking")
        duration = None

        if cap.set(cv2.CAP_PROP_POS_AVI_RATIO, 1.0):
            end_ms = cap.get(cv2.CAP_PROP_POS_MSEC)
            if end_ms and end_ms > 0:
                duration = end_ms / 1000.0

        if duration is None:
            cap.set(cv2.CAP_PROP_POS_FRAMES, 0)
            last_ms = None
            while cap.grab():
                last_ms = cap.get(cv2.CAP_PROP_POS_MSEC)
            if last_ms is not None:
                # the last frame is shown for one frame interval
                frame_ms = 1000.0 / fps if fps and fps > 0 else 0.0
                duration = (last_ms + frame_ms) / 1000.0

        cap.set(cv2.CAP_PROP_POS_FRAMES, 0)
        if duration is None or duration <= 0 or math.isnan(duration) or math.isinf(duration):
            return None
        return duration

    async def close(self) -> None:
        async with self._io_lock:
            if self._cap is not None:
                self._cap.release()
                self._cap = None
                self._frame = None
                logger.info("Released video %s", self.path.name)

    def is_open(self) -> bool:
        return self._cap is not None

    @property
    def duration(self) -> Optional[float]:
        return self._duration

    async def seek(self, timestamp: float) -> None:
        if self._cap is None:
            raise FrameDecodeError("Video is not open")
        async with self._io_lock:
            self._frame = await asyncio.to_thread(self._read_at, timestamp)

    def _read_at(self, timestamp: float) -> np.ndarray:
        assert self._cap is not None
        self._cap.set(cv2.CAP_PROP_POS_MSEC, max(0.0, timestamp) * 1000.0)
        ok, frame = self._cap.read()
        if not ok or frame is None:
            raise FrameDecodeError(f"Could not decode frame at {timestamp:.3f}s")
        return to_rgba(frame, bgr=True)

    def current_frame(self) -> np.ndarray:
        if self._frame is None:
            raise FrameDecodeError("No frame decoded yet")
        return self._frame


class SyntheticVideoSource(VideoSource):
    """
    In-memory video source for testing and development.

    Frames are shown for 1/fps seconds each. ``frames`` may be any iterable,
    including a generator; it is consumed once up front. Timestamps listed in
    ``fail_at`` (matched by frame index) simulate decode errors.
    """

    def __init__(
        self,
        frames: Iterable[np.ndarray],
        fps: float = 30.0,
        fail_at: Iterable[float] = (),
        duration: Optional[float] = None,
    ):
        if fps <= 0:
            raise ValueError("fps must be > 0")
        self._frames = [to_rgba(f) for f in frames]
        self.fps = float(fps)
        self._fail_indices = {self._index_for(t) for t in fail_at}
        self._duration = duration if duration is not None else len(self._frames) / self.fps
        self._open = False
        self._frame: Optional[np.ndarray] = None
        self.open_count = 0
        self.close_count = 0
        self.seeks: list[float] = []

    @classmethod
    def solid(
        cls,
        color: Sequence[int],
        duration: float,
        fps: float = 30.0,
        size: tuple[int, int] = (160, 120),
        **kwargs,
    ) -> "SyntheticVideoSource":
        """A clip of one flat colour; size is (width, height)."""
        w, h = size
        count = max(1, int(round(duration * fps)))
        frame = np.zeros((h, w, 3), dtype=np.uint8)
        frame[:, :] = np.asarray(color[:3], dtype=np.uint8)
        return cls([frame] * count, fps=fps, duration=duration, **kwargs)

    def _index_for(self, timestamp: float) -> int:
        return int(math.floor(timestamp * self.fps + 1e-9))

    async def open(self) -> None:
        await asyncio.sleep(0)
        if not self._frames:
            raise VideoSourceError("Synthetic video has no frames")
        self._open = True
        self.open_count += 1
        logger.debug("[SYNTHETIC] Opened %d-frame video", len(self._frames))

    async def close(self) -> None:
        if self._open:
            self._open = False
            self.close_count += 1
            self._frame = None
            logger.debug("[SYNTHETIC] Closed video")

    def is_open(self) -> bool:
        return self._open

    @property
    def duration(self) -> Optional[float]:
        return self._duration

    async def seek(self, timestamp: float) -> None:
        if not self._open:
            raise FrameDecodeError("Video is not open")
        await asyncio.sleep(0)
        self.seeks.append(timestamp)
        idx = self._index_for(timestamp)
        if idx in self._fail_indices:
            raise FrameDecodeError(f"Simulated decode error at {timestamp:.3f}s")
        self._frame = self._frames[min(max(idx, 0), len(self._frames) - 1)]

    def current_frame(self) -> np.ndarray:
        if self._frame is None:
            raise FrameDecodeError("No frame decoded yet")
        return self._frame


def create_video_source(
    source: Union[VideoSource, str, os.PathLike, Iterable[np.ndarray]],
    fps: float = 30.0,
) -> VideoSource:
    """
    Factory function to create the appropriate video source.

    Args:
        source: An existing VideoSource (returned as-is), a file path, or an
            iterable of in-memory frames
        fps: Frame rate for in-memory frames; ignored otherwise

    Returns:
        VideoSource: Decoder-backed, synthetic or caller-supplied implementation
    """
    if isinstance(source, VideoSource):
        return source
    if not isinstance(source, (str, os.PathLike)):
        logger.info("Creating synthetic video source at %.1ffps", fps)
        return SyntheticVideoSource(source, fps=fps)
    logger.info("Creating OpenCV video source for %s", Path(source).name)
    return OpenCVVideoSource(source)
