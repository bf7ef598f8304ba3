"""
Frame Rasterizer

Seeks a VideoSource and draws the decoded frame into one reusable
width x height RGBA surface. The surface is cleared before every draw.

Horizontal frames are stretched to fill the surface (aspect ratio is not
kept). Vertical frames are scaled to (height wide, width tall) and rotated
90 degrees clockwise, so a physically vertical display still receives a
width x height buffer.
"""

from __future__ import annotations

import logging
from typing import Optional

import cv2
import numpy as np

from .config import Orientation
from .validation import validate_dimensions
from .video_source import VideoSource

logger = logging.getLogger(__name__)


class FrameRasterizer:
    def __init__(self, width: int, height: int, orientation: Orientation = "horizontal"):
        validate_dimensions(width, height)
        if orientation not in ("horizontal", "vertical"):
            raise ValueError(f"Unsupported orientation '{orientation}'")
        self.width = width
        self.height = height
        self.orientation = orientation
        self._surface: Optional[np.ndarray] = np.zeros((height, width, 4), dtype=np.uint8)

    @property
    def surface(self) -> np.ndarray:
        if self._surface is None:
            raise RuntimeError("Rasterizer surface has been released")
        return self._surface

    async def rasterize(self, source: VideoSource, timestamp: float) -> np.ndarray:
        """
        Seek to ``timestamp`` and draw that frame.

        Args:
            source: An open video source
            timestamp: Seconds from the start; clamped to the clip duration

        Returns:
            np.ndarray: (height, width, 4) RGBA copy of the drawn surface

        Raises:
            FrameDecodeError: If the seek or decode fails
        """
        duration = source.duration
        t = min(timestamp, duration) if duration is not None else timestamp
        await source.seek(t)
        self.draw(source.current_frame())
        return self.surface.copy()

    def draw(self, rgba: np.ndarray) -> None:
        surface = self.surface
        surface.fill(0)

        if self.orientation == "vertical":
            scaled = cv2.resize(
                rgba, (self.height, self.width), interpolation=cv2.INTER_AREA
            )
            surface[:, :] = np.rot90(scaled, k=-1)  # 90° clockwise
        else:
            surface[:, :] = cv2.resize(
                rgba, (self.width, self.height), interpolation=cv2.INTER_AREA
            )

    def release(self) -> None:
        self._surface = None
        logger.debug("Released %dx%d drawing surface", self.width, self.height)
