"""
Frame Preview Rendering

Renders mono frames as scaled-up greyscale Pillow images (on pixels white)
and exports the whole sequence as a looping animated GIF. The renderer keeps
a bounded cache of rendered frames.
"""

from __future__ import annotations

import io
import logging
from collections import OrderedDict
from pathlib import Path
from typing import BinaryIO, List, Sequence, Union

import numpy as np
from PIL import Image

from .validation import validate_dimensions, validate_mono_frame_size

logger = logging.getLogger(__name__)

PIXEL_ON = 255
PIXEL_OFF = 0
PREVIEW_TARGET = 256


def preview_scale(width: int, height: int) -> int:
    """Integer scale-up so the longer side lands near 256px, at least 2x."""
    return max(2, PREVIEW_TARGET // max(width, height))


class PreviewRenderer:
    """
    Renders mono frames as scaled-up greyscale images for previews.

    Rendered images are kept in a bounded LRU map keyed by frame index. The
    cache belongs to the renderer and is dropped whenever the frame sequence
    changes via set_frames().
    """

    def __init__(
        self,
        frames_mono: Sequence[np.ndarray],
        width: int,
        height: int,
        cache_size: int = 64,
    ):
        if cache_size < 1:
            raise ValueError("cache_size must be >= 1")
        self.cache_size = cache_size
        self._cache: "OrderedDict[int, Image.Image]" = OrderedDict()
        self.set_frames(frames_mono, width, height)

    def set_frames(self, frames_mono: Sequence[np.ndarray], width: int, height: int) -> None:
        validate_dimensions(width, height)
        for frame in frames_mono:
            validate_mono_frame_size(np.asarray(frame).size, width, height)
        self._frames: List[np.ndarray] = list(frames_mono)
        self.width = width
        self.height = height
        self.scale = preview_scale(width, height)
        self._cache.clear()

    def __len__(self) -> int:
        return len(self._frames)

    @property
    def cached_indices(self) -> List[int]:
        return list(self._cache.keys())

    def frame_image(self, index: int) -> Image.Image:
        """
        Scaled preview image of one frame (mode "L", on pixels white).

        Raises:
            IndexError: If index is out of range
        """
        if not 0 <= index < len(self._frames):
            raise IndexError(f"Frame index {index} out of range (0-{len(self._frames) - 1})")

        cached = self._cache.get(index)
        if cached is not None:
            self._cache.move_to_end(index)
            return cached

        bits = np.asarray(self._frames[index], dtype=np.uint8).reshape(self.height, self.width)
        pixels = np.where(bits != 0, PIXEL_ON, PIXEL_OFF).astype(np.uint8)
        image = Image.fromarray(pixels).resize(
            (self.width * self.scale, self.height * self.scale), Image.Resampling.NEAREST
        )

        self._cache[index] = image
        if len(self._cache) > self.cache_size:
            self._cache.popitem(last=False)
        return image

    def save_gif(self, out: Union[str, Path, BinaryIO], fps: float, loop: int = 0) -> None:
        """Write all frames as an animated GIF to a path or binary file."""
        if not self._frames:
            raise ValueError("No frames to preview")
        if isinstance(out, str):
            out = Path(out)
        duration_ms = int(round(1000 / max(1.0, fps)))
        images = [self.frame_image(i) for i in range(len(self._frames))]
        images[0].save(
            out,
            format="GIF",
            save_all=True,
            append_images=images[1:],
            duration=duration_ms,
            loop=loop,
        )
        logger.info(f"Wrote {len(images)}-frame preview GIF")


def render_gif_bytes(
    frames_mono: Sequence[np.ndarray], width: int, height: int, fps: float
) -> bytes:
    renderer = PreviewRenderer(frames_mono, width, height, cache_size=max(1, len(frames_mono)))
    buf = io.BytesIO()
    renderer.save_gif(buf, fps)
    return buf.getvalue()
