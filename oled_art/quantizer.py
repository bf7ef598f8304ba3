"""
Pure Monochrome Quantization

Turns RGBA pixels into 0/1 mono frames with a BT.601 luma threshold. Alpha
is ignored. Luma is computed in integer thousandths so the threshold
comparison is exact.
"""

from __future__ import annotations

import numpy as np

from .validation import ValidationError, validate_threshold

# ITU-R BT.601 luma weights in thousandths (0.299, 0.587, 0.114)
LUMA_WEIGHTS = (299, 587, 114)
LUMA_SCALE = 1000

DEFAULT_THRESHOLD = 128

Array = np.ndarray


def _as_pixels(rgba: Array) -> Array:
    a = np.asarray(rgba, dtype=np.uint8)
    if a.ndim == 1:
        if a.size % 4 != 0:
            raise ValidationError(f"RGBA buffer length {a.size} is not a multiple of 4")
    elif a.shape[-1] != 4:
        raise ValidationError(f"Expected 4 channels, got shape {a.shape}")
    return a.reshape(-1, 4)


def luma_milli(rgba: Array) -> Array:
    """Per-pixel luma scaled by 1000 as exact integers, alpha ignored."""
    px = _as_pixels(rgba).astype(np.int32)
    wr, wg, wb = LUMA_WEIGHTS
    return wr * px[:, 0] + wg * px[:, 1] + wb * px[:, 2]


def luminance(rgba: Array) -> Array:
    return luma_milli(rgba) / LUMA_SCALE


def quantize(rgba: Array, threshold: int = DEFAULT_THRESHOLD) -> Array:
    """Convert RGBA pixels to a flat, read-only 0/1 mono frame.

    A pixel is on (1) when 0.299R + 0.587G + 0.114B >= threshold. The
    comparison is done in integer thousandths so a uniform grey of value v
    has luma exactly v.
    """
    validate_threshold(threshold)
    mono = (luma_milli(rgba) >= threshold * LUMA_SCALE).astype(np.uint8)
    mono.flags.writeable = False
    return mono
