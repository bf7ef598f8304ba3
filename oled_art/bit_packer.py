"""
Pure Bit Packing Logic

Packs 0/1 mono frames into the XBM layout consumed by Adafruit GFX
``drawXBitmap`` and U8g2 ``drawXBMP``:

- row-major, each row starts on a byte boundary
- 8 horizontally adjacent pixels per byte, bit 0 (LSB) = leftmost pixel
- padding bits at the end of a row are 0

One packed frame is always ceil(width/8) * height bytes.
"""

from __future__ import annotations

import numpy as np

from .validation import (
    bytes_per_row,
    validate_dimensions,
    validate_mono_frame_size,
    validate_packed_frame_size,
)


def pack_frame(mono, width: int, height: int) -> bytes:
    """
    Pack a mono frame into row-major, LSB-first bytes.

    Args:
        mono: Flat (width*height) or 2D (height, width) array of 0/1 values
        width: Frame width in pixels
        height: Frame height in pixels

    Returns:
        bytes: Packed frame of length ceil(width/8) * height

    Raises:
        FrameSizeError: If mono does not hold width*height values
    """
    validate_dimensions(width, height)
    bits = np.asarray(mono, dtype=np.uint8)
    validate_mono_frame_size(bits.size, width, height)

    rows = (bits.reshape(height, width) != 0).astype(np.uint8)
    # packbits zero-pads each row to a whole byte
    return np.packbits(rows, axis=1, bitorder="little").tobytes()


def unpack_frame(packed: bytes, width: int, height: int) -> np.ndarray:
    """
    Inverse of pack_frame: recover the flat 0/1 mono frame.

    Padding bits are dropped.

    Raises:
        FrameSizeError: If packed data doesn't match width/height
    """
    validate_dimensions(width, height)
    validate_packed_frame_size(len(packed), width, height)
    stride = bytes_per_row(width)

    arr = np.frombuffer(bytes(packed), dtype=np.uint8).reshape((height, stride))
    bits = np.unpackbits(arr, axis=1, bitorder="little")[:, :width]
    return bits.reshape(-1).astype(np.uint8)
