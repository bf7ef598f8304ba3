"""
Cross-cutting validation logic for the video to OLED pipeline.

This module provides validation functions for rules that span multiple
components. Type-local invariants stay in their dataclass __post_init__
methods.

Cross-cutting rules validated here:
- Display dimensions after orientation
- Mono frame and packed frame sizes
- Threshold range
- Uploaded video file checks (size, extension)
"""

from pathlib import Path
from typing import Iterable


class ValidationError(ValueError):
    """Base exception for validation errors."""
    pass


class DimensionValidationError(ValidationError):
    """Raised when display dimensions are invalid."""
    pass


class FrameSizeError(ValidationError):
    """Raised when frame data does not match its declared dimensions."""
    pass


class UploadValidationError(ValidationError):
    """Raised when an uploaded video file is rejected."""
    pass


def bytes_per_row(width: int) -> int:
    """Bytes needed for one packed row (rounded up to byte boundary)."""
    return (width + 7) // 8


def packed_frame_size(width: int, height: int) -> int:
    """Exact byte length of one packed frame."""
    return bytes_per_row(width) * height


def validate_dimensions(width: int, height: int) -> None:
    """
    Validate display dimensions.

    Args:
        width: Width in pixels
        height: Height in pixels

    Raises:
        DimensionValidationError: If either dimension is not positive
    """
    if width <= 0 or height <= 0:
        raise DimensionValidationError(
            f"Invalid display dimensions: {width}x{height}"
        )


def validate_threshold(threshold: int) -> None:
    if not (0 <= threshold <= 255):
        raise ValidationError(f"Threshold must be 0-255, got {threshold}")


def validate_mono_frame_size(length: int, width: int, height: int) -> None:
    """
    Validate that a mono frame holds one value per pixel.

    Raises:
        FrameSizeError: If length != width * height
    """
    expected = width * height
    if length != expected:
        raise FrameSizeError(
            f"Mono frame size {length} doesn't match expected {expected} "
            f"for {width}x{height} display"
        )


def validate_packed_frame_size(length: int, width: int, height: int) -> None:
    """
    Validate that packed frame data matches the display dimensions.

    Cross-cutting rule: one packed frame always costs exactly
    ceil(width/8) * height bytes.

    Args:
        length: Length of packed data in bytes
        width: Display width in pixels
        height: Display height in pixels

    Raises:
        FrameSizeError: If data size doesn't match expected size
    """
    expected = packed_frame_size(width, height)
    if length != expected:
        raise FrameSizeError(
            f"Packed frame size {length} doesn't match expected {expected} "
            f"for {width}x{height} display"
        )


def validate_video_file(
    path: Path,
    max_file_size: int,
    supported_formats: Iterable[str],
) -> None:
    """
    Validate a stored video file before it enters the pipeline.

    Args:
        path: Path of the stored upload
        max_file_size: Largest accepted size in bytes
        supported_formats: Accepted extensions without the dot

    Raises:
        UploadValidationError: If the file is missing, empty, too large or
            has an unsupported extension
    """
    if not path.exists():
        raise UploadValidationError(f"Video file not found: {path.name}")

    ext = path.suffix.lower().lstrip(".")
    allowed = [fmt.lower() for fmt in supported_formats]
    if ext not in allowed:
        raise UploadValidationError(
            f"Unsupported file type '.{ext}'. Allowed: {', '.join(allowed)}"
        )

    size = path.stat().st_size
    if size == 0:
        raise UploadValidationError("Video file is empty")
    if size > max_file_size:
        raise UploadValidationError(
            f"Video file is too large (max {max_file_size // (1024 * 1024)}MB)"
        )
