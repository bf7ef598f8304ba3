"""Tests for RGBA -> 1-bit quantization."""

import numpy as np
import pytest

from oled_art.quantizer import luminance, quantize
from oled_art.validation import ValidationError


def solid_rgba(color, width=8, height=4):
    frame = np.zeros((height, width, 4), dtype=np.uint8)
    frame[:, :] = color
    return frame


def test_grey_at_threshold_is_on():
    mono = quantize(solid_rgba((128, 128, 128, 255)), 128)
    assert mono.shape == (32,)
    assert mono.sum() == 32


def test_grey_below_threshold_is_off():
    mono = quantize(solid_rgba((128, 128, 128, 255)), 129)
    assert mono.sum() == 0


def test_alpha_is_ignored():
    opaque = quantize(solid_rgba((255, 255, 255, 255)))
    transparent = quantize(solid_rgba((255, 255, 255, 0)))
    assert np.array_equal(opaque, transparent)
    assert transparent.all()


def test_bt601_weights():
    # pure red has luma 76.245
    red = solid_rgba((255, 0, 0, 255), 1, 1)
    assert quantize(red, 76)[0] == 1
    assert quantize(red, 77)[0] == 0
    assert luminance(red)[0] == pytest.approx(76.245)


def test_flat_buffer_input():
    flat = np.array([0, 0, 0, 255, 255, 255, 255, 255], dtype=np.uint8)
    assert list(quantize(flat)) == [0, 1]


def test_deterministic_and_read_only():
    rng = np.random.default_rng(7)
    frame = rng.integers(0, 256, size=(16, 16, 4), dtype=np.uint8)
    a = quantize(frame, 100)
    b = quantize(frame.copy(), 100)
    assert np.array_equal(a, b)
    assert set(np.unique(a)) <= {0, 1}
    assert not a.flags.writeable


def test_threshold_out_of_range():
    with pytest.raises(ValidationError):
        quantize(solid_rgba((0, 0, 0, 255)), 256)
    with pytest.raises(ValidationError):
        quantize(solid_rgba((0, 0, 0, 255)), -1)


def test_bad_buffer_length():
    with pytest.raises(ValidationError):
        quantize(np.zeros(6, dtype=np.uint8))
