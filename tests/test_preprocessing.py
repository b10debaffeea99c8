"""Tests for preprocessing module."""

import tempfile
from pathlib import Path

import cv2
import numpy as np
import pytest

from floor_plan_rooms.errors import ImageDecodeError, RasterUnavailable
from floor_plan_rooms.models import DetectionParams
from floor_plan_rooms.preprocessing import (
    compute_light_mask,
    decode_image_bytes,
    downsample,
    load_image,
    prepare_raster,
    to_bgr,
    working_size,
)


def test_working_size_shrinks_wide_images():
    """Test that wide images are capped at 900px."""
    assert working_size(1800, 1200) == (900, 600)


def test_working_size_keeps_moderate_images():
    """Test that images under the cap keep their size."""
    assert working_size(800, 600) == (800, 600)


def test_working_size_floors_small_sides():
    """Test the 140px minimum on each side."""
    assert working_size(100, 50) == (140, 140)
    assert working_size(9000, 100) == (900, 140)


def test_compute_light_mask_threshold():
    """Test luminance binarization around the threshold."""
    raster = np.zeros((1, 5, 3), dtype=np.uint8)
    raster[0, 0] = [255, 255, 255]
    raster[0, 1] = [0, 0, 0]
    raster[0, 2] = [233, 233, 233]
    raster[0, 3] = [231, 231, 231]
    raster[0, 4] = [0, 255, 0]  # Pure green, BGR

    mask = compute_light_mask(raster, threshold=232)

    assert mask.dtype == np.uint8
    assert mask.tolist() == [[1, 0, 1, 0, 0]]


def test_compute_light_mask_uses_rgb_weights():
    """Test that channel weights follow RGB, not BGR, order."""
    raster = np.zeros((1, 2, 3), dtype=np.uint8)
    raster[0, 0] = [0, 255, 255]  # Yellow: L = 0.2126*255 + 0.7152*255 = 236.6
    raster[0, 1] = [255, 255, 0]  # Cyan: L = 0.7152*255 + 0.0722*255 = 200.8

    mask = compute_light_mask(raster, threshold=232)

    assert mask.tolist() == [[1, 0]]


def test_to_bgr_from_grayscale():
    """Test grayscale images are expanded to three channels."""
    gray = np.full((20, 30), 200, dtype=np.uint8)

    bgr = to_bgr(gray)

    assert bgr.shape == (20, 30, 3)
    assert np.all(bgr == 200)


def test_to_bgr_composites_alpha_over_black():
    """Test that transparent pixels read back as dark."""
    bgra = np.full((10, 10, 4), 255, dtype=np.uint8)
    bgra[:, :5, 3] = 0

    bgr = to_bgr(bgra)

    assert np.all(bgr[:, :5] == 0)
    assert np.all(bgr[:, 5:] == 255)


def test_to_bgr_keeps_color_of_translucent_pixels():
    """Test that partly transparent white still reads as light."""
    bgra = np.full((4, 4, 4), 255, dtype=np.uint8)
    bgra[:, :, 3] = 64
    bgra[0, 0, 3] = 0

    bgr = to_bgr(bgra)

    assert np.all(bgr[0, 0] == 0)
    assert np.all(bgr[1:] == 255)
    assert compute_light_mask(bgr)[1:].all()


def test_to_bgr_rejects_unusable_arrays():
    """Test RasterUnavailable for arrays that are not drawable rasters."""
    with pytest.raises(RasterUnavailable):
        to_bgr(np.zeros((0, 10, 3), dtype=np.uint8))
    with pytest.raises(RasterUnavailable):
        to_bgr(np.zeros(100, dtype=np.uint8))
    with pytest.raises(RasterUnavailable):
        to_bgr(np.zeros((10, 10, 2), dtype=np.uint8))


def test_downsample_keeps_size_without_resizing():
    """Test that in-range images are copied unchanged."""
    image = np.random.default_rng(0).integers(0, 256, (200, 300, 3), dtype=np.uint8)

    raster = downsample(image)

    assert raster.shape == (200, 300, 3)
    assert np.array_equal(raster, image)
    assert raster is not image


def test_downsample_shrinks_large_images():
    """Test downsampling to the working width."""
    image = np.full((900, 1800, 3), 255, dtype=np.uint8)

    raster = downsample(image)

    assert raster.shape == (450, 900, 3)


def test_downsample_respects_params():
    """Test a custom working width."""
    image = np.full((400, 800, 3), 255, dtype=np.uint8)

    raster = downsample(image, DetectionParams(max_working_width=400))

    assert raster.shape == (200, 400, 3)


def test_prepare_raster_returns_mask_and_size():
    """Test the complete preprocessing step."""
    image = np.zeros((300, 400, 3), dtype=np.uint8)
    image[100:200, 100:300] = 255

    mask, (w, h) = prepare_raster(image)

    assert (w, h) == (400, 300)
    assert mask.shape == (300, 400)
    assert mask.sum() == 100 * 200


def test_load_image_missing_file():
    """Test loading a file that does not exist."""
    with pytest.raises(ImageDecodeError):
        load_image("/nonexistent/plan.png")


def test_load_image_error_is_value_error():
    """Test that decode errors are also ValueErrors."""
    with pytest.raises(ValueError):
        load_image("/nonexistent/plan.png")


def test_load_image_from_disk():
    """Test loading a PNG written with OpenCV."""
    image = np.zeros((50, 60, 3), dtype=np.uint8)
    image[10:20, 10:20] = [255, 0, 0]

    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "plan.png"
        cv2.imwrite(str(path), image)

        loaded = load_image(str(path))

    assert loaded.shape == (50, 60, 3)
    assert np.array_equal(loaded, image)


def test_decode_image_bytes_rejects_garbage():
    """Test decoding corrupt data."""
    with pytest.raises(ImageDecodeError):
        decode_image_bytes(b"definitely not an image")
    with pytest.raises(ImageDecodeError):
        decode_image_bytes(b"")
