"""Image loading and binarization for room detection."""

import logging
from typing import Optional, Tuple

import cv2
import numpy as np

from .errors import ImageDecodeError, RasterUnavailable
from .geometry import round_half_up
from .models import DetectionParams

logger = logging.getLogger(__name__)

# Rec. 709 luma weights, applied to R, G, B
LUMA_WEIGHTS = (0.2126, 0.7152, 0.0722)


def decode_image_bytes(data: bytes) -> np.ndarray:
    """Decode an encoded image (PNG, JPEG, WebP, ...) held in memory.

    Args:
        data: Encoded image bytes

    Returns:
        Image as numpy array (grayscale, BGR or BGRA)
    """
    buffer = np.frombuffer(data, dtype=np.uint8)
    if buffer.size == 0:
        raise ImageDecodeError("Image data is empty")
    img = cv2.imdecode(buffer, cv2.IMREAD_UNCHANGED)
    if img is None:
        raise ImageDecodeError("Could not decode floor plan image")
    return img


def load_image(image_path: str) -> np.ndarray:
    """Load an image from disk, keeping any alpha channel.

    Args:
        image_path: Path to the image file

    Returns:
        Image as numpy array (grayscale, BGR or BGRA)
    """
    try:
        data = np.fromfile(str(image_path), dtype=np.uint8)
    except OSError as e:
        raise ImageDecodeError(f"Could not load image from {image_path}: {e}") from e
    try:
        return decode_image_bytes(data.tobytes())
    except ImageDecodeError as e:
        raise ImageDecodeError(f"Could not load image from {image_path}") from e


def working_size(
    width: int,
    height: int,
    max_working_width: int = 900,
    min_working_size: int = 140,
) -> Tuple[int, int]:
    """Compute the downsampled raster size.

    Only wide images shrink; each side is floored at min_working_size, so
    tiny images are enlarged.

    Args:
        width: Source width in pixels
        height: Source height in pixels
        max_working_width: Width cap for the working raster
        min_working_size: Minimum side length of the working raster

    Returns:
        Tuple of (working width, working height)
    """
    scale = min(1.0, max_working_width / width)
    w = max(min_working_size, round_half_up(width * scale))
    h = max(min_working_size, round_half_up(height * scale))
    return w, h


def _to_uint8(image: np.ndarray) -> np.ndarray:
    if image.dtype == np.uint8:
        return image
    if image.dtype == np.bool_:
        return image.astype(np.uint8) * 255
    if image.dtype == np.uint16:
        return (image >> 8).astype(np.uint8)
    if np.issubdtype(image.dtype, np.number):
        return np.clip(image, 0, 255).astype(np.uint8)
    raise RasterUnavailable(f"Unsupported pixel type: {image.dtype}")


def to_bgr(image: np.ndarray) -> np.ndarray:
    """Convert a decoded image to a 3-channel uint8 BGR raster.

    Colors are kept as stored, whatever their opacity; only fully
    transparent pixels read back as black, like an empty drawing surface.

    Args:
        image: Grayscale, BGR or BGRA image

    Returns:
        BGR image
    """
    if not isinstance(image, np.ndarray) or image.ndim not in (2, 3):
        raise RasterUnavailable("Image is not a 2D raster")
    if image.shape[0] == 0 or image.shape[1] == 0:
        raise RasterUnavailable("Image has no pixels")

    image = _to_uint8(image)

    if image.ndim == 2:
        return cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)

    channels = image.shape[2]
    if channels == 1:
        return cv2.cvtColor(image[:, :, 0], cv2.COLOR_GRAY2BGR)
    if channels == 3:
        return image
    if channels == 4:
        bgr = image[:, :, :3].copy()
        bgr[image[:, :, 3] == 0] = 0
        return bgr

    raise RasterUnavailable(f"Unsupported channel count: {channels}")


def downsample(image: np.ndarray, params: Optional[DetectionParams] = None) -> np.ndarray:
    """Draw the image into a working raster of bounded size.

    This is the only step that reads the source resolution.

    Args:
        image: Decoded source image
        params: Detection parameters

    Returns:
        BGR working raster
    """
    if params is None:
        params = DetectionParams()

    bgr = to_bgr(image)
    src_h, src_w = bgr.shape[:2]
    w, h = working_size(src_w, src_h, params.max_working_width, params.min_working_size)

    if (w, h) == (src_w, src_h):
        return bgr.copy()

    # Area averaging when shrinking, bilinear when enlarging
    interpolation = cv2.INTER_AREA if w < src_w else cv2.INTER_LINEAR
    try:
        raster = cv2.resize(bgr, (w, h), interpolation=interpolation)
    except cv2.error as e:
        raise RasterUnavailable(f"Could not resample image to {w}x{h}: {e}") from e

    logger.debug("Downsampled %dx%d -> %dx%d", src_w, src_h, w, h)
    return raster


def compute_light_mask(raster: np.ndarray, threshold: float = 232.0) -> np.ndarray:
    """Binarize a raster by luminance.

    Near-white pixels are open floor; walls, text and furniture glyphs are
    darker.

    Args:
        raster: BGR working raster
        threshold: Luminance a pixel must exceed to count as light

    Returns:
        uint8 mask where 1 = light, 0 = dark
    """
    b = raster[:, :, 0].astype(np.float64)
    g = raster[:, :, 1].astype(np.float64)
    r = raster[:, :, 2].astype(np.float64)
    luminance = LUMA_WEIGHTS[0] * r + LUMA_WEIGHTS[1] * g + LUMA_WEIGHTS[2] * b
    return (luminance > threshold).astype(np.uint8)


def prepare_raster(
    image: np.ndarray,
    params: Optional[DetectionParams] = None,
) -> Tuple[np.ndarray, Tuple[int, int]]:
    """Complete preprocessing: downsample then binarize.

    Args:
        image: Decoded source image
        params: Detection parameters

    Returns:
        Tuple of (light mask, (working width, working height))
    """
    if params is None:
        params = DetectionParams()

    raster = downsample(image, params)
    mask = compute_light_mask(raster, params.luminance_threshold)
    h, w = mask.shape
    logger.debug("Light pixels: %d of %d", int(mask.sum()), mask.size)
    return mask, (w, h)
