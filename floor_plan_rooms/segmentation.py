"""Room candidate segmentation from a binary light mask."""

import logging
from typing import List, Optional

import numpy as np
from scipy import ndimage
from skimage import measure

from .geometry import iou
from .models import Component, DetectionParams

logger = logging.getLogger(__name__)

# 4-connectivity: diagonal neighbours do not join regions
FOUR_CONNECTED = ndimage.generate_binary_structure(2, 1)


def border_seeds(mask: np.ndarray) -> np.ndarray:
    """Light pixels lying on the four image borders.

    Args:
        mask: Light mask (1 = light)

    Returns:
        Boolean array, True at light border pixels
    """
    light = mask.astype(bool)
    seeds = np.zeros_like(light)
    seeds[0, :] = light[0, :]
    seeds[-1, :] = light[-1, :]
    seeds[:, 0] = light[:, 0]
    seeds[:, -1] = light[:, -1]
    return seeds


def eliminate_exterior(mask: np.ndarray) -> np.ndarray:
    """Mark light pixels reachable from the image border.

    Multi-source flood fill seeded from every light border pixel and
    constrained to light pixels. Whatever it reaches is page background or
    outside the building envelope.

    Args:
        mask: Light mask (1 = light)

    Returns:
        uint8 mask where 1 = exterior
    """
    light = mask.astype(bool)
    seeds = border_seeds(mask)
    if not seeds.any():
        return np.zeros(mask.shape, dtype=np.uint8)

    exterior = ndimage.binary_propagation(seeds, structure=FOUR_CONNECTED, mask=light)
    return exterior.astype(np.uint8)


def extract_components(mask: np.ndarray, exterior: np.ndarray) -> List[Component]:
    """Collect enclosed light regions.

    Components come out in row-major order of their first pixel, so the
    same mask always yields the same list.

    Args:
        mask: Light mask (1 = light)
        exterior: Exterior mask (1 = reachable from the border)

    Returns:
        List of components with bounding boxes and pixel counts
    """
    interior = mask.astype(bool) & ~exterior.astype(bool)
    labeled, num_features = ndimage.label(interior, structure=FOUR_CONNECTED)
    if num_features == 0:
        return []

    components = []
    for region in measure.regionprops(labeled):
        min_row, min_col, max_row, max_col = region.bbox
        components.append(
            Component(
                x=int(min_col),
                y=int(min_row),
                width=int(max_col - min_col),
                height=int(max_row - min_row),
                pixel_count=int(region.area),
            )
        )

    return components


def filter_components(
    components: List[Component],
    params: Optional[DetectionParams] = None,
) -> List[Component]:
    """Reject components too small or too irregular to be a room.

    Args:
        components: Candidate components
        params: Detection parameters

    Returns:
        Components that pass size, pixel count and fill ratio checks
    """
    if params is None:
        params = DetectionParams()

    kept = []
    for component in components:
        if component.width < params.min_box_side or component.height < params.min_box_side:
            continue
        if component.pixel_count < params.min_pixel_count:
            continue
        if component.fill_ratio < params.min_fill_ratio:
            continue
        kept.append(component)

    return kept


def deduplicate_components(
    components: List[Component],
    iou_threshold: float = 0.82,
) -> List[Component]:
    """Suppress near-duplicate boxes, largest first.

    Args:
        components: Candidate components
        iou_threshold: Boxes overlapping a kept box above this are dropped

    Returns:
        Kept components, ordered by bounding box area descending
    """
    unique: List[Component] = []
    for component in sorted(components, key=lambda c: c.area, reverse=True):
        if any(iou(kept, component) > iou_threshold for kept in unique):
            continue
        unique.append(component)
    return unique


def select_components(
    components: List[Component],
    params: Optional[DetectionParams] = None,
) -> List[Component]:
    """Filter, deduplicate and cap the candidate list.

    Args:
        components: Components from extract_components
        params: Detection parameters

    Returns:
        At most params.max_rooms components, largest first
    """
    if params is None:
        params = DetectionParams()

    filtered = filter_components(components, params)
    unique = deduplicate_components(filtered, params.iou_threshold)
    selected = unique[: params.max_rooms]

    logger.debug(
        "Components: %d found, %d after filter, %d after dedupe, %d kept",
        len(components),
        len(filtered),
        len(unique),
        len(selected),
    )
    return selected
