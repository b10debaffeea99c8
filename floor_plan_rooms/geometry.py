"""Grid snapping, clamping, rectangle overlap and id helpers."""

import math
import uuid
from typing import Any, Mapping, Tuple

GRID = 20
MIN_ROOM_WIDTH = 120
MIN_ROOM_HEIGHT = 100


def to_number(value: Any, default: float = 0.0) -> float:
    """Coerce a loosely typed value to a finite float.

    Args:
        value: Number, numeric string, None or anything else
        default: Returned when the value is not a finite number

    Returns:
        The numeric value, or default
    """
    if isinstance(value, bool):
        return float(value)
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(number):
        return default
    return number


def round_half_up(n: float) -> int:
    """Round to the nearest integer, with .5 going toward +inf."""
    return int(math.floor(n + 0.5))


def snap(n: Any) -> int:
    """Round n to the nearest multiple of GRID."""
    return round_half_up(to_number(n) / GRID) * GRID


def clamp(n: float, lo: float, hi: float) -> float:
    """Limit n to [lo, hi]; lo wins when the range is empty."""
    return max(lo, min(hi, n))


def rect_tuple(rect: Any) -> Tuple[float, float, float, float]:
    """Read (x, y, width, height) from a mapping or an object with attributes."""
    if isinstance(rect, Mapping):
        return (rect["x"], rect["y"], rect["width"], rect["height"])
    return (rect.x, rect.y, rect.width, rect.height)


def iou(a: Any, b: Any) -> float:
    """Intersection over union of two axis-aligned rectangles.

    Args:
        a: Rectangle with x, y, width, height
        b: Rectangle with x, y, width, height

    Returns:
        Overlap ratio in [0, 1]; 0 when the rectangles do not overlap
    """
    ax, ay, aw, ah = rect_tuple(a)
    bx, by, bw, bh = rect_tuple(b)

    inter_w = max(0.0, min(ax + aw, bx + bw) - max(ax, bx))
    inter_h = max(0.0, min(ay + ah, by + bh) - max(ay, by))
    inter = inter_w * inter_h
    if inter <= 0:
        return 0.0

    union = aw * ah + bw * bh - inter
    return inter / union if union > 0 else 0.0


def new_id() -> str:
    """Fresh random identifier for rooms and pins."""
    return str(uuid.uuid4())


def new_slug_id(slug: str) -> str:
    """Slug with a short random suffix, used for legend and section ids."""
    return f"{slug}_{uuid.uuid4().hex[:4]}"
