"""Turn raster components into editor rooms."""

from typing import Dict, List, Tuple

from .geometry import MIN_ROOM_HEIGHT, MIN_ROOM_WIDTH, clamp, new_id, snap
from .models import Component, Room

IMPORTED_NOTE = "Imported from floor plan image"


def rescale_box(
    component: Component,
    raster_size: Tuple[int, int],
    target_size: Tuple[int, int],
) -> Dict[str, float]:
    """Map a component box from raster space to canvas space.

    Args:
        component: Component in working-raster pixels
        raster_size: (width, height) of the working raster
        target_size: (width, height) of the editor canvas

    Returns:
        Clamped bounds with x, y, width, height (not yet snapped)
    """
    raster_w, raster_h = raster_size
    target_w, target_h = target_size
    scale_x = target_w / raster_w
    scale_y = target_h / raster_h

    return {
        "x": clamp(component.x * scale_x, 0, target_w - MIN_ROOM_WIDTH),
        "y": clamp(component.y * scale_y, 0, target_h - MIN_ROOM_HEIGHT),
        "width": clamp(component.width * scale_x, MIN_ROOM_WIDTH, target_w),
        "height": clamp(component.height * scale_y, MIN_ROOM_HEIGHT, target_h),
    }


def build_room_from_bounds(
    bounds: Dict[str, float],
    index: int,
    color_key: str,
    section_key: str,
) -> Room:
    """Create a grid-aligned room from canvas bounds.

    Args:
        bounds: Mapping with x, y, width, height
        index: Zero-based room index, used for the default name
        color_key: Legend id for the room
        section_key: Section id for the room

    Returns:
        New Room with a fresh id
    """
    return Room(
        id=new_id(),
        name=f"Room {index + 1}",
        x=snap(bounds["x"]),
        y=snap(bounds["y"]),
        width=max(MIN_ROOM_WIDTH, snap(bounds["width"])),
        height=max(MIN_ROOM_HEIGHT, snap(bounds["height"])),
        color_key=color_key,
        section_key=section_key,
        notes=IMPORTED_NOTE,
        pins=[],
    )


def synthesize_rooms(
    components: List[Component],
    raster_size: Tuple[int, int],
    target_size: Tuple[int, int],
    start_index: int = 0,
    color_key: str = "standard",
    section_key: str = "main",
) -> List[Room]:
    """Build one room per component, numbered after existing rooms."""
    return [
        build_room_from_bounds(
            rescale_box(component, raster_size, target_size),
            start_index + idx,
            color_key,
            section_key,
        )
        for idx, component in enumerate(components)
    ]
