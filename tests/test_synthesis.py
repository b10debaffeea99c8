"""Tests for room synthesis."""

import pytest

from floor_plan_rooms.geometry import MIN_ROOM_HEIGHT, MIN_ROOM_WIDTH
from floor_plan_rooms.models import Component
from floor_plan_rooms.synthesis import (
    IMPORTED_NOTE,
    build_room_from_bounds,
    rescale_box,
    synthesize_rooms,
)


def test_rescale_box_scales_each_axis():
    """Test independent x and y scaling."""
    component = Component(x=10, y=20, width=30, height=40, pixel_count=1200)

    bounds = rescale_box(component, (100, 100), (1000, 700))

    assert bounds["x"] == pytest.approx(100)
    assert bounds["y"] == pytest.approx(140)
    assert bounds["width"] == pytest.approx(300)
    assert bounds["height"] == pytest.approx(280)


def test_rescale_box_clamps_to_canvas():
    """Test that boxes near the edge stay inside the canvas with minimum size."""
    component = Component(x=95, y=95, width=5, height=5, pixel_count=25)

    bounds = rescale_box(component, (100, 100), (1000, 700))

    assert bounds["x"] == 1000 - MIN_ROOM_WIDTH
    assert bounds["y"] == 700 - MIN_ROOM_HEIGHT
    assert bounds["width"] == MIN_ROOM_WIDTH
    assert bounds["height"] == MIN_ROOM_HEIGHT


def test_build_room_from_bounds_snaps_to_grid():
    """Test grid alignment of a synthesized room."""
    room = build_room_from_bounds(
        {"x": 103, "y": 47, "width": 251, "height": 99},
        index=3,
        color_key="heavy",
        section_key="upstairs",
    )

    assert (room.x, room.y, room.width, room.height) == (100, 40, 260, 100)
    assert room.name == "Room 4"
    assert room.color_key == "heavy"
    assert room.section_key == "upstairs"
    assert room.notes == IMPORTED_NOTE
    assert room.pins == []


def test_build_room_from_bounds_enforces_minimum_size():
    """Test that snapping never goes below the minimum room size."""
    room = build_room_from_bounds({"x": 0, "y": 0, "width": 20, "height": 20}, 0, "light", "main")

    assert room.width == MIN_ROOM_WIDTH
    assert room.height == MIN_ROOM_HEIGHT


def test_synthesize_rooms_names_continue_after_existing():
    """Test room numbering from a start index."""
    components = [
        Component(x=0, y=0, width=50, height=50, pixel_count=2500),
        Component(x=60, y=0, width=30, height=30, pixel_count=900),
    ]

    rooms = synthesize_rooms(components, (100, 100), (1000, 700), start_index=2)

    assert [r.name for r in rooms] == ["Room 3", "Room 4"]
    assert len({r.id for r in rooms}) == 2


def test_synthesize_rooms_empty():
    """Test that no components give no rooms."""
    assert synthesize_rooms([], (100, 100), (1000, 700)) == []
