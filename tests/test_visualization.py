"""Tests for the room overlay and report."""

import numpy as np

from floor_plan_rooms.editor import create_room_template, normalize_legend, normalize_sections
from floor_plan_rooms.models import Room
from floor_plan_rooms.visualization import (
    DARK_TEXT,
    LIGHT_TEXT,
    darken_color,
    draw_rooms,
    generate_room_report,
    hex_to_bgr,
    hex_to_rgb,
    text_color_for_background,
)


def test_hex_conversion():
    """Test hex parsing in both channel orders."""
    assert hex_to_rgb("#BFD7EF") == (191, 215, 239)
    assert hex_to_bgr("#BFD7EF") == (239, 215, 191)
    assert hex_to_rgb("#abc") == (170, 187, 204)


def test_text_color_for_background():
    """Test label contrast on light and dark fills."""
    assert text_color_for_background("#BFE3C8") == DARK_TEXT
    assert text_color_for_background("#FFFFFF") == DARK_TEXT
    assert text_color_for_background("#000000") == LIGHT_TEXT
    assert text_color_for_background("#1F3A93") == LIGHT_TEXT


def test_darken_color():
    """Test outline color derivation."""
    assert darken_color("#FFFFFF") == "#CCCCCC"
    assert darken_color("#000000") == "#000000"
    assert darken_color("#FFFFFF", 0.5) == "#808080"


def test_draw_rooms_fills_room_area():
    """Test that rooms are tinted and the rest of the image is untouched."""
    image = np.zeros((200, 300), dtype=np.uint8)
    room = Room(id="r1", name="Hall", x=100, y=60, width=140, height=100, color_key="light")

    vis = draw_rooms(image, [room], (300, 200))

    assert vis.shape == (200, 300, 3)
    assert vis[150, 200].sum() > 0
    assert vis[10, 10].sum() == 0
    # Input is not modified
    assert image.sum() == 0


def test_draw_rooms_scales_canvas_to_image():
    """Test mapping canvas coordinates onto a larger image."""
    image = np.zeros((400, 600, 3), dtype=np.uint8)
    room = Room(id="r1", x=100, y=60, width=140, height=100)

    vis = draw_rooms(image, [room], (300, 200))

    assert vis[300, 450].sum() > 0
    assert vis[100, 150].sum() == 0


def test_draw_rooms_without_rooms():
    """Test that drawing nothing returns a copy of the image."""
    image = np.full((50, 80, 3), 128, dtype=np.uint8)

    vis = draw_rooms(image, [], (80, 50))

    assert np.abs(vis.astype(int) - image).max() <= 1
    assert vis is not image


def test_generate_room_report():
    """Test the room table."""
    rooms = [
        create_room_template(0, "heavy", "upstairs"),
        create_room_template(1, "light", "main"),
    ]

    report = generate_room_report(rooms, normalize_legend(None), normalize_sections(None))

    assert "FLOOR PLAN ROOMS" in report
    assert "Room 1" in report
    assert "Heavy" in report
    assert "Upstairs" in report
    assert "2 rooms" in report


def test_generate_room_report_single_room():
    """Test singular wording."""
    report = generate_room_report([create_room_template(0)])

    assert "1 room" in report
    assert "1 rooms" not in report
