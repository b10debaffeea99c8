"""Overlay and text report for detected rooms."""

from typing import Dict, List, Optional, Tuple

import cv2
import numpy as np

from .editor import normalize_hex_color, normalize_legend, normalize_sections
from .geometry import clamp
from .models import LegendItem, Room, SectionItem
from .preprocessing import to_bgr

DARK_TEXT = "#24414B"
LIGHT_TEXT = "#FFFFFF"


def hex_to_rgb(hex_color: str) -> Tuple[int, int, int]:
    value = int(normalize_hex_color(hex_color)[1:], 16)
    return (value >> 16) & 255, (value >> 8) & 255, value & 255


def hex_to_bgr(hex_color: str) -> Tuple[int, int, int]:
    r, g, b = hex_to_rgb(hex_color)
    return b, g, r


def text_color_for_background(hex_color: str) -> str:
    """Dark text on light fills, white text on dark fills."""
    r, g, b = hex_to_rgb(hex_color)
    luminance = 0.2126 * r + 0.7152 * g + 0.0722 * b
    return DARK_TEXT if luminance > 165 else LIGHT_TEXT


def darken_color(hex_color: str, amount: float = 0.2) -> str:
    r, g, b = hex_to_rgb(hex_color)
    r, g, b = (int(clamp(round(v * (1 - amount)), 0, 255)) for v in (r, g, b))
    return f"#{r:02X}{g:02X}{b:02X}"


def draw_rooms(
    image: np.ndarray,
    rooms: List[Room],
    canvas_size: Tuple[int, int],
    legend: Optional[List[LegendItem]] = None,
    opacity: float = 0.35,
) -> np.ndarray:
    """Draw rooms over the floor plan they were detected from.

    Args:
        image: Original floor plan image
        rooms: Rooms in canvas coordinates
        canvas_size: (width, height) of the canvas the rooms live in
        legend: Color legend used to fill rooms
        opacity: Fill opacity

    Returns:
        BGR visualization image
    """
    vis = to_bgr(image).copy()
    h, w = vis.shape[:2]
    canvas_w, canvas_h = canvas_size
    scale_x = w / canvas_w
    scale_y = h / canvas_h

    colors: Dict[str, str] = {item.id: item.color for item in normalize_legend(legend)}
    fallback = next(iter(colors.values()))

    fill_layer = vis.copy()
    boxes = []
    for room in rooms:
        x1 = int(round(room.x * scale_x))
        y1 = int(round(room.y * scale_y))
        x2 = int(round((room.x + room.width) * scale_x)) - 1
        y2 = int(round((room.y + room.height) * scale_y)) - 1
        color = colors.get(room.color_key, fallback)
        cv2.rectangle(fill_layer, (x1, y1), (x2, y2), hex_to_bgr(color), -1)
        boxes.append((room, (x1, y1, x2, y2), color))

    vis = cv2.addWeighted(fill_layer, opacity, vis, 1 - opacity, 0)

    for room, (x1, y1, x2, y2), color in boxes:
        cv2.rectangle(vis, (x1, y1), (x2, y2), hex_to_bgr(darken_color(color)), 2)

        # Outline the label in the fill color so it reads on any background
        origin = (x1 + 6, y1 + 18)
        cv2.putText(vis, room.name, origin, cv2.FONT_HERSHEY_SIMPLEX, 0.5, hex_to_bgr(color), 3)
        cv2.putText(
            vis,
            room.name,
            origin,
            cv2.FONT_HERSHEY_SIMPLEX,
            0.5,
            hex_to_bgr(text_color_for_background(color)),
            1,
        )

    return vis


def generate_room_report(
    rooms: List[Room],
    legend: Optional[List[LegendItem]] = None,
    sections: Optional[List[SectionItem]] = None,
) -> str:
    """Generate a formatted table of rooms.

    Args:
        rooms: Rooms to list
        legend: Color legend for labels
        sections: House sections for labels

    Returns:
        Formatted report string
    """
    color_labels = {item.id: item.label for item in normalize_legend(legend)}
    section_labels = {item.id: item.label for item in normalize_sections(sections)}

    report_lines = [
        "=" * 64,
        "FLOOR PLAN ROOMS",
        "=" * 64,
        "",
        f"{'NAME':16s} {'X':>5s} {'Y':>5s} {'W':>5s} {'H':>5s}  {'COLOR':12s} SECTION",
        "-" * 64,
    ]

    for room in rooms:
        report_lines.append(
            f"{room.name[:16]:16s} {room.x:5d} {room.y:5d} {room.width:5d} {room.height:5d}  "
            f"{color_labels.get(room.color_key, room.color_key)[:12]:12s} "
            f"{section_labels.get(room.section_key, room.section_key)}"
        )

    label = "room" if len(rooms) == 1 else "rooms"
    report_lines.extend(["", "-" * 64, f"{len(rooms)} {label}", "=" * 64])

    return "\n".join(report_lines)
