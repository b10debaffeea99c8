"""Floor plan editor state and normalization of rooms, legends and sections.

Normalization never rejects input. Malformed values from storage or from
detection are clamped or defaulted so the editor always holds a valid
floor plan.
"""

import logging
import math
import re
import threading
from typing import Any, Iterable, List, Mapping, Optional

import numpy as np
from pydantic import BaseModel

from .detector import detect_rooms
from .geometry import (
    GRID,
    MIN_ROOM_HEIGHT,
    MIN_ROOM_WIDTH,
    clamp,
    new_id,
    new_slug_id,
    snap,
    to_number,
)
from .models import DetectionParams, FloorPlanSchemaV2, LegendItem, Pin, Room, SectionItem

logger = logging.getLogger(__name__)

DEFAULT_COLOR = "#BFD7EF"

DEFAULT_COLOR_LEGEND = (
    {"id": "light", "label": "Light", "color": "#BFE3C8"},
    {"id": "standard", "label": "Standard", "color": "#BFD7EF"},
    {"id": "heavy", "label": "Heavy", "color": "#F0D1AE"},
    {"id": "deep_clean", "label": "Deep Clean", "color": "#EAB6B6"},
)

DEFAULT_HOUSE_SECTIONS = (
    {"id": "main", "label": "Main"},
    {"id": "upstairs", "label": "Upstairs"},
    {"id": "downstairs", "label": "Downstairs"},
    {"id": "outbuilding", "label": "Outbuilding"},
)

DEFAULT_ROOM_WIDTH = 220
DEFAULT_ROOM_HEIGHT = 160

_HEX6 = re.compile(r"^#[0-9a-fA-F]{6}$")
_HEX3 = re.compile(r"^#[0-9a-fA-F]{3}$")


def _as_dict(item: Any) -> dict:
    if isinstance(item, BaseModel):
        return item.model_dump()
    if isinstance(item, Mapping):
        return dict(item)
    return {}


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def slugify_label(label: Any) -> str:
    """Lowercase snake-case slug; "color" when nothing usable is left."""
    slug = re.sub(r"[^a-z0-9]+", "_", _text(label).lower()).strip("_")
    return slug or "color"


def normalize_hex_color(value: Any, fallback: str = DEFAULT_COLOR) -> str:
    """Return an uppercase #RRGGBB color, expanding #RGB shorthand."""
    v = _text(value)
    if _HEX6.match(v):
        return v.upper()
    if _HEX3.match(v):
        r, g, b = v[1], v[2], v[3]
        return f"#{r}{r}{g}{g}{b}{b}".upper()
    return fallback


def _unique_id(raw_id: str, seen: set) -> str:
    candidate = raw_id
    tries = 1
    while candidate in seen:
        tries += 1
        candidate = f"{raw_id}_{tries}"
    seen.add(candidate)
    return candidate


def normalize_legend(items: Optional[Iterable[Any]]) -> List[LegendItem]:
    """Repair a color legend.

    Args:
        items: Legend entries as models or mappings

    Returns:
        Non-empty legend with unique ids, labels and valid colors
    """
    src = list(items) if isinstance(items, (list, tuple)) else []
    if not src:
        src = list(DEFAULT_COLOR_LEGEND)

    seen: set = set()
    out = []
    for idx, item in enumerate(src):
        data = _as_dict(item)
        fallback_label = f"Color {idx + 1}"
        raw_id = _text(data.get("id")) or slugify_label(data.get("label") or fallback_label)
        default_color = DEFAULT_COLOR_LEGEND[idx % len(DEFAULT_COLOR_LEGEND)]["color"]
        out.append(
            LegendItem(
                id=_unique_id(raw_id, seen),
                label=_text(data.get("label")) or fallback_label,
                color=normalize_hex_color(data.get("color"), default_color),
            )
        )
    return out


def normalize_sections(items: Optional[Iterable[Any]]) -> List[SectionItem]:
    """Repair the list of house sections.

    Args:
        items: Section entries as models or mappings

    Returns:
        Non-empty section list with unique ids and labels
    """
    src = list(items) if isinstance(items, (list, tuple)) else []
    if not src:
        src = list(DEFAULT_HOUSE_SECTIONS)

    seen: set = set()
    out = []
    for idx, item in enumerate(src):
        data = _as_dict(item)
        fallback_label = f"Section {idx + 1}"
        raw_id = _text(data.get("id")) or slugify_label(data.get("label") or fallback_label)
        out.append(
            SectionItem(
                id=_unique_id(raw_id, seen),
                label=_text(data.get("label")) or fallback_label,
            )
        )
    return out


def new_legend_item(index: int) -> LegendItem:
    default_color = DEFAULT_COLOR_LEGEND[index % len(DEFAULT_COLOR_LEGEND)]["color"]
    return LegendItem(
        id=new_slug_id(slugify_label(f"Color {index + 1}")),
        label=f"Color {index + 1}",
        color=default_color,
    )


def new_section_item(index: int) -> SectionItem:
    return SectionItem(
        id=new_slug_id(slugify_label(f"Section {index + 1}")),
        label=f"Section {index + 1}",
    )


def normalize_pin(pin: Any) -> Pin:
    """Repair a pin; position is clamped to the room box."""
    data = _as_dict(pin)
    return Pin(
        id=_text(data.get("id")) or new_id(),
        x=clamp(to_number(data.get("x")), 0.0, 1.0),
        y=clamp(to_number(data.get("y")), 0.0, 1.0),
        note=_text(data.get("note")),
    )


def _size_or_default(value: Any, default: int) -> float:
    # Only missing, zero or empty sizes take the default; junk coerces to 0
    if not value or (isinstance(value, float) and math.isnan(value)):
        return default
    return to_number(value)


def normalize_room(
    room: Any,
    legend: Optional[Iterable[Any]] = None,
    sections: Optional[Iterable[Any]] = None,
) -> Room:
    """Repair a room so it satisfies the grid and reference invariants.

    Accepts rooms from storage (including legacy ``difficulty_level`` and
    camelCase keys), from detection or from manual edits. Applying it twice
    gives the same result as applying it once.

    Args:
        room: Room model, mapping or None
        legend: Current color legend
        sections: Current house sections

    Returns:
        Grid-aligned room whose color and section keys exist
    """
    data = _as_dict(room)
    normalized_legend = normalize_legend(legend)
    normalized_sections = normalize_sections(sections)
    allowed_colors = {item.id for item in normalized_legend}
    allowed_sections = {item.id for item in normalized_sections}

    raw_pins = data.get("pins")
    pins = [normalize_pin(p) for p in raw_pins] if isinstance(raw_pins, (list, tuple)) else []

    color_key = _text(
        data.get("color_key") or data.get("colorKey") or data.get("difficulty_level")
    )
    section_key = _text(data.get("section_key") or data.get("sectionKey"))

    return Room(
        id=_text(data.get("id")) or new_id(),
        name=_text(data.get("name")) or "Room",
        x=snap(data.get("x")),
        y=snap(data.get("y")),
        width=max(MIN_ROOM_WIDTH, snap(_size_or_default(data.get("width"), DEFAULT_ROOM_WIDTH))),
        height=max(MIN_ROOM_HEIGHT, snap(_size_or_default(data.get("height"), DEFAULT_ROOM_HEIGHT))),
        color_key=color_key if color_key in allowed_colors else normalized_legend[0].id,
        section_key=section_key if section_key in allowed_sections else normalized_sections[0].id,
        notes=str(data.get("notes") or ""),
        pins=pins,
    )


def normalize_rooms(
    rooms: Any,
    legend: Optional[Iterable[Any]] = None,
    sections: Optional[Iterable[Any]] = None,
) -> List[Room]:
    if not isinstance(rooms, (list, tuple)):
        return []
    return [normalize_room(room, legend, sections) for room in rooms]


def create_room_template(
    index: int = 0,
    color_key: str = "standard",
    section_key: str = "main",
) -> Room:
    """Default room for manual creation, staggered so new rooms don't stack."""
    offset = (index % 6) * GRID
    return Room(
        id=new_id(),
        name=f"Room {index + 1}",
        x=40 + offset,
        y=40 + offset,
        width=DEFAULT_ROOM_WIDTH,
        height=DEFAULT_ROOM_HEIGHT,
        color_key=color_key,
        section_key=section_key,
        notes="",
        pins=[],
    )


class FloorPlanEditor:
    """In-memory editing session for one client's floor plan."""

    def __init__(
        self,
        client_id: str,
        rooms: Optional[List[Any]] = None,
        legend: Optional[List[Any]] = None,
        sections: Optional[List[Any]] = None,
        active_section_id: Optional[str] = None,
        reference_image_path: Optional[str] = None,
    ):
        self.client_id = client_id
        self.legend = normalize_legend(legend)
        self.sections = normalize_sections(sections)
        self.rooms = normalize_rooms(rooms or [], self.legend, self.sections)
        self.active_section_id = self._valid_section(active_section_id)
        self.reference_image_path = reference_image_path

    @property
    def default_color_key(self) -> str:
        return self.legend[0].id

    @property
    def default_section_key(self) -> str:
        return self.sections[0].id

    def _valid_section(self, section_id: Optional[str]) -> str:
        if any(s.id == section_id for s in self.sections):
            return section_id
        return self.default_section_key

    def _renormalize(self) -> None:
        self.rooms = normalize_rooms(self.rooms, self.legend, self.sections)

    # Rooms

    def get_room(self, room_id: str) -> Room:
        for room in self.rooms:
            if room.id == room_id:
                return room
        raise KeyError(f"Unknown room: {room_id}")

    def add_room(self) -> Room:
        """Add a manually placed room in the active section."""
        room = create_room_template(len(self.rooms), self.default_color_key, self.active_section_id)
        self.rooms.append(room)
        return room

    def update_room(self, room_id: str, **updates: Any) -> Room:
        """Apply edits (move, resize, rename, recolor) and re-normalize."""
        room = self.get_room(room_id)
        updates.pop("id", None)
        updated = normalize_room({**room.model_dump(), **updates}, self.legend, self.sections)
        self.rooms = [updated if r.id == room_id else r for r in self.rooms]
        return updated

    def remove_room(self, room_id: str) -> None:
        self.get_room(room_id)
        self.rooms = [r for r in self.rooms if r.id != room_id]

    # Pins

    def add_pin(self, room_id: str, x: float, y: float, note: str = "") -> Pin:
        """Pin a note at a position relative to the room box."""
        room = self.get_room(room_id)
        pin = normalize_pin({"id": new_id(), "x": x, "y": y, "note": note})
        self.update_room(room_id, pins=[p.model_dump() for p in room.pins] + [pin.model_dump()])
        return pin

    def update_pin(self, room_id: str, pin_id: str, **updates: Any) -> Pin:
        room = self.get_room(room_id)
        updates.pop("id", None)
        pins = []
        updated = None
        for pin in room.pins:
            if pin.id == pin_id:
                updated = normalize_pin({**pin.model_dump(), **updates})
                pins.append(updated)
            else:
                pins.append(pin)
        if updated is None:
            raise KeyError(f"Unknown pin: {pin_id}")
        self.update_room(room_id, pins=[p.model_dump() for p in pins])
        return updated

    def remove_pin(self, room_id: str, pin_id: str) -> None:
        room = self.get_room(room_id)
        if not any(p.id == pin_id for p in room.pins):
            raise KeyError(f"Unknown pin: {pin_id}")
        self.update_room(room_id, pins=[p.model_dump() for p in room.pins if p.id != pin_id])

    # Legend

    def add_legend_item(self) -> LegendItem:
        self.legend = normalize_legend(self.legend + [new_legend_item(len(self.legend))])
        return self.legend[-1]

    def update_legend_item(self, item_id: str, **updates: Any) -> LegendItem:
        """Change the label or color of a legend entry."""
        updates.pop("id", None)
        if not any(item.id == item_id for item in self.legend):
            raise KeyError(f"Unknown legend item: {item_id}")
        self.legend = normalize_legend(
            [{**item.model_dump(), **updates} if item.id == item_id else item for item in self.legend]
        )
        return next(item for item in self.legend if item.id == item_id)

    def remove_legend_item(self, item_id: str) -> bool:
        """Remove a legend entry, moving its rooms to the first remaining entry.

        The last entry cannot be removed.

        Returns:
            True if the entry was removed
        """
        if len(self.legend) <= 1:
            return False
        remaining = [item for item in self.legend if item.id != item_id]
        if len(remaining) == len(self.legend):
            return False

        self.legend = normalize_legend(remaining)
        fallback = self.default_color_key
        self.rooms = [
            r.model_copy(update={"color_key": fallback}) if r.color_key == item_id else r
            for r in self.rooms
        ]
        self._renormalize()
        logger.debug("Removed legend item %s; rooms moved to %s", item_id, fallback)
        return True

    # Sections

    def add_section(self) -> SectionItem:
        """Add a section and make it active."""
        self.sections = normalize_sections(self.sections + [new_section_item(len(self.sections))])
        created = self.sections[-1]
        self.active_section_id = created.id
        return created

    def update_section(self, section_id: str, **updates: Any) -> SectionItem:
        updates.pop("id", None)
        if not any(s.id == section_id for s in self.sections):
            raise KeyError(f"Unknown section: {section_id}")
        self.sections = normalize_sections(
            [{**s.model_dump(), **updates} if s.id == section_id else s for s in self.sections]
        )
        return next(s for s in self.sections if s.id == section_id)

    def remove_section(self, section_id: str) -> bool:
        """Remove a section, moving its rooms to the first remaining section."""
        if len(self.sections) <= 1:
            return False
        remaining = [s for s in self.sections if s.id != section_id]
        if len(remaining) == len(self.sections):
            return False

        self.sections = normalize_sections(remaining)
        fallback = self.default_section_key
        self.rooms = [
            r.model_copy(update={"section_key": fallback}) if r.section_key == section_id else r
            for r in self.rooms
        ]
        if self.active_section_id == section_id:
            self.active_section_id = fallback
        self._renormalize()
        return True

    # Detection

    def interpret_image(
        self,
        image: np.ndarray,
        target_width: int,
        target_height: int,
        params: Optional[DetectionParams] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> List[Room]:
        """Detect rooms for this plan without changing the session.

        Detected rooms are numbered after the existing ones and land in the
        active section. Pass the result to apply_detected.
        """
        return detect_rooms(
            image,
            target_width,
            target_height,
            start_index=len(self.rooms),
            default_color_key=self.default_color_key,
            default_section_key=self.active_section_id or self.default_section_key,
            params=params,
            cancel_event=cancel_event,
        )

    def apply_detected(self, detected: List[Room], replace: bool = False) -> List[Room]:
        """Replace the rooms with detected ones, or append them."""
        rooms = list(detected) if replace or not self.rooms else self.rooms + list(detected)
        self.rooms = normalize_rooms(rooms, self.legend, self.sections)
        return self.rooms

    # Documents

    def to_document(self) -> FloorPlanSchemaV2:
        """Snapshot the session as a current-schema document."""
        return FloorPlanSchemaV2(
            client_id=self.client_id,
            rooms=normalize_rooms(self.rooms, self.legend, self.sections),
            color_legend=normalize_legend(self.legend),
            house_sections=normalize_sections(self.sections),
            reference_image_path=self.reference_image_path,
        )

    @classmethod
    def from_document(cls, document: FloorPlanSchemaV2) -> "FloorPlanEditor":
        return cls(
            client_id=document.client_id,
            rooms=document.rooms,
            legend=document.color_legend,
            sections=document.house_sections,
            reference_image_path=document.reference_image_path,
        )
