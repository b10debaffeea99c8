"""Data models for room detection and the floor plan editor."""

import json
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class Pin(BaseModel):
    """A note pinned inside a room.

    Coordinates are relative to the room's own box, not the canvas.
    """

    id: str
    x: float = 0.0
    y: float = 0.0
    note: str = ""


class Room(BaseModel):
    """A room rectangle in editor canvas coordinates."""

    id: str
    name: str = "Room"
    x: int = 0
    y: int = 0
    width: int = 220
    height: int = 160
    color_key: str = "standard"
    section_key: str = "main"
    notes: str = ""
    pins: List[Pin] = Field(default_factory=list)


class LegendItem(BaseModel):
    """Color legend entry (cleaning difficulty)."""

    id: str
    label: str
    color: str = "#BFD7EF"


class SectionItem(BaseModel):
    """House section entry (physical area of the house)."""

    id: str
    label: str


class LegacyRoomRow(BaseModel):
    """Room row from the older schema, which had no section column."""

    model_config = ConfigDict(extra="ignore")

    id: str
    name: str = "Room"
    x: int = 0
    y: int = 0
    width: int = 220
    height: int = 160
    color_key: str = "standard"
    notes: str = ""
    pins: List[Pin] = Field(default_factory=list)


class FloorPlanSchemaV1(BaseModel):
    """Stored floor plan before sections and legends were persisted."""

    model_config = ConfigDict(extra="ignore")

    schema_version: Literal[1] = 1
    client_id: str
    rooms: List[LegacyRoomRow] = Field(default_factory=list)
    updated_at: Optional[str] = None


class FloorPlanSchemaV2(BaseModel):
    """Current stored floor plan."""

    model_config = ConfigDict(extra="ignore")

    schema_version: Literal[2] = 2
    client_id: str
    rooms: List[Room] = Field(default_factory=list)
    color_legend: List[LegendItem] = Field(default_factory=list)
    house_sections: List[SectionItem] = Field(default_factory=list)
    reference_image_path: Optional[str] = None
    updated_at: Optional[str] = None


FloorPlanDocument = Annotated[
    Union[FloorPlanSchemaV1, FloorPlanSchemaV2],
    Field(discriminator="schema_version"),
]


@dataclass
class Component:
    """Connected light region in working-raster coordinates."""

    x: int
    y: int
    width: int
    height: int
    pixel_count: int

    @property
    def area(self) -> int:
        """Bounding box area in pixels."""
        return self.width * self.height

    @property
    def fill_ratio(self) -> float:
        """Share of the bounding box covered by the component."""
        return self.pixel_count / self.area if self.area > 0 else 0.0


@dataclass
class DetectionParams:
    """Tunable parameters for room detection.

    The thresholds were picked by eye on typical line-art plans; treat them
    as starting points and tune them with ``evaluation.TuningLog``.
    """

    max_working_width: int = 900
    min_working_size: int = 140
    luminance_threshold: float = 232.0
    min_box_side: int = 16
    min_pixel_count: int = 180
    min_fill_ratio: float = 0.45
    iou_threshold: float = 0.82
    max_rooms: int = 40

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        """Raise ValueError listing every invalid parameter."""
        errors = []

        if self.max_working_width <= 0:
            errors.append("max_working_width must be positive")
        if self.min_working_size <= 0:
            errors.append("min_working_size must be positive")
        if not (0.0 <= self.luminance_threshold <= 255.0):
            errors.append("luminance_threshold must be between 0 and 255")
        if self.min_box_side < 1:
            errors.append("min_box_side must be at least 1")
        if self.min_pixel_count < 1:
            errors.append("min_pixel_count must be at least 1")
        if not (0.0 <= self.min_fill_ratio <= 1.0):
            errors.append("min_fill_ratio must be between 0.0 and 1.0")
        if not (0.0 <= self.iou_threshold <= 1.0):
            errors.append("iou_threshold must be between 0.0 and 1.0")
        if self.max_rooms < 0:
            errors.append("max_rooms must be non-negative")

        if errors:
            raise ValueError("Invalid detection parameters: " + "; ".join(errors))

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DetectionParams":
        """Build params from a mapping, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})

    @classmethod
    def from_json(cls, path: str) -> "DetectionParams":
        with open(Path(path), "r") as f:
            return cls.from_dict(json.load(f))
