"""Floor plan storage with legacy schema support.

Two stored shapes exist. Version 1 predates house sections and color
legends: floor plans carry only rooms, and rooms have no section. Version
2 stores everything. Reads accept both and always return version 2.
"""

import json
import logging
import re
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import TypeAdapter, ValidationError

from .editor import normalize_legend, normalize_rooms, normalize_sections
from .models import (
    FloorPlanDocument,
    FloorPlanSchemaV1,
    FloorPlanSchemaV2,
    LegendItem,
    Room,
    SectionItem,
)

logger = logging.getLogger(__name__)

CURRENT_SCHEMA_VERSION = 2

_document_adapter = TypeAdapter(FloorPlanDocument)

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9_-]+")


def migrate_v1_to_v2(document: FloorPlanSchemaV1) -> FloorPlanSchemaV2:
    """Upgrade a legacy document.

    Legacy rooms get the default legend and are placed in the first
    default section.

    Args:
        document: Version 1 document

    Returns:
        Equivalent version 2 document
    """
    legend = normalize_legend(None)
    sections = normalize_sections(None)
    rooms = [
        {**row.model_dump(), "section_key": sections[0].id}
        for row in document.rooms
    ]
    return FloorPlanSchemaV2(
        client_id=document.client_id,
        rooms=normalize_rooms(rooms, legend, sections),
        color_legend=legend,
        house_sections=sections,
        reference_image_path=None,
        updated_at=document.updated_at,
    )


def downgrade_to_v1(document: FloorPlanSchemaV2) -> FloorPlanSchemaV1:
    """Drop the fields a legacy store has no columns for."""
    return FloorPlanSchemaV1(
        client_id=document.client_id,
        rooms=[room.model_dump(exclude={"section_key"}) for room in document.rooms],
        updated_at=document.updated_at,
    )


def _optional_text(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


def _detect_version(raw: Dict[str, Any]) -> int:
    version = raw.get("schema_version")
    if version in (1, 2):
        return version
    if "color_legend" in raw or "house_sections" in raw or "reference_image_path" in raw:
        return 2
    return 1


def parse_document(raw: Dict[str, Any]) -> Union[FloorPlanSchemaV1, FloorPlanSchemaV2]:
    """Validate a stored document, repairing rooms and lists first.

    Untagged documents are classified by which columns they carry.

    Args:
        raw: Decoded JSON object

    Returns:
        Version 1 or version 2 document
    """
    version = _detect_version(raw)
    client_id = str(raw.get("client_id") or "")

    if version == 2:
        legend = normalize_legend(raw.get("color_legend"))
        sections = normalize_sections(raw.get("house_sections"))
        repaired = {
            "schema_version": 2,
            "client_id": client_id,
            "rooms": normalize_rooms(raw.get("rooms"), legend, sections),
            "color_legend": legend,
            "house_sections": sections,
            "reference_image_path": _optional_text(raw.get("reference_image_path")),
            "updated_at": _optional_text(raw.get("updated_at")),
        }
    else:
        legend = normalize_legend(None)
        sections = normalize_sections(None)
        rooms = normalize_rooms(raw.get("rooms"), legend, sections)
        repaired = {
            "schema_version": 1,
            "client_id": client_id,
            "rooms": [room.model_dump(exclude={"section_key"}) for room in rooms],
            "updated_at": _optional_text(raw.get("updated_at")),
        }

    return _document_adapter.validate_python(repaired)


def to_current(document: Union[FloorPlanSchemaV1, FloorPlanSchemaV2]) -> FloorPlanSchemaV2:
    if isinstance(document, FloorPlanSchemaV1):
        return migrate_v1_to_v2(document)
    return document


class FloorPlanStore(ABC):
    """Storage backend for floor plans, one per client."""

    @abstractmethod
    def load_floor_plan(self, client_id: str) -> Optional[FloorPlanSchemaV2]:
        """Load a client's floor plan, or None if none is stored."""

    @abstractmethod
    def save_floor_plan(
        self,
        client_id: str,
        rooms: List[Room],
        legend: List[LegendItem],
        sections: List[SectionItem],
        reference_image_path: Optional[str] = None,
    ) -> FloorPlanSchemaV2:
        """Insert or replace a client's floor plan."""


class JsonFloorPlanStore(FloorPlanStore):
    """Store floor plans as JSON files in a directory.

    A store created with ``schema_version=1`` behaves like a backend that
    has not been migrated: sections, legends and the reference image are
    not persisted, but the save still succeeds.
    """

    FILE_PREFIX = "floorplan_client_"

    def __init__(self, directory: str = "floorplans", schema_version: int = CURRENT_SCHEMA_VERSION):
        """Initialize the store.

        Args:
            directory: Directory holding one JSON file per client
            schema_version: Schema the backing store supports (1 or 2)
        """
        if schema_version not in (1, 2):
            raise ValueError(f"Unsupported schema version: {schema_version}")
        self.directory = Path(directory)
        self.directory.mkdir(exist_ok=True, parents=True)
        self.schema_version = schema_version

    def path_for(self, client_id: str) -> Path:
        """File for a client; anything outside [A-Za-z0-9_-] becomes "_"."""
        safe_id = _UNSAFE_FILENAME_CHARS.sub("_", str(client_id)) or "_"
        return self.directory / f"{self.FILE_PREFIX}{safe_id}.json"

    def load_floor_plan(self, client_id: str) -> Optional[FloorPlanSchemaV2]:
        path = self.path_for(client_id)
        if not path.exists():
            return None

        try:
            with open(path, "r", encoding="utf-8") as f:
                raw = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning("Unreadable floor plan for %s, starting fresh: %s", client_id, e)
            return None

        if not isinstance(raw, dict):
            logger.warning("Floor plan for %s is not an object, starting fresh", client_id)
            return None

        raw.setdefault("client_id", client_id)
        try:
            document = parse_document(raw)
        except ValidationError as e:
            logger.warning("Floor plan for %s failed validation, starting fresh: %s", client_id, e)
            return None

        if isinstance(document, FloorPlanSchemaV1):
            logger.info("Migrating legacy floor plan for %s", client_id)
        return to_current(document)

    def save_floor_plan(
        self,
        client_id: str,
        rooms: List[Room],
        legend: List[LegendItem],
        sections: List[SectionItem],
        reference_image_path: Optional[str] = None,
    ) -> FloorPlanSchemaV2:
        normalized_legend = normalize_legend(legend)
        normalized_sections = normalize_sections(sections)
        document = FloorPlanSchemaV2(
            client_id=client_id,
            rooms=normalize_rooms(rooms, normalized_legend, normalized_sections),
            color_legend=normalized_legend,
            house_sections=normalized_sections,
            reference_image_path=reference_image_path or None,
            updated_at=datetime.now(timezone.utc).isoformat(),
        )

        if self.schema_version == 1:
            logger.warning(
                "Saving floor plan for %s in compatibility mode; sections and colors are not stored",
                client_id,
            )
            stored: Union[FloorPlanSchemaV1, FloorPlanSchemaV2] = downgrade_to_v1(document)
        else:
            stored = document

        path = self.path_for(client_id)
        tmp_path = path.with_suffix(".json.tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(stored.model_dump(mode="json"), f, indent=2)
        tmp_path.replace(path)

        logger.debug("Saved %d room(s) for %s", len(document.rooms), client_id)
        return document
