"""Floor plan room detector: seed editable room rectangles from a plan image."""

from .detector import RoomDetector, detect_rooms
from .editor import FloorPlanEditor, normalize_room
from .errors import DetectionCancelled, ImageDecodeError, RasterUnavailable
from .models import DetectionParams, Pin, Room

__version__ = "0.1.0"
__all__ = [
    "DetectionCancelled",
    "DetectionParams",
    "FloorPlanEditor",
    "ImageDecodeError",
    "Pin",
    "RasterUnavailable",
    "Room",
    "RoomDetector",
    "detect_rooms",
    "normalize_room",
]
