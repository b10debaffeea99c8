"""Exceptions raised by the room detection pipeline."""


class FloorPlanError(Exception):
    """Base class for floor plan errors."""


class RasterUnavailable(FloorPlanError):
    """The image could not be drawn into a working raster.

    Detection cannot continue; callers should fall back to manual room
    creation.
    """


class ImageDecodeError(FloorPlanError, ValueError):
    """The source image is missing or could not be decoded."""


class DetectionCancelled(FloorPlanError):
    """A newer detection request superseded this one."""
