"""Room detection entry point and background runner."""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Dict, List, Optional, Tuple

import numpy as np

from .errors import DetectionCancelled
from .models import DetectionParams, Room
from .preprocessing import prepare_raster
from .segmentation import eliminate_exterior, extract_components, select_components
from .synthesis import synthesize_rooms

logger = logging.getLogger(__name__)


def _check_cancelled(cancel_event: Optional[threading.Event], stage: str) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise DetectionCancelled(f"Detection cancelled before {stage}")


def detect_rooms(
    image: np.ndarray,
    target_width: int,
    target_height: int,
    start_index: int = 0,
    default_color_key: str = "standard",
    default_section_key: str = "main",
    params: Optional[DetectionParams] = None,
    cancel_event: Optional[threading.Event] = None,
) -> List[Room]:
    """Detect candidate rooms in a floor plan image.

    The result is a seed for manual correction, not an exact survey. An
    empty list means nothing room-shaped was found.

    Args:
        image: Decoded floor plan (grayscale, BGR or BGRA)
        target_width: Editor canvas width
        target_height: Editor canvas height
        start_index: Number of rooms already present, used for naming
        default_color_key: Legend id given to every detected room
        default_section_key: Section id given to every detected room
        params: Detection parameters
        cancel_event: When set, detection stops at the next stage boundary

    Returns:
        Rooms in canvas coordinates, largest first
    """
    if params is None:
        params = DetectionParams()

    # Step 1: Downsample and binarize
    _check_cancelled(cancel_event, "preprocessing")
    mask, raster_size = prepare_raster(image, params)

    # Step 2: Remove everything reachable from outside
    _check_cancelled(cancel_event, "exterior elimination")
    exterior = eliminate_exterior(mask)

    # Step 3: Collect enclosed regions
    _check_cancelled(cancel_event, "component extraction")
    components = extract_components(mask, exterior)

    # Step 4: Filter, dedupe and cap
    _check_cancelled(cancel_event, "filtering")
    selected = select_components(components, params)

    # Step 5: Rescale into the editor canvas
    _check_cancelled(cancel_event, "room synthesis")
    rooms = synthesize_rooms(
        selected,
        raster_size,
        (target_width, target_height),
        start_index=start_index,
        color_key=default_color_key,
        section_key=default_section_key,
    )

    logger.info(
        "Detected %d room(s) on a %dx%d working raster",
        len(rooms),
        raster_size[0],
        raster_size[1],
    )
    return rooms


class RoomDetector:
    """Run room detection off the caller's thread.

    One detection is tracked per key (typically a floor plan or client id).
    Submitting again for the same key supersedes the earlier request
    instead of queueing behind it.
    """

    def __init__(
        self,
        params: Optional[DetectionParams] = None,
        max_workers: int = 2,
    ):
        """Initialize the detector.

        Args:
            params: Detection parameters
            max_workers: Worker threads for background detection
        """
        self.params = params or DetectionParams()
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="room_detect"
        )
        self._lock = threading.RLock()
        self._inflight: Dict[str, Tuple[Future, threading.Event]] = {}

    def detect(
        self,
        image: np.ndarray,
        target_width: int,
        target_height: int,
        start_index: int = 0,
        default_color_key: str = "standard",
        default_section_key: str = "main",
    ) -> List[Room]:
        """Run detection synchronously with this detector's parameters."""
        return detect_rooms(
            image,
            target_width,
            target_height,
            start_index=start_index,
            default_color_key=default_color_key,
            default_section_key=default_section_key,
            params=self.params,
        )

    def submit(
        self,
        key: str,
        image: np.ndarray,
        target_width: int,
        target_height: int,
        start_index: int = 0,
        default_color_key: str = "standard",
        default_section_key: str = "main",
    ) -> "Future[List[Room]]":
        """Start detection in the background.

        Args:
            key: Identifies the floor plan being interpreted
            image: Decoded floor plan
            target_width: Editor canvas width
            target_height: Editor canvas height
            start_index: Number of rooms already present
            default_color_key: Legend id for detected rooms
            default_section_key: Section id for detected rooms

        Returns:
            Future resolving to the detected rooms. A superseded future is
            cancelled or fails with DetectionCancelled.
        """
        cancel_event = threading.Event()
        with self._lock:
            self._supersede(key)
            future = self._executor.submit(
                detect_rooms,
                image,
                target_width,
                target_height,
                start_index=start_index,
                default_color_key=default_color_key,
                default_section_key=default_section_key,
                params=self.params,
                cancel_event=cancel_event,
            )
            self._inflight[key] = (future, cancel_event)

        future.add_done_callback(lambda f: self._forget(key, f))
        return future

    def cancel(self, key: str) -> bool:
        """Cancel the in-flight detection for key, if any."""
        with self._lock:
            return self._supersede(key)

    def pending(self) -> List[str]:
        """Keys with a detection still in flight."""
        with self._lock:
            return list(self._inflight)

    def _supersede(self, key: str) -> bool:
        # Caller holds self._lock
        previous = self._inflight.pop(key, None)
        if previous is None:
            return False
        future, cancel_event = previous
        cancel_event.set()
        future.cancel()
        logger.info("Superseded in-flight detection for %s", key)
        return True

    def _forget(self, key: str, future: Future) -> None:
        with self._lock:
            current = self._inflight.get(key)
            if current is not None and current[0] is future:
                del self._inflight[key]

    def shutdown(self, wait: bool = True) -> None:
        """Cancel outstanding work and stop the worker threads."""
        with self._lock:
            for key in list(self._inflight):
                self._supersede(key)
        self._executor.shutdown(wait=wait)

    def __enter__(self) -> "RoomDetector":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()
