"""
Adapter: OpenCV Capture Device

ICaptureDevice backed by cv2.VideoCapture. Location comes from an
injected source (GPS daemon, phone bridge, fixed coordinates), bounded
by a timeout; a missing or slow source simply yields no location.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeout
from typing import Callable

import cv2
import numpy as np

from src.core.entities.live_photo import GpsLocation
from src.core.errors import CaptureError, CapturePermissionError
from src.core.interfaces.capture_device import ICaptureDevice

logger = logging.getLogger(__name__)

# Facing hint → camera index. Laptops usually expose only index 0.
DEFAULT_CAMERA_INDICES = {"environment": 0, "user": 0}


class OpenCVCaptureDevice(ICaptureDevice):

    def __init__(
        self,
        camera_indices: dict[str, int] | None = None,
        location_source: Callable[[], GpsLocation | None] | None = None,
        ideal_width: int = 1280,
        ideal_height: int = 720,
    ):
        self._indices = camera_indices or dict(DEFAULT_CAMERA_INDICES)
        self._location_source = location_source
        self._width = ideal_width
        self._height = ideal_height
        self._capture: cv2.VideoCapture | None = None
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="location-source")

    def acquire_camera(self, facing: str = "environment") -> None:
        self.release()
        index = self._indices.get(facing, next(iter(self._indices.values()), 0))
        capture = cv2.VideoCapture(index)
        if not capture.isOpened():
            capture.release()
            raise CapturePermissionError(f"Camera {index} ({facing}) could not be opened")
        capture.set(cv2.CAP_PROP_FRAME_WIDTH, self._width)
        capture.set(cv2.CAP_PROP_FRAME_HEIGHT, self._height)
        self._capture = capture
        logger.info(f"Camera {index} opened ({facing})")

    def acquire_location(self, timeout_s: float) -> GpsLocation | None:
        if self._location_source is None:
            return None
        future = self._executor.submit(self._location_source)
        try:
            return future.result(timeout=timeout_s)
        except FuturesTimeout:
            logger.warning(f"Location not resolved within {timeout_s}s, continuing without GPS")
            return None
        except Exception as e:
            logger.warning(f"Location unavailable, continuing without GPS: {e}")
            return None

    def capture_frame(self) -> np.ndarray:
        if self._capture is None:
            raise CaptureError("Camera is not streaming")
        ok, frame = self._capture.read()
        if not ok or frame is None:
            raise CaptureError("Could not read a frame from the camera")
        return frame

    def release(self) -> None:
        if self._capture is not None:
            self._capture.release()
            self._capture = None
            logger.debug("Camera released")
