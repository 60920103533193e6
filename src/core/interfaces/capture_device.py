"""
Contract: Capture Device

Platform capability used by the capture client: a camera that yields
frames and an optional location fix. Any runtime with camera access
(browser bridge, mobile, desktop webcam) can implement it.
"""

from abc import ABC, abstractmethod

import numpy as np

from src.core.entities.live_photo import GpsLocation


class ICaptureDevice(ABC):
    """
    Port: Capture Device

    The camera is a scoped resource: every successful acquire_camera
    must be matched by release(), which is safe to call repeatedly.
    """

    @abstractmethod
    def acquire_camera(self, facing: str = "environment") -> None:
        """
        Open the camera.

        Args:
            facing: Preferred facing hint ("environment" or "user").

        Raises:
            CapturePermissionError: camera unavailable or access denied.
        """
        ...

    @abstractmethod
    def acquire_location(self, timeout_s: float) -> GpsLocation | None:
        """
        Best-effort location fix with high-accuracy hint.

        Returns None when denied, unavailable or not resolved in time.
        """
        ...

    @abstractmethod
    def capture_frame(self) -> np.ndarray:
        """Current frame at native resolution (BGR)."""
        ...

    @abstractmethod
    def release(self) -> None:
        """Stop all camera tracks."""
        ...


class IWatermarker(ABC):
    """Port: burns text into a frame and encodes it."""

    @abstractmethod
    def render(self, frame: np.ndarray, lines: list[str]) -> str:
        """
        Draw the watermark band and encode the frame.

        Returns:
            data URI of the encoded image.
        """
        ...
