"""
Adapter: OpenCV Watermarker

Burns a semi-opaque band into the lower part of the frame with the capture
timestamp, GPS fix and product name, then encodes the frame as JPEG.
"""

import cv2
import numpy as np

from src.core.errors import CaptureError
from src.core.interfaces.capture_device import IWatermarker
from src.core.payloads import encode_data_uri


class OpenCVWatermarker(IWatermarker):

    def __init__(
        self,
        band_height: int = 80,
        band_opacity: float = 0.7,
        jpeg_quality: int = 80,
        font_scale: float = 0.55,
    ):
        self._band_height = band_height
        self._opacity = band_opacity
        self._quality = jpeg_quality
        self._font_scale = font_scale

    def burn(self, frame: np.ndarray, lines: list[str]) -> np.ndarray:
        """Return a copy of the frame with the watermark band drawn."""
        img = frame.copy()
        h, w = img.shape[:2]
        band = min(self._band_height, h)
        top = h - band

        # Black band at 70% opacity
        roi = img[top:h]
        overlay = np.zeros_like(roi)
        img[top:h] = cv2.addWeighted(overlay, self._opacity, roi, 1.0 - self._opacity, 0)

        # Baselines from the bottom up: 50, 25, 5 px for an 80 px band
        baselines = [h - 50, h - 25, h - 5]
        for text, y in zip(lines, baselines):
            cv2.putText(
                img, text, (10, max(y, top + 15)),
                cv2.FONT_HERSHEY_SIMPLEX, self._font_scale,
                (255, 255, 255), 1, cv2.LINE_AA,
            )
        return img

    def encode(self, img: np.ndarray) -> bytes:
        ok, buf = cv2.imencode(".jpg", img, [cv2.IMWRITE_JPEG_QUALITY, self._quality])
        if not ok:
            raise CaptureError("Could not encode the captured frame")
        return buf.tobytes()

    def render(self, frame: np.ndarray, lines: list[str]) -> str:
        return encode_data_uri(self.encode(self.burn(frame, lines)), "image/jpeg")
