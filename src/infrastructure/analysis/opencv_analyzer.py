"""
Adapter: OpenCV Image Analyzer — deterministic authenticity heuristics.

Scores an image using classic CV, no model weights:
  1. Duplicate     → perceptual difference hash (dHash) vs. every registered image
  2. Retail shelf  → count of long horizontal shelf edges (Hough)
  3. Stock photo   → clean white studio border + absence of sensor noise
  4. Confidence    → resolution and sharpness of the input
"""

import logging
import threading
from collections import deque

import cv2
import numpy as np

from src.core.entities.analysis_result import AnalysisContext, ImageAnalysisResult
from src.core.errors import AnalysisFailure
from src.core.interfaces.image_analyzer import IImageAnalyzer

logger = logging.getLogger(__name__)


class OpenCVImageAnalyzer(IImageAnalyzer):
    """
    Heuristic analyzer — fast (~10ms), deterministic, auditable.

    Keeps an in-process index of fingerprints of stored photos so re-uploads
    of the same scene score as duplicates. `analyze` never writes to the
    index; `register` does, once the caller has persisted the photo.
    The watermark band of live photos is cut off before hashing, so a new
    timestamp does not hide a re-upload.
    """

    ENGINE = "opencv-heuristic-v1"

    def __init__(
        self,
        duplicate_max_distance: int = 32,
        near_duplicate_distance: int = 6,
        retail_min_shelf_rows: int = 4,
        watermark_band_px: int = 80,
        max_index_size: int = 50_000,
    ):
        self._max_distance = duplicate_max_distance
        self._near_distance = near_duplicate_distance
        self._min_shelf_rows = retail_min_shelf_rows
        self._band_px = watermark_band_px
        self._index: deque[int] = deque(maxlen=max_index_size)
        self._lock = threading.Lock()

    def analyze(self, image_bytes: bytes, context: AnalysisContext) -> ImageAnalysisResult:
        img = cv2.imdecode(np.frombuffer(image_bytes, dtype=np.uint8), cv2.IMREAD_COLOR)
        if img is None:
            raise AnalysisFailure("Could not decode image")

        if context == AnalysisContext.LIVE_INVENTORY:
            img = self._strip_watermark(img)

        # --- 1. Duplicate ---
        fingerprint = self._dhash(img)
        distance = self._nearest(fingerprint)
        if distance is None:
            duplicate_score = 0.0
        else:
            duplicate_score = max(0.0, 1.0 - distance / self._max_distance)
        is_duplicate = distance is not None and distance <= self._near_distance

        # --- 2. Retail shelf ---
        shelf_rows = self._count_shelf_rows(img)
        retail_detected = shelf_rows >= self._min_shelf_rows

        # --- 3. Stock photo ---
        stock_likelihood = self._stock_photo_likelihood(img)

        # --- 4. Confidence ---
        confidence, min_side = self._confidence(img)

        flags = set()
        if min_side < 480:
            flags.add("low_resolution")

        logger.debug(
            f"{context.value}: dist={distance} rows={shelf_rows} "
            f"stock={stock_likelihood:.2f} conf={confidence:.2f}"
        )
        return ImageAnalysisResult(
            is_duplicate=is_duplicate,
            duplicate_score=round(duplicate_score, 3),
            retail_store_detected=retail_detected,
            stock_photo_likelihood=round(stock_likelihood, 3),
            inappropriate_content=False,
            confidence=confidence,
            flags=frozenset(flags),
            engine=self.ENGINE,
            fingerprint=f"{fingerprint:016x}",
        )

    def register(self, fingerprint: str) -> None:
        try:
            value = int(fingerprint, 16)
        except (TypeError, ValueError):
            logger.warning(f"Ignoring malformed fingerprint {fingerprint!r}")
            return
        with self._lock:
            self._index.append(value)

    # ─── Internal methods ──────────────────────────────────

    def _strip_watermark(self, img: np.ndarray) -> np.ndarray:
        h = img.shape[0]
        if h > self._band_px * 2:
            return img[: h - self._band_px]
        return img

    @staticmethod
    def _dhash(img: np.ndarray) -> int:
        """64-bit difference hash: sign of horizontal gradient on a 9x8 thumbnail."""
        gray = cv2.cvtColor(img, cv2.COLOR_BGR2GRAY)
        thumb = cv2.resize(gray, (9, 8), interpolation=cv2.INTER_AREA)
        diff = thumb[:, 1:] > thumb[:, :-1]
        value = 0
        for i, bit in enumerate(diff.flatten()):
            if bit:
                value |= 1 << i
        return value

    def _nearest(self, fingerprint: int) -> int | None:
        """Smallest Hamming distance to any indexed image."""
        with self._lock:
            best = None
            for known in self._index:
                d = bin(known ^ fingerprint).count("1")
                if best is None or d < best:
                    best = d
                    if d == 0:
                        break
        return best

    def _count_shelf_rows(self, img: np.ndarray) -> int:
        """
        Retail shelving shows up as several long, parallel, horizontal edges.
        Returns the number of distinct rows of such edges.
        """
        gray = cv2.cvtColor(img, cv2.COLOR_BGR2GRAY)
        h, w = gray.shape
        edges = cv2.Canny(gray, 50, 150)
        lines = cv2.HoughLinesP(
            edges, 1, np.pi / 180,
            threshold=max(50, w // 4),
            minLineLength=int(w * 0.5),
            maxLineGap=10,
        )
        if lines is None:
            return 0

        ys = []
        for x1, y1, x2, y2 in lines[:, 0]:
            if abs(int(y2) - int(y1)) <= max(2, 0.03 * abs(int(x2) - int(x1))):
                ys.append((int(y1) + int(y2)) / 2)
        if not ys:
            return 0

        # Both edges of one shelf lip collapse into a single row
        row_gap = max(8.0, h * 0.03)
        rows = 0
        last = None
        for y in sorted(ys):
            if last is None or y - last > row_gap:
                rows += 1
            last = y
        return rows

    @staticmethod
    def _stock_photo_likelihood(img: np.ndarray) -> float:
        """
        Catalogue shots sit on a seamless white backdrop with no sensor noise.
        Score = 0.8 * white-border ratio + 0.2 * (1 - border noise).
        """
        h, w = img.shape[:2]
        bh, bw = max(1, h // 10), max(1, w // 10)
        hsv = cv2.cvtColor(img, cv2.COLOR_BGR2HSV)
        strips = [
            hsv[:bh].reshape(-1, 3),
            hsv[h - bh:].reshape(-1, 3),
            hsv[:, :bw].reshape(-1, 3),
            hsv[:, w - bw:].reshape(-1, 3),
        ]
        border = np.concatenate(strips)
        white_ratio = float(np.mean((border[:, 2] > 225) & (border[:, 1] < 30)))

        gray = cv2.cvtColor(img, cv2.COLOR_BGR2GRAY)
        top = cv2.Laplacian(gray[:bh], cv2.CV_64F)
        noise_norm = min(float(top.std()) / 50.0, 1.0)

        return max(0.0, min(0.8 * white_ratio + 0.2 * (1.0 - noise_norm), 1.0))

    @staticmethod
    def _confidence(img: np.ndarray) -> tuple[float, int]:
        """0.5 - 1.0: how much the heuristics can be trusted for this input."""
        h, w = img.shape[:2]
        min_side = min(h, w)
        gray = cv2.cvtColor(img, cv2.COLOR_BGR2GRAY)
        sharpness = float(cv2.Laplacian(gray, cv2.CV_64F).var())
        resolution_norm = min(min_side / 720.0, 1.0)
        sharpness_norm = min(sharpness / 300.0, 1.0)
        return round(0.5 + 0.25 * resolution_norm + 0.25 * sharpness_norm, 3), min_side
