"""
Use Case: Upload Live Photo

Orchestrates: validation → AI analysis (blocking) → storage → record →
duplicate index.
The upload is not acknowledged until the analysis verdict is known; the
verdict decides whether the record starts as pending or flagged.
"""

import logging
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable

from src.core import policy
from src.core.entities.analysis_result import AnalysisContext, ImageAnalysisResult
from src.core.entities.live_photo import (
    DeviceInfo,
    GpsLocation,
    LiveInventoryPhoto,
    LivePhotoAnalysis,
    PhotoStatus,
)
from src.core.errors import AnalysisFailure, ValidationError
from src.core.interfaces.image_analyzer import IImageAnalyzer
from src.core.interfaces.storage_service import IStorageService
from src.core.interfaces.verification_store import IVerificationStore
from src.core.payloads import decode_payload, require_identifier

logger = logging.getLogger(__name__)

ACCEPTED_IMAGE_TYPES = ("image/jpeg", "image/jpg", "image/png")


@dataclass
class LivePhotoUploadInput:
    product_id: str
    supplier_id: str
    image_data: str                           # data URI (JPEG, quality 0.8)
    device_info: DeviceInfo | None
    gps_location: GpsLocation | None = None


@dataclass
class LivePhotoUploadResult:
    photo: LiveInventoryPhoto
    verdict: ImageAnalysisResult
    analysis_ms: float = 0.0

    @property
    def flagged(self) -> bool:
        return self.photo.verification_status == PhotoStatus.FLAGGED

    @property
    def message(self) -> str:
        if self.flagged:
            return "Photo uploaded but flagged for review"
        return "Photo uploaded successfully"


def parse_client_timestamp(value: str) -> datetime:
    """ISO-8601 client timestamp → naive UTC datetime."""
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except (AttributeError, ValueError):
        raise ValidationError(f"deviceInfo.timestamp is not an ISO-8601 timestamp: {value!r}")
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


class UploadLivePhotoUseCase:
    """
    Use Case: live photo → verdict → pending/flagged record.

    Dependency Injection: analyzer, store and storage come from the
    constructor. The analyzer is expected to be time-bounded; any
    AnalysisFailure becomes the fallback verdict (flagged).
    """

    def __init__(
        self,
        store: IVerificationStore,
        storage: IStorageService,
        analyzer: IImageAnalyzer,
        flag_threshold: float = policy.FLAG_THRESHOLD,
        stock_photo_threshold: float = policy.STOCK_PHOTO_THRESHOLD,
        max_upload_bytes: int = 10 * 1024 * 1024,
        max_capture_age_seconds: int = 600,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self._store = store
        self._storage = storage
        self._analyzer = analyzer
        self._flag_threshold = flag_threshold
        self._stock_threshold = stock_photo_threshold
        self._max_bytes = max_upload_bytes
        self._max_age = max_capture_age_seconds
        self._clock = clock

    def execute(self, data: LivePhotoUploadInput) -> LivePhotoUploadResult:
        # ── 1. Validation (before any analysis cost) ──
        missing = [
            name
            for name, value in (
                ("productId", data.product_id),
                ("supplierId", data.supplier_id),
                ("imageData", data.image_data),
            )
            if not value or not str(value).strip()
        ]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")
        if data.device_info is None:
            raise ValidationError("Missing required fields: deviceInfo")
        supplier_id = require_identifier("supplierId", data.supplier_id)
        product_id = require_identifier("productId", data.product_id)

        captured_at = parse_client_timestamp(data.device_info.timestamp)
        mime, raw = decode_payload(data.image_data)
        if mime is not None and mime not in ACCEPTED_IMAGE_TYPES:
            raise ValidationError(f"Live photo must be a JPEG or PNG image, got {mime}")
        if len(raw) > self._max_bytes:
            raise ValidationError(f"Image size must be less than {self._max_bytes // (1024 * 1024)}MB")

        # ── 2. AI analysis (blocking) ──
        t0 = time.perf_counter()
        verdict = self._analyze(raw)
        analysis_ms = round((time.perf_counter() - t0) * 1000, 2)
        flagged = policy.should_flag(verdict, self._flag_threshold)

        # ── 3. Persist ──
        received_at = self._clock()
        photo_id = f"photo-{uuid.uuid4().hex[:12]}"
        ref = self._storage.upload(raw, f"live/{supplier_id}/{photo_id}.jpg", content_type=mime or "image/jpeg")

        photo = LiveInventoryPhoto(
            id=photo_id,
            product_id=product_id,
            supplier_id=supplier_id,
            image_reference=self._storage.reference_for(ref.key),
            captured_at=captured_at,
            device_info=data.device_info,
            gps_location=data.gps_location,
            verification_status=PhotoStatus.FLAGGED if flagged else PhotoStatus.PENDING,
            status_reason=policy.describe_flags(verdict, self._flag_threshold) if flagged else None,
            ai_analysis=LivePhotoAnalysis(
                is_real_time=abs((received_at - captured_at).total_seconds()) <= self._max_age,
                duplicate_score=verdict.duplicate_score,
                retail_store_detected=verdict.retail_store_detected,
                confidence=verdict.confidence,
            ),
            received_at=received_at,
            fingerprint=verdict.fingerprint,
        )
        stored = self._store.add_photo(photo)
        # Only persisted photos count as prior uploads
        if verdict.fingerprint:
            self._analyzer.register(verdict.fingerprint)

        if flagged:
            logger.warning(
                f"Live photo {stored.id} from supplier {stored.supplier_id} auto-flagged: "
                f"{sorted(verdict.flags)} dup={verdict.duplicate_score:.2f}"
            )
        else:
            logger.info(f"Live photo {stored.id} from supplier {stored.supplier_id} queued for review")

        return LivePhotoUploadResult(photo=stored, verdict=verdict, analysis_ms=analysis_ms)

    def rebuild_duplicate_index(self) -> int:
        """Register every stored photo with the analyzer. Run once at startup."""
        fingerprints = self._store.list_fingerprints()
        for fingerprint in fingerprints:
            self._analyzer.register(fingerprint)
        if fingerprints:
            logger.info(f"Duplicate index rebuilt from {len(fingerprints)} stored photos")
        return len(fingerprints)

    def _analyze(self, image_bytes: bytes) -> ImageAnalysisResult:
        try:
            verdict = self._analyzer.analyze(image_bytes, AnalysisContext.LIVE_INVENTORY)
        except AnalysisFailure as e:
            logger.warning(f"Analysis failed, using fallback verdict: {e}")
            verdict = policy.fallback_verdict(str(e))
        return policy.assemble_flags(verdict, self._stock_threshold)
