"""
Pydantic schemas — Response models for the API.

Every response is wrapped as `{success, data?, error?, message?}`.
"""

from datetime import datetime, timezone
from typing import Annotated, Generic, TypeVar

from pydantic import PlainSerializer

from src.api.schemas.requests import CamelModel
from src.core.entities.analysis_result import ImageAnalysisResult
from src.core.entities.document import UploadedDocument
from src.core.entities.live_photo import (
    DeviceInfo,
    GpsLocation,
    LiveInventoryPhoto,
    LivePhotoAnalysis,
    PhotoStatus,
)
from src.core.entities.review_event import ReviewEvent
from src.core.interfaces.verification_store import PendingReviews, SupplierHistory
from src.core.use_cases.analyze_image import ImageAnalysisReport
from src.core.use_cases.review_submission import VerificationScore

T = TypeVar("T")


def _naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _utc_iso(value: datetime) -> str:
    """Naive datetimes are UTC. Rendered like JS `toISOString()`."""
    return _naive_utc(value).isoformat(timespec="milliseconds") + "Z"


UtcDateTime = Annotated[datetime, PlainSerializer(_utc_iso, return_type=str, when_used="json")]


class ApiResponse(CamelModel, Generic[T]):
    success: bool
    data: T | None = None
    error: str | None = None
    message: str | None = None


class DocumentMetadataOut(CamelModel):
    file_size: int
    mime_type: str
    original_name: str


class UploadedDocumentOut(CamelModel):
    id: str
    supplier_id: str
    type: str
    file_name: str
    file_reference: str
    uploaded_at: UtcDateTime
    verification_status: str
    rejection_reason: str | None = None
    description: str | None = None
    metadata: DocumentMetadataOut

    @classmethod
    def from_entity(cls, doc: UploadedDocument) -> "UploadedDocumentOut":
        return cls(
            id=doc.id,
            supplier_id=doc.supplier_id,
            type=doc.type.value,
            file_name=doc.file_name,
            file_reference=doc.file_reference,
            uploaded_at=doc.uploaded_at,
            verification_status=doc.verification_status.value,
            rejection_reason=doc.rejection_reason,
            description=doc.description,
            metadata=DocumentMetadataOut(
                file_size=doc.metadata.file_size,
                mime_type=doc.metadata.mime_type,
                original_name=doc.metadata.original_name,
            ),
        )


class GpsLocationOut(CamelModel):
    latitude: float
    longitude: float
    accuracy: float


class DeviceInfoOut(CamelModel):
    user_agent: str
    timestamp: str
    timezone: str


class LivePhotoAnalysisOut(CamelModel):
    is_real_time: bool
    duplicate_score: float
    retail_store_detected: bool
    confidence: float


class LiveInventoryPhotoOut(CamelModel):
    id: str
    product_id: str
    supplier_id: str
    image_reference: str
    captured_at: UtcDateTime
    received_at: UtcDateTime
    gps_location: GpsLocationOut | None = None
    device_info: DeviceInfoOut
    verification_status: str
    status_reason: str | None = None
    ai_analysis: LivePhotoAnalysisOut | None = None

    @classmethod
    def from_entity(cls, photo: LiveInventoryPhoto) -> "LiveInventoryPhotoOut":
        gps = photo.gps_location
        ai = photo.ai_analysis
        return cls(
            id=photo.id,
            product_id=photo.product_id,
            supplier_id=photo.supplier_id,
            image_reference=photo.image_reference,
            captured_at=photo.captured_at,
            received_at=photo.received_at,
            gps_location=GpsLocationOut(latitude=gps.latitude, longitude=gps.longitude, accuracy=gps.accuracy) if gps else None,
            device_info=DeviceInfoOut(
                user_agent=photo.device_info.user_agent,
                timestamp=photo.device_info.timestamp,
                timezone=photo.device_info.timezone,
            ),
            verification_status=photo.verification_status.value,
            status_reason=photo.status_reason,
            ai_analysis=(
                LivePhotoAnalysisOut(
                    is_real_time=ai.is_real_time,
                    duplicate_score=ai.duplicate_score,
                    retail_store_detected=ai.retail_store_detected,
                    confidence=ai.confidence,
                )
                if ai
                else None
            ),
        )

    def to_entity(self) -> LiveInventoryPhoto:
        """Used by the capture client to read the server's answer."""
        gps = self.gps_location
        ai = self.ai_analysis
        return LiveInventoryPhoto(
            id=self.id,
            product_id=self.product_id,
            supplier_id=self.supplier_id,
            image_reference=self.image_reference,
            captured_at=_naive_utc(self.captured_at),
            device_info=DeviceInfo(
                user_agent=self.device_info.user_agent,
                timestamp=self.device_info.timestamp,
                timezone=self.device_info.timezone,
            ),
            gps_location=GpsLocation(latitude=gps.latitude, longitude=gps.longitude, accuracy=gps.accuracy) if gps else None,
            verification_status=PhotoStatus(self.verification_status),
            status_reason=self.status_reason,
            ai_analysis=(
                LivePhotoAnalysis(
                    is_real_time=ai.is_real_time,
                    duplicate_score=ai.duplicate_score,
                    retail_store_detected=ai.retail_store_detected,
                    confidence=ai.confidence,
                )
                if ai
                else None
            ),
            received_at=_naive_utc(self.received_at),
        )


class ImageAnalysisOut(CamelModel):
    is_duplicate: bool
    duplicate_score: float
    retail_store_detected: bool
    stock_photo_likelihood: float
    inappropriate_content: bool
    confidence: float
    flags: list[str]

    @classmethod
    def from_entity(cls, result: ImageAnalysisResult) -> "ImageAnalysisOut":
        return cls(
            is_duplicate=result.is_duplicate,
            duplicate_score=result.duplicate_score,
            retail_store_detected=result.retail_store_detected,
            stock_photo_likelihood=result.stock_photo_likelihood,
            inappropriate_content=result.inappropriate_content,
            confidence=result.confidence,
            flags=sorted(result.flags),
        )


class ImageAnalysisReportOut(CamelModel):
    image_id: str
    analysis: ImageAnalysisOut
    created_at: UtcDateTime

    @classmethod
    def from_entity(cls, report: ImageAnalysisReport) -> "ImageAnalysisReportOut":
        return cls(
            image_id=report.image_id,
            analysis=ImageAnalysisOut.from_entity(report.analysis),
            created_at=report.created_at,
        )


class PendingReviewsOut(CamelModel):
    documents: list[UploadedDocumentOut]
    live_photos: list[LiveInventoryPhotoOut]
    flagged_photos: list[LiveInventoryPhotoOut]

    @classmethod
    def from_entity(cls, pending: PendingReviews) -> "PendingReviewsOut":
        return cls(
            documents=[UploadedDocumentOut.from_entity(d) for d in pending.documents],
            live_photos=[LiveInventoryPhotoOut.from_entity(p) for p in pending.live_photos],
            flagged_photos=[LiveInventoryPhotoOut.from_entity(p) for p in pending.flagged_photos],
        )


class SupplierHistoryOut(CamelModel):
    supplier_id: str
    documents: list[UploadedDocumentOut]
    live_photos: list[LiveInventoryPhotoOut]

    @classmethod
    def from_entity(cls, history: SupplierHistory) -> "SupplierHistoryOut":
        return cls(
            supplier_id=history.supplier_id,
            documents=[UploadedDocumentOut.from_entity(d) for d in history.documents],
            live_photos=[LiveInventoryPhotoOut.from_entity(p) for p in history.live_photos],
        )


class VerificationScoreOut(CamelModel):
    supplier_id: str
    score: int
    level: str
    verified_documents: int
    total_documents: int
    verified_photos: int
    total_photos: int

    @classmethod
    def from_entity(cls, score: VerificationScore) -> "VerificationScoreOut":
        return cls(**score.__dict__)


class ReviewEventOut(CamelModel):
    item_type: str
    item_id: str
    previous_status: str
    new_status: str
    reason: str | None = None
    reviewer: str | None = None
    created_at: UtcDateTime

    @classmethod
    def from_entity(cls, event: ReviewEvent) -> "ReviewEventOut":
        return cls(
            item_type=event.item_type.value,
            item_id=event.item_id,
            previous_status=event.previous_status,
            new_status=event.new_status,
            reason=event.reason,
            reviewer=event.reviewer,
            created_at=event.created_at,
        )
