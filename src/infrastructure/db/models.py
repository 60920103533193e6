"""
Database Models — SQLAlchemy.

Tables:
  - documents: uploaded sourcing documents
  - live_photos: live inventory photos with their AI verdict
  - review_events: append-only review log
"""

import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, Float, Integer, JSON, String, Text, Index
from sqlalchemy.orm import DeclarativeBase

from src.core.entities.document import (
    DocumentMetadata,
    DocumentStatus,
    DocumentType,
    UploadedDocument,
)
from src.core.entities.live_photo import (
    DeviceInfo,
    GpsLocation,
    LiveInventoryPhoto,
    LivePhotoAnalysis,
    PhotoStatus,
)
from src.core.entities.review_event import ReviewEvent, ReviewItemType


class Base(DeclarativeBase):
    pass


class DocumentRecord(Base):
    """One uploaded document."""
    __tablename__ = "documents"

    id = Column(String(40), primary_key=True)
    supplier_id = Column(String(64), nullable=False, index=True)
    type = Column(String(32), nullable=False)
    file_name = Column(String(255), nullable=False)
    file_reference = Column(Text, nullable=False)
    uploaded_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    verification_status = Column(String(16), nullable=False, default=DocumentStatus.PENDING.value, index=True)
    rejection_reason = Column(Text, nullable=True)
    description = Column(Text, nullable=True)

    # Metadata
    file_size = Column(Integer, default=0)
    mime_type = Column(String(64), default="")
    original_name = Column(String(255), default="")

    def __repr__(self):
        return f"<Document {self.id} [{self.verification_status}] supplier={self.supplier_id}>"

    @classmethod
    def from_entity(cls, doc: UploadedDocument) -> "DocumentRecord":
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
            file_size=doc.metadata.file_size,
            mime_type=doc.metadata.mime_type,
            original_name=doc.metadata.original_name,
        )

    def to_entity(self) -> UploadedDocument:
        return UploadedDocument(
            id=self.id,
            supplier_id=self.supplier_id,
            type=DocumentType(self.type),
            file_name=self.file_name,
            file_reference=self.file_reference,
            metadata=DocumentMetadata(
                file_size=self.file_size or 0,
                mime_type=self.mime_type or "",
                original_name=self.original_name or "",
            ),
            uploaded_at=self.uploaded_at,
            verification_status=DocumentStatus(self.verification_status),
            rejection_reason=self.rejection_reason,
            description=self.description,
        )


class LivePhotoRecord(Base):
    """One live inventory photo."""
    __tablename__ = "live_photos"

    id = Column(String(40), primary_key=True)
    product_id = Column(String(64), nullable=False, index=True)
    supplier_id = Column(String(64), nullable=False, index=True)
    image_reference = Column(Text, nullable=False)
    captured_at = Column(DateTime, nullable=False)
    received_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    verification_status = Column(String(16), nullable=False, default=PhotoStatus.PENDING.value, index=True)
    status_reason = Column(Text, nullable=True)

    # GPS (nullable: geolocation may be denied)
    gps_latitude = Column(Float, nullable=True)
    gps_longitude = Column(Float, nullable=True)
    gps_accuracy = Column(Float, nullable=True)

    device_info = Column(JSON, nullable=False)
    ai_analysis = Column(JSON, nullable=True)
    fingerprint = Column(String(32), nullable=True)

    def __repr__(self):
        return f"<LivePhoto {self.id} [{self.verification_status}] product={self.product_id}>"

    @classmethod
    def from_entity(cls, photo: LiveInventoryPhoto) -> "LivePhotoRecord":
        gps = photo.gps_location
        ai = photo.ai_analysis
        return cls(
            id=photo.id,
            product_id=photo.product_id,
            supplier_id=photo.supplier_id,
            image_reference=photo.image_reference,
            captured_at=photo.captured_at,
            received_at=photo.received_at,
            verification_status=photo.verification_status.value,
            status_reason=photo.status_reason,
            gps_latitude=gps.latitude if gps else None,
            gps_longitude=gps.longitude if gps else None,
            gps_accuracy=gps.accuracy if gps else None,
            device_info={
                "user_agent": photo.device_info.user_agent,
                "timestamp": photo.device_info.timestamp,
                "timezone": photo.device_info.timezone,
            },
            ai_analysis=(
                {
                    "is_real_time": ai.is_real_time,
                    "duplicate_score": ai.duplicate_score,
                    "retail_store_detected": ai.retail_store_detected,
                    "confidence": ai.confidence,
                }
                if ai
                else None
            ),
            fingerprint=photo.fingerprint,
        )

    def to_entity(self) -> LiveInventoryPhoto:
        gps = None
        if self.gps_latitude is not None and self.gps_longitude is not None:
            gps = GpsLocation(
                latitude=self.gps_latitude,
                longitude=self.gps_longitude,
                accuracy=self.gps_accuracy or 0.0,
            )
        ai = self.ai_analysis
        return LiveInventoryPhoto(
            id=self.id,
            product_id=self.product_id,
            supplier_id=self.supplier_id,
            image_reference=self.image_reference,
            captured_at=self.captured_at,
            device_info=DeviceInfo(**self.device_info),
            gps_location=gps,
            verification_status=PhotoStatus(self.verification_status),
            status_reason=self.status_reason,
            ai_analysis=LivePhotoAnalysis(**ai) if ai else None,
            received_at=self.received_at,
            fingerprint=self.fingerprint,
        )


class ReviewEventRecord(Base):
    """Append-only log of reviewer decisions."""
    __tablename__ = "review_events"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    item_type = Column(String(16), nullable=False)
    item_id = Column(String(40), nullable=False)
    supplier_id = Column(String(64), nullable=False, index=True)
    previous_status = Column(String(16), nullable=False)
    new_status = Column(String(16), nullable=False)
    reason = Column(Text, nullable=True)
    reviewer = Column(String(64), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (Index("ix_review_events_item", "item_type", "item_id"),)

    def to_entity(self) -> ReviewEvent:
        return ReviewEvent(
            item_type=ReviewItemType(self.item_type),
            item_id=self.item_id,
            supplier_id=self.supplier_id,
            previous_status=self.previous_status,
            new_status=self.new_status,
            reason=self.reason,
            reviewer=self.reviewer,
            created_at=self.created_at,
        )
