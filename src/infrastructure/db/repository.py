"""
Verification Repository — SQLAlchemy implementation of IVerificationStore.

Handles:
  - Creating document / live photo records
  - Listing by supplier and/or status
  - Status updates: compare-and-set plus review log entry, one transaction
  - Review log
"""

import logging
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.orm import Session, sessionmaker

from src.core.entities.document import DocumentStatus, UploadedDocument
from src.core.entities.live_photo import LiveInventoryPhoto, PhotoStatus
from src.core.entities.review_event import ReviewEvent, ReviewItemType
from src.core.errors import ConflictError, NotFoundError
from src.core.interfaces.verification_store import IVerificationStore
from src.infrastructure.db.database import session_scope
from src.infrastructure.db.models import DocumentRecord, LivePhotoRecord, ReviewEventRecord

logger = logging.getLogger(__name__)


class SqlVerificationStore(IVerificationStore):
    """Repository for documents, live photos and their review log."""

    def __init__(self, session_factory: sessionmaker):
        self._factory = session_factory

    # ── Documents ──

    def add_document(self, document: UploadedDocument) -> UploadedDocument:
        with session_scope(self._factory) as db:
            record = DocumentRecord.from_entity(document)
            db.add(record)
            db.flush()
            logger.debug(f"Saved document {record.id} [{record.verification_status}]")
            return record.to_entity()

    def get_document(self, document_id: str) -> UploadedDocument | None:
        with session_scope(self._factory) as db:
            record = db.get(DocumentRecord, document_id)
            return record.to_entity() if record else None

    def list_documents(
        self,
        supplier_id: str | None = None,
        status: DocumentStatus | None = None,
    ) -> list[UploadedDocument]:
        with session_scope(self._factory) as db:
            query = select(DocumentRecord)
            if supplier_id is not None:
                query = query.where(DocumentRecord.supplier_id == supplier_id)
            if status is not None:
                query = query.where(DocumentRecord.verification_status == status.value)
            query = query.order_by(DocumentRecord.uploaded_at, DocumentRecord.id)
            return [r.to_entity() for r in db.scalars(query).all()]

    def update_document_status(
        self,
        document_id: str,
        status: DocumentStatus,
        reason: str | None = None,
        *,
        expected_status: str | None = None,
        reviewer: str | None = None,
    ) -> UploadedDocument:
        reason = reason if status == DocumentStatus.REJECTED else None
        with session_scope(self._factory) as db:
            record = self._change_status(
                db, DocumentRecord, ReviewItemType.DOCUMENT, document_id,
                new_status=status.value,
                reason_column="rejection_reason",
                reason=reason,
                expected_status=expected_status,
                reviewer=reviewer,
            )
            return record.to_entity()

    # ── Live photos ──

    def add_photo(self, photo: LiveInventoryPhoto) -> LiveInventoryPhoto:
        with session_scope(self._factory) as db:
            record = LivePhotoRecord.from_entity(photo)
            db.add(record)
            db.flush()
            logger.debug(f"Saved live photo {record.id} [{record.verification_status}]")
            return record.to_entity()

    def get_photo(self, photo_id: str) -> LiveInventoryPhoto | None:
        with session_scope(self._factory) as db:
            record = db.get(LivePhotoRecord, photo_id)
            return record.to_entity() if record else None

    def list_photos(
        self,
        supplier_id: str | None = None,
        status: PhotoStatus | None = None,
    ) -> list[LiveInventoryPhoto]:
        with session_scope(self._factory) as db:
            query = select(LivePhotoRecord)
            if supplier_id is not None:
                query = query.where(LivePhotoRecord.supplier_id == supplier_id)
            if status is not None:
                query = query.where(LivePhotoRecord.verification_status == status.value)
            query = query.order_by(LivePhotoRecord.received_at, LivePhotoRecord.id)
            return [r.to_entity() for r in db.scalars(query).all()]

    def update_photo_status(
        self,
        photo_id: str,
        status: PhotoStatus,
        reason: str | None = None,
        *,
        expected_status: str | None = None,
        reviewer: str | None = None,
    ) -> LiveInventoryPhoto:
        reason = reason if status in (PhotoStatus.FLAGGED, PhotoStatus.REJECTED) else None
        with session_scope(self._factory) as db:
            record = self._change_status(
                db, LivePhotoRecord, ReviewItemType.LIVE_PHOTO, photo_id,
                new_status=status.value,
                reason_column="status_reason",
                reason=reason,
                expected_status=expected_status,
                reviewer=reviewer,
            )
            return record.to_entity()

    def list_fingerprints(self) -> list[str]:
        with session_scope(self._factory) as db:
            query = select(LivePhotoRecord.fingerprint).where(LivePhotoRecord.fingerprint.is_not(None))
            return list(db.scalars(query).all())

    # ── Review log ──

    def list_reviews(self, item_type: ReviewItemType, item_id: str) -> list[ReviewEvent]:
        with session_scope(self._factory) as db:
            query = (
                select(ReviewEventRecord)
                .where(ReviewEventRecord.item_type == item_type.value)
                .where(ReviewEventRecord.item_id == item_id)
                .order_by(ReviewEventRecord.created_at)
            )
            return [r.to_entity() for r in db.scalars(query).all()]

    # ── Stats ──

    def count(self) -> dict:
        with session_scope(self._factory) as db:
            return {
                "documents": db.query(DocumentRecord).count(),
                "live_photos": db.query(LivePhotoRecord).count(),
            }

    # ── Internal ──

    @staticmethod
    def _change_status(
        db: Session,
        model: type[DocumentRecord] | type[LivePhotoRecord],
        item_type: ReviewItemType,
        item_id: str,
        new_status: str,
        reason_column: str,
        reason: str | None,
        expected_status: str | None,
        reviewer: str | None,
    ):
        """
        Compare-and-set on verification_status plus its review log entry,
        inside the caller's transaction.
        """
        label = "Document" if item_type == ReviewItemType.DOCUMENT else "Photo"
        record = db.get(model, item_id)
        if record is None:
            raise NotFoundError(f"{label} not found")

        previous = record.verification_status
        if expected_status is not None and previous != expected_status:
            raise ConflictError(f"Item status is '{previous}', expected '{expected_status}'")
        if previous == new_status and getattr(record, reason_column) == reason:
            return record

        result = db.execute(
            update(model)
            .where(model.id == item_id, model.verification_status == previous)
            .values({"verification_status": new_status, reason_column: reason})
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise ConflictError(f"{label} was reviewed by someone else, reload and retry")

        db.add(
            ReviewEventRecord(
                item_type=item_type.value,
                item_id=item_id,
                supplier_id=record.supplier_id,
                previous_status=previous,
                new_status=new_status,
                reason=reason,
                reviewer=reviewer,
                created_at=datetime.utcnow(),
            )
        )
        db.flush()
        db.refresh(record)
        return record
