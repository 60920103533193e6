"""
Use Case: Review Workflow

Human-in-the-loop adjudication of pending and flagged items.

Documents:   pending → {verified, rejected}
Live photos: pending → {verified, flagged, rejected}, flagged → {verified, rejected}

Re-review of a decided item is allowed (last write wins); every change is
appended to the review log in the same transaction. A reviewer may pass
`expected_status` to refuse the review if someone else changed the item
first; two reviews racing on the same item never both succeed.
"""

import logging
import math
from dataclasses import dataclass

from src.core.entities.document import DocumentStatus, UploadedDocument
from src.core.entities.live_photo import LiveInventoryPhoto, PhotoStatus
from src.core.entities.review_event import ReviewEvent, ReviewItemType
from src.core.errors import NotFoundError, ValidationError
from src.core.interfaces.verification_store import (
    IVerificationStore,
    PendingReviews,
    SupplierHistory,
)

logger = logging.getLogger(__name__)

DOCUMENT_DECISIONS = (DocumentStatus.VERIFIED, DocumentStatus.REJECTED)
PHOTO_DECISIONS = (PhotoStatus.VERIFIED, PhotoStatus.FLAGGED, PhotoStatus.REJECTED)
PHOTO_DECISIONS_NEEDING_REASON = (PhotoStatus.FLAGGED, PhotoStatus.REJECTED)

LEVEL_VERIFIED_MIN = 80
LEVEL_PARTIAL_MIN = 50


@dataclass(frozen=True)
class VerificationScore:
    supplier_id: str
    score: int                 # 0 - 100
    level: str                 # "verified", "partial", "pending"
    verified_documents: int
    total_documents: int
    verified_photos: int
    total_photos: int


def verification_level(score: int) -> str:
    if score >= LEVEL_VERIFIED_MIN:
        return "verified"
    if score >= LEVEL_PARTIAL_MIN:
        return "partial"
    return "pending"


def _clean_reason(reason: str | None) -> str | None:
    if reason is None:
        return None
    return reason.strip() or None


class ReviewWorkflow:
    """Reviewer actions and the read models behind the review dashboards."""

    def __init__(self, store: IVerificationStore):
        self._store = store

    # ── Queues ──

    def pending(self) -> PendingReviews:
        return self._store.list_pending()

    def supplier_history(self, supplier_id: str) -> SupplierHistory:
        return self._store.get_by_supplier(supplier_id)

    def history(self, item_type: str, item_id: str) -> list[ReviewEvent]:
        try:
            kind = ReviewItemType(item_type)
        except ValueError:
            raise ValidationError(f"Unknown item type '{item_type}'. Expected document or live_photo")
        exists = (
            self._store.get_document(item_id)
            if kind == ReviewItemType.DOCUMENT
            else self._store.get_photo(item_id)
        )
        if exists is None:
            raise NotFoundError(f"{kind.value.replace('_', ' ').capitalize()} not found")
        return self._store.list_reviews(kind, item_id)

    # ── Decisions ──

    def review_document(
        self,
        document_id: str,
        decision: str,
        reason: str | None = None,
        reviewer: str | None = None,
        expected_status: str | None = None,
    ) -> UploadedDocument:
        try:
            status = DocumentStatus(decision)
        except ValueError:
            status = None
        if status not in DOCUMENT_DECISIONS:
            raise ValidationError("Document decision must be 'verified' or 'rejected'")

        reason = _clean_reason(reason)
        if status == DocumentStatus.REJECTED and not reason:
            raise ValidationError("A reason is required to reject a document")
        if status == DocumentStatus.VERIFIED:
            reason = None

        updated = self._store.update_document_status(
            document_id, status, reason, expected_status=expected_status, reviewer=reviewer,
        )
        logger.info(f"Document {document_id} → {status.value}{f' by {reviewer}' if reviewer else ''}")
        return updated

    def review_live_photo(
        self,
        photo_id: str,
        decision: str,
        reason: str | None = None,
        reviewer: str | None = None,
        expected_status: str | None = None,
    ) -> LiveInventoryPhoto:
        try:
            status = PhotoStatus(decision)
        except ValueError:
            status = None
        if status not in PHOTO_DECISIONS:
            raise ValidationError("Photo decision must be 'verified', 'flagged' or 'rejected'")

        reason = _clean_reason(reason)
        if status in PHOTO_DECISIONS_NEEDING_REASON and not reason:
            raise ValidationError(f"A reason is required to mark a photo as {status.value}")
        if status == PhotoStatus.VERIFIED:
            reason = None

        updated = self._store.update_photo_status(
            photo_id, status, reason, expected_status=expected_status, reviewer=reviewer,
        )
        logger.info(f"Live photo {photo_id} → {status.value}{f' by {reviewer}' if reviewer else ''}")
        return updated

    # ── Aggregates ──

    def supplier_verification_score(self, supplier_id: str) -> VerificationScore:
        """
        Share of a supplier's items that are verified, as a rounded percentage.

        Display only; 0 when the supplier has uploaded nothing.
        """
        history = self._store.get_by_supplier(supplier_id)
        total_docs = len(history.documents)
        total_photos = len(history.live_photos)
        verified_docs = sum(1 for d in history.documents if d.verification_status == DocumentStatus.VERIFIED)
        verified_photos = sum(1 for p in history.live_photos if p.verification_status == PhotoStatus.VERIFIED)

        denominator = total_docs + total_photos
        if denominator == 0:
            score = 0
        else:
            score = int(math.floor((verified_docs + verified_photos) / denominator * 100 + 0.5))

        return VerificationScore(
            supplier_id=supplier_id,
            score=score,
            level=verification_level(score),
            verified_documents=verified_docs,
            total_documents=total_docs,
            verified_photos=verified_photos,
            total_photos=total_photos,
        )

