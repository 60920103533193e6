"""
Contract: Verification Store

Single source of truth for every uploaded document and live photo and
their verification status. Implementations can be SQL, key-value or
in-memory; the pipeline only sees this port.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from src.core.entities.document import DocumentStatus, UploadedDocument
from src.core.entities.live_photo import LiveInventoryPhoto, PhotoStatus
from src.core.entities.review_event import ReviewEvent, ReviewItemType


@dataclass
class PendingReviews:
    """Review queue, partitioned. Flagged photos never appear in live_photos."""
    documents: list[UploadedDocument] = field(default_factory=list)
    live_photos: list[LiveInventoryPhoto] = field(default_factory=list)
    flagged_photos: list[LiveInventoryPhoto] = field(default_factory=list)


@dataclass
class SupplierHistory:
    """Everything a supplier ever uploaded, regardless of status."""
    supplier_id: str
    documents: list[UploadedDocument] = field(default_factory=list)
    live_photos: list[LiveInventoryPhoto] = field(default_factory=list)


class IVerificationStore(ABC):
    """
    Port: Verification Store

    `update_*_status` raise NotFoundError for unknown ids and are
    idempotent: repeating the same update leaves the record unchanged and
    logs nothing. Each one is a single transaction: the status is written
    only if it still holds the value read, and the review log entry is
    committed with it. A lost race or an `expected_status` mismatch raises
    ConflictError.
    """

    # ── Documents ──

    @abstractmethod
    def add_document(self, document: UploadedDocument) -> UploadedDocument:
        ...

    @abstractmethod
    def get_document(self, document_id: str) -> UploadedDocument | None:
        ...

    @abstractmethod
    def list_documents(
        self,
        supplier_id: str | None = None,
        status: DocumentStatus | None = None,
    ) -> list[UploadedDocument]:
        ...

    @abstractmethod
    def update_document_status(
        self,
        document_id: str,
        status: DocumentStatus,
        reason: str | None = None,
        *,
        expected_status: str | None = None,
        reviewer: str | None = None,
    ) -> UploadedDocument:
        """
        Set the status of one document and log the change.

        The rejection reason is stored only for REJECTED; any other
        status clears it.
        """
        ...

    # ── Live photos ──

    @abstractmethod
    def add_photo(self, photo: LiveInventoryPhoto) -> LiveInventoryPhoto:
        ...

    @abstractmethod
    def get_photo(self, photo_id: str) -> LiveInventoryPhoto | None:
        ...

    @abstractmethod
    def list_photos(
        self,
        supplier_id: str | None = None,
        status: PhotoStatus | None = None,
    ) -> list[LiveInventoryPhoto]:
        ...

    @abstractmethod
    def update_photo_status(
        self,
        photo_id: str,
        status: PhotoStatus,
        reason: str | None = None,
        *,
        expected_status: str | None = None,
        reviewer: str | None = None,
    ) -> LiveInventoryPhoto:
        """Set the status of one photo and log the change. The AI analysis is never touched."""
        ...

    @abstractmethod
    def list_fingerprints(self) -> list[str]:
        """Duplicate-index keys of every stored photo that has one."""
        ...

    # ── Review log ──

    @abstractmethod
    def list_reviews(self, item_type: ReviewItemType, item_id: str) -> list[ReviewEvent]:
        ...

    # ── Derived views ──

    def list_pending(self) -> PendingReviews:
        return PendingReviews(
            documents=self.list_documents(status=DocumentStatus.PENDING),
            live_photos=self.list_photos(status=PhotoStatus.PENDING),
            flagged_photos=self.list_photos(status=PhotoStatus.FLAGGED),
        )

    def get_by_supplier(self, supplier_id: str) -> SupplierHistory:
        return SupplierHistory(
            supplier_id=supplier_id,
            documents=self.list_documents(supplier_id=supplier_id),
            live_photos=self.list_photos(supplier_id=supplier_id),
        )
