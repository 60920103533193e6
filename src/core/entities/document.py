"""
Entity: Uploaded Document

A sourcing document (bill, receipt, license, ID) uploaded by a supplier.
Pure model — no framework or database dependency.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class DocumentType(str, Enum):
    PURCHASE_BILL = "purchase_bill"
    MANDI_RECEIPT = "mandi_receipt"
    HARVEST_LOG = "harvest_log"
    BUSINESS_LICENSE = "business_license"
    IDENTITY_PROOF = "identity_proof"
    FOOD_SAFETY_CERT = "food_safety_cert"


class DocumentStatus(str, Enum):
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"


# Mime type recorded for each document type, independent of the uploaded file.
DOCUMENT_MIME_TYPES: dict[DocumentType, str] = {
    DocumentType.PURCHASE_BILL: "application/pdf",
    DocumentType.MANDI_RECEIPT: "image/jpeg",
    DocumentType.HARVEST_LOG: "application/pdf",
    DocumentType.BUSINESS_LICENSE: "application/pdf",
    DocumentType.IDENTITY_PROOF: "image/jpeg",
    DocumentType.FOOD_SAFETY_CERT: "application/pdf",
}


def mime_type_for(doc_type: DocumentType) -> str:
    return DOCUMENT_MIME_TYPES.get(doc_type, "application/octet-stream")


@dataclass(frozen=True)
class DocumentMetadata:
    """Descriptive, immutable file metadata."""
    file_size: int
    mime_type: str
    original_name: str = ""


@dataclass
class UploadedDocument:
    """Domain entity: a supplier document awaiting or past review."""
    id: str
    supplier_id: str
    type: DocumentType
    file_name: str
    file_reference: str                  # opaque pointer into the binary store
    metadata: DocumentMetadata
    uploaded_at: datetime = field(default_factory=datetime.utcnow)
    verification_status: DocumentStatus = DocumentStatus.PENDING
    rejection_reason: str | None = None  # only while status is REJECTED
    description: str | None = None
