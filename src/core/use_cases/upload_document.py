"""
Use Case: Upload Document

Validates and admits a sourcing document. Nothing is stored unless every
check passes; the new record is immediately part of the review queue.
"""

import logging
import uuid
from dataclasses import dataclass

from src.core.entities.document import (
    DocumentMetadata,
    DocumentType,
    UploadedDocument,
    mime_type_for,
)
from src.core.errors import ValidationError
from src.core.interfaces.storage_service import IStorageService
from src.core.interfaces.verification_store import IVerificationStore
from src.core.payloads import decode_payload, require_identifier

logger = logging.getLogger(__name__)

DEFAULT_MAX_BYTES = 10 * 1024 * 1024
DEFAULT_ALLOWED_MIME_TYPES = ("application/pdf", "image/jpeg", "image/jpg", "image/png")

_EXTENSIONS = {
    "application/pdf": ".pdf",
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/png": ".png",
}


@dataclass
class DocumentUploadInput:
    type: str
    supplier_id: str
    file: str                        # data URI or bare base64
    original_name: str = ""
    mime_type: str | None = None     # declared by the client
    description: str | None = None


class UploadDocumentUseCase:
    """
    Use Case: file → validation → storage → pending record.

    Dependency Injection: store and storage come from the constructor.
    """

    def __init__(
        self,
        store: IVerificationStore,
        storage: IStorageService,
        max_upload_bytes: int = DEFAULT_MAX_BYTES,
        allowed_mime_types: tuple[str, ...] | list[str] = DEFAULT_ALLOWED_MIME_TYPES,
    ):
        self._store = store
        self._storage = storage
        self._max_bytes = max_upload_bytes
        self._allowed = {m.lower() for m in allowed_mime_types}

    def execute(self, data: DocumentUploadInput) -> UploadedDocument:
        if not data.supplier_id or not data.supplier_id.strip():
            raise ValidationError("supplierId is required")
        supplier_id = require_identifier("supplierId", data.supplier_id)
        try:
            doc_type = DocumentType(data.type)
        except ValueError:
            allowed = ", ".join(t.value for t in DocumentType)
            raise ValidationError(f"Unknown document type '{data.type}'. Expected one of: {allowed}")

        uri_mime, raw = decode_payload(data.file)

        if len(raw) > self._max_bytes:
            limit_mb = self._max_bytes // (1024 * 1024)
            raise ValidationError(f"File size must be less than {limit_mb}MB")

        declared = (data.mime_type or uri_mime or "").lower()
        if declared not in self._allowed:
            raise ValidationError("Only PDF, JPG, and PNG files are allowed")

        document_id = f"doc-{uuid.uuid4().hex[:12]}"
        key = f"documents/{supplier_id}/{document_id}{_EXTENSIONS.get(declared, '')}"
        ref = self._storage.upload(raw, key, content_type=declared)

        document = UploadedDocument(
            id=document_id,
            supplier_id=supplier_id,
            type=doc_type,
            file_name=data.original_name or f"document_{document_id}",
            file_reference=self._storage.reference_for(ref.key),
            metadata=DocumentMetadata(
                file_size=ref.size_bytes,
                mime_type=mime_type_for(doc_type),
                original_name=data.original_name,
            ),
            description=data.description,
        )
        stored = self._store.add_document(document)
        logger.info(
            f"Document {stored.id} ({doc_type.value}, {ref.size_bytes} bytes) "
            f"uploaded by supplier {stored.supplier_id}, queued for review"
        )
        return stored
