"""
Routes: /verification — uploads, AI analysis and the review workflow.

Handlers are plain `def`: the use cases block on storage and analysis,
so FastAPI runs them in its worker threadpool.
"""

from fastapi import APIRouter, Depends, status

from src.api.dependencies import Services, get_services
from src.api.schemas.requests import (
    DocumentUploadRequest,
    ImageVerificationRequest,
    LivePhotoRequest,
    VerifyDocumentRequest,
    VerifyLivePhotoRequest,
)
from src.api.schemas.responses import (
    ApiResponse,
    ImageAnalysisReportOut,
    LiveInventoryPhotoOut,
    PendingReviewsOut,
    ReviewEventOut,
    SupplierHistoryOut,
    UploadedDocumentOut,
    VerificationScoreOut,
)
from src.core.use_cases.upload_document import DocumentUploadInput
from src.core.use_cases.upload_live_photo import LivePhotoUploadInput

router = APIRouter(prefix="/verification")


# ── Uploads ──

@router.post(
    "/upload-document",
    status_code=status.HTTP_201_CREATED,
    response_model=ApiResponse[UploadedDocumentOut],
    response_model_exclude_none=True,
)
def upload_document(req: DocumentUploadRequest, services: Services = Depends(get_services)):
    """Store a supplier document as `pending` for manual review."""
    meta = req.metadata
    document = services.upload_document.execute(
        DocumentUploadInput(
            type=req.type,
            supplier_id=req.supplier_id,
            file=req.file,
            original_name=meta.original_name if meta else "",
            mime_type=meta.mime_type if meta else None,
            description=meta.description if meta else None,
        )
    )
    return ApiResponse(
        success=True,
        data=UploadedDocumentOut.from_entity(document),
        message="Document uploaded successfully and queued for verification",
    )


@router.post(
    "/live-photo",
    status_code=status.HTTP_201_CREATED,
    response_model=ApiResponse[LiveInventoryPhotoOut],
    response_model_exclude_none=True,
)
def upload_live_photo(req: LivePhotoRequest, services: Services = Depends(get_services)):
    """
    Analyze a live inventory photo and store it.

    The response is sent only after the AI verdict: the photo comes back
    `flagged` (retail store, duplicate, failed analysis) or `pending`.
    """
    result = services.upload_live_photo.execute(
        LivePhotoUploadInput(
            product_id=req.product_id,
            supplier_id=req.supplier_id,
            image_data=req.image_data,
            device_info=req.device_info.to_entity() if req.device_info else None,
            gps_location=req.gps_location.to_entity() if req.gps_location else None,
        )
    )
    return ApiResponse(
        success=True,
        data=LiveInventoryPhotoOut.from_entity(result.photo),
        message=result.message,
    )


@router.post(
    "/analyze-image",
    response_model=ApiResponse[ImageAnalysisReportOut],
    response_model_exclude_none=True,
)
def analyze_image(req: ImageVerificationRequest, services: Services = Depends(get_services)):
    report = services.analyze_image.execute(
        image_url=req.image_url,
        context=req.type,
        supplier_id=req.supplier_id,
        product_id=req.product_id,
    )
    return ApiResponse(success=True, data=ImageAnalysisReportOut.from_entity(report))


# ── Listings ──

@router.get(
    "/documents/{supplier_id}",
    response_model=ApiResponse[list[UploadedDocumentOut]],
    response_model_exclude_none=True,
)
def list_supplier_documents(supplier_id: str, all: bool = False, services: Services = Depends(get_services)):
    """Documents of one supplier; `all=true` lists every supplier's documents."""
    documents = services.store.list_documents(supplier_id=None if all else supplier_id)
    return ApiResponse(success=True, data=[UploadedDocumentOut.from_entity(d) for d in documents])


@router.get(
    "/live-photos/{supplier_id}",
    response_model=ApiResponse[list[LiveInventoryPhotoOut]],
    response_model_exclude_none=True,
)
def list_supplier_live_photos(supplier_id: str, all: bool = False, services: Services = Depends(get_services)):
    """Live photos of one supplier; `all=true` lists every supplier's photos."""
    photos = services.store.list_photos(supplier_id=None if all else supplier_id)
    return ApiResponse(success=True, data=[LiveInventoryPhotoOut.from_entity(p) for p in photos])


@router.get(
    "/supplier/{supplier_id}",
    response_model=ApiResponse[SupplierHistoryOut],
    response_model_exclude_none=True,
)
def supplier_history(supplier_id: str, services: Services = Depends(get_services)):
    history = services.reviews.supplier_history(supplier_id)
    return ApiResponse(success=True, data=SupplierHistoryOut.from_entity(history))


@router.get("/score/{supplier_id}", response_model=ApiResponse[VerificationScoreOut], response_model_exclude_none=True)
def supplier_score(supplier_id: str, services: Services = Depends(get_services)):
    score = services.reviews.supplier_verification_score(supplier_id)
    return ApiResponse(success=True, data=VerificationScoreOut.from_entity(score))


# ── Review workflow ──

@router.get(
    "/pending-reviews",
    response_model=ApiResponse[PendingReviewsOut],
    response_model_exclude_none=True,
)
def pending_reviews(services: Services = Depends(get_services)):
    return ApiResponse(success=True, data=PendingReviewsOut.from_entity(services.reviews.pending()))


@router.post(
    "/verify-document",
    response_model=ApiResponse[UploadedDocumentOut],
    response_model_exclude_none=True,
)
def verify_document(req: VerifyDocumentRequest, services: Services = Depends(get_services)):
    document = services.reviews.review_document(
        req.document_id,
        req.status,
        reason=req.reason,
        reviewer=req.reviewer,
        expected_status=req.expected_status,
    )
    status_value = document.verification_status.value
    return ApiResponse(
        success=True,
        data=UploadedDocumentOut.from_entity(document),
        message=f"Document {status_value} successfully",
    )


@router.post(
    "/verify-live-photo",
    response_model=ApiResponse[LiveInventoryPhotoOut],
    response_model_exclude_none=True,
)
def verify_live_photo(req: VerifyLivePhotoRequest, services: Services = Depends(get_services)):
    photo = services.reviews.review_live_photo(
        req.photo_id,
        req.status,
        reason=req.reason,
        reviewer=req.reviewer,
        expected_status=req.expected_status,
    )
    return ApiResponse(
        success=True,
        data=LiveInventoryPhotoOut.from_entity(photo),
        message=f"Photo {photo.verification_status.value} successfully",
    )


@router.get(
    "/history/{item_type}/{item_id}",
    response_model=ApiResponse[list[ReviewEventOut]],
    response_model_exclude_none=True,
)
def review_history(item_type: str, item_id: str, services: Services = Depends(get_services)):
    events = services.reviews.history(item_type, item_id)
    return ApiResponse(success=True, data=[ReviewEventOut.from_entity(e) for e in events])
