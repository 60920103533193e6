"""
FastAPI Application — Supplier Verification Pipeline.

Architecture:
  - PostgreSQL (prod) / SQLite (dev) for verification records
  - Local filesystem store for uploaded documents and live photos
  - OpenCV heuristics or Gemini Vision for live photo analysis
  - Human review workflow with an append-only review log

Run with:  uvicorn src.api.main:app --reload
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Callable

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from src.api.dependencies import Services
from src.api.routes.verification import router as verification_router
from src.config.settings import Settings, get_settings
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
from src.core.errors import ConflictError, NotFoundError, ValidationError
from src.core.interfaces.image_analyzer import IImageAnalyzer
from src.core.interfaces.storage_service import IStorageService
from src.core.interfaces.verification_store import IVerificationStore
from src.core.use_cases.analyze_image import AnalyzeImageUseCase
from src.core.use_cases.review_submission import ReviewWorkflow
from src.core.use_cases.upload_document import UploadDocumentUseCase
from src.core.use_cases.upload_live_photo import UploadLivePhotoUseCase
from src.infrastructure.analysis.bounded_analyzer import BoundedImageAnalyzer
from src.infrastructure.analysis.opencv_analyzer import OpenCVImageAnalyzer
from src.infrastructure.db.database import create_db_engine, create_session_factory, init_db
from src.infrastructure.db.repository import SqlVerificationStore
from src.infrastructure.storage.image_fetcher import ImageFetcher
from src.infrastructure.storage.local_storage import LocalStorageService

logger = logging.getLogger(__name__)

VERSION = "1.0.0"


def build_analyzer(settings: Settings) -> IImageAnalyzer:
    """Analysis backend from settings, always wrapped in a deadline."""
    if settings.analysis_backend == "gemini" and settings.gemini_api_key:
        from src.infrastructure.analysis.gemini_analyzer import GeminiImageAnalyzer
        inner = GeminiImageAnalyzer(api_key=settings.gemini_api_key, model_name=settings.gemini_model)
    else:
        if settings.analysis_backend == "gemini":
            logger.warning("analysis_backend=gemini but GEMINI_API_KEY is not set, using OpenCV heuristics")
        inner = OpenCVImageAnalyzer(
            duplicate_max_distance=settings.duplicate_max_distance,
            retail_min_shelf_rows=settings.retail_min_shelf_rows,
        )
    return BoundedImageAnalyzer(inner, timeout_seconds=settings.analysis_timeout_seconds)


def create_app(
    settings: Settings | None = None,
    store: IVerificationStore | None = None,
    storage: IStorageService | None = None,
    analyzer: IImageAnalyzer | None = None,
    fetch: Callable[[str], bytes] | None = None,
) -> FastAPI:
    """
    Application factory.

    Every collaborator can be injected (tests pass an in-memory store and a
    fake analyzer); anything not given is built from settings.
    """
    settings = settings or get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    engine = None
    if store is None:
        engine = create_db_engine(settings.database_url)
        store = SqlVerificationStore(create_session_factory(engine))
    if storage is None:
        storage = LocalStorageService(settings.storage_root)
    if analyzer is None:
        analyzer = build_analyzer(settings)
    if fetch is None:
        fetch = ImageFetcher(
            storage=storage,
            max_bytes=settings.max_upload_bytes,
        )

    services = Services(
        store=store,
        upload_document=UploadDocumentUseCase(
            store=store,
            storage=storage,
            max_upload_bytes=settings.max_upload_bytes,
            allowed_mime_types=settings.allowed_document_mime_types,
        ),
        upload_live_photo=UploadLivePhotoUseCase(
            store=store,
            storage=storage,
            analyzer=analyzer,
            flag_threshold=settings.flag_threshold,
            stock_photo_threshold=settings.stock_photo_threshold,
            max_upload_bytes=settings.max_upload_bytes,
            max_capture_age_seconds=settings.max_capture_age_seconds,
        ),
        analyze_image=AnalyzeImageUseCase(
            analyzer=analyzer,
            fetch=fetch,
            stock_photo_threshold=settings.stock_photo_threshold,
        ),
        reviews=ReviewWorkflow(store),
    )

    # ── Startup / shutdown ──
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if engine is not None:
            init_db(engine)
        if settings.load_demo_data:
            _load_demo_records(store)
        services.upload_live_photo.rebuild_duplicate_index()
        logger.info(f"Supplier Verification Pipeline started (analysis: {type(analyzer).__name__})")
        yield
        if isinstance(analyzer, BoundedImageAnalyzer):
            analyzer.shutdown()
        if engine is not None:
            engine.dispose()

    app = FastAPI(
        title="Supplier Verification Pipeline",
        description="Document uploads, AI-checked live inventory photos and manual review for supplier authenticity.",
        version=VERSION,
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.services = services
    app.state.settings = settings

    _register_error_handlers(app)
    app.include_router(verification_router, prefix="/api", tags=["Verification"])

    # ── Health ──
    @app.get("/health")
    async def health():
        return {
            "status": "ok",
            "version": VERSION,
            "database": "PostgreSQL" if "postgres" in settings.database_url else "SQLite",
            "analysis_backend": settings.analysis_backend,
        }

    return app


# ── Error envelope ──
def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


def _register_error_handlers(app: FastAPI) -> None:

    @app.exception_handler(ValidationError)
    async def validation_error(request: Request, exc: ValidationError):
        return _error(400, str(exc))

    @app.exception_handler(RequestValidationError)
    async def request_validation_error(request: Request, exc: RequestValidationError):
        problems = []
        for err in exc.errors():
            loc = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
            problems.append(f"{loc}: {err.get('msg')}" if loc else err.get("msg", "invalid"))
        return _error(400, "Invalid request: " + "; ".join(problems))

    @app.exception_handler(NotFoundError)
    async def not_found(request: Request, exc: NotFoundError):
        return _error(404, str(exc))

    @app.exception_handler(ConflictError)
    async def conflict(request: Request, exc: ConflictError):
        return _error(409, str(exc))

    @app.exception_handler(Exception)
    async def unexpected(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return _error(500, "Internal server error")


# ── Demo Records ──
def _load_demo_records(store: IVerificationStore) -> None:
    """Seed demo documents and photos into an empty store."""
    if store.list_documents() or store.list_photos():
        logger.info("Store already has records, skipping demo load")
        return

    documents = [
        UploadedDocument(
            id="doc1",
            supplier_id="sup1",
            type=DocumentType.PURCHASE_BILL,
            file_name="wheat_purchase_bill.pdf",
            file_reference="https://example.com/bills/wheat_purchase_bill.pdf",
            uploaded_at=datetime(2024, 1, 20, 10, 30),
            verification_status=DocumentStatus.PENDING,
            metadata=DocumentMetadata(
                file_size=245760,
                mime_type="application/pdf",
                original_name="Wheat Purchase from Local Mandi.pdf",
            ),
        ),
        UploadedDocument(
            id="doc2",
            supplier_id="sup2",
            type=DocumentType.MANDI_RECEIPT,
            file_name="tomato_mandi_receipt.jpg",
            file_reference="https://example.com/receipts/tomato_mandi_receipt.jpg",
            uploaded_at=datetime(2024, 1, 22, 14, 15),
            verification_status=DocumentStatus.VERIFIED,
            metadata=DocumentMetadata(
                file_size=1024000,
                mime_type="image/jpeg",
                original_name="Tomato Mandi Receipt Jan 2024.jpg",
            ),
        ),
    ]
    photos = [
        LiveInventoryPhoto(
            id="photo1",
            product_id="prod1",
            supplier_id="sup1",
            image_reference="https://example.com/live/tomatoes_warehouse_20240120.jpg",
            captured_at=datetime(2024, 1, 20, 16, 45),
            received_at=datetime(2024, 1, 20, 16, 45),
            gps_location=GpsLocation(latitude=30.7046, longitude=76.7179, accuracy=10),
            device_info=DeviceInfo(
                user_agent="Mozilla/5.0 (Linux; Android 10; SM-G975F)",
                timestamp="2024-01-20T16:45:00Z",
                timezone="Asia/Kolkata",
            ),
            verification_status=PhotoStatus.VERIFIED,
            ai_analysis=LivePhotoAnalysis(
                is_real_time=True, duplicate_score=0.1, retail_store_detected=False, confidence=0.95,
            ),
        ),
        LiveInventoryPhoto(
            id="photo2",
            product_id="prod3",
            supplier_id="sup3",
            image_reference="https://example.com/live/spices_kitchen_20240122.jpg",
            captured_at=datetime(2024, 1, 22, 11, 30),
            received_at=datetime(2024, 1, 22, 11, 30),
            gps_location=GpsLocation(latitude=13.0827, longitude=80.2707, accuracy=15),
            device_info=DeviceInfo(
                user_agent="Mozilla/5.0 (iPhone; CPU iPhone OS 15_0)",
                timestamp="2024-01-22T11:30:00Z",
                timezone="Asia/Kolkata",
            ),
            verification_status=PhotoStatus.PENDING,
            ai_analysis=LivePhotoAnalysis(
                is_real_time=True, duplicate_score=0.05, retail_store_detected=False, confidence=0.88,
            ),
        ),
    ]

    for doc in documents:
        store.add_document(doc)
    for photo in photos:
        store.add_photo(photo)
    logger.info(f"Loaded {len(documents)} demo documents and {len(photos)} demo photos")


app = create_app()


if __name__ == "__main__":
    import uvicorn

    _settings = get_settings()
    uvicorn.run("src.api.main:app", host=_settings.api_host, port=_settings.api_port, reload=_settings.debug)
