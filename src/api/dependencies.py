"""
Wiring of use cases for the HTTP layer.

`create_app` builds one `Services` and stores it on `app.state.services`;
routes pull it with `Depends(get_services)`.
"""

from dataclasses import dataclass

from fastapi import Request

from src.core.interfaces.verification_store import IVerificationStore
from src.core.use_cases.analyze_image import AnalyzeImageUseCase
from src.core.use_cases.review_submission import ReviewWorkflow
from src.core.use_cases.upload_document import UploadDocumentUseCase
from src.core.use_cases.upload_live_photo import UploadLivePhotoUseCase


@dataclass
class Services:
    store: IVerificationStore
    upload_document: UploadDocumentUseCase
    upload_live_photo: UploadLivePhotoUseCase
    analyze_image: AnalyzeImageUseCase
    reviews: ReviewWorkflow


def get_services(request: Request) -> Services:
    return request.app.state.services
