"""
Use Case: Analyze Image

General-purpose analysis of a product, document or live-inventory image
referenced by URL. Nothing is persisted and the duplicate index is only
read, so checking a photo first does not make its later upload a duplicate.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable

from src.core import policy
from src.core.entities.analysis_result import AnalysisContext, ImageAnalysisResult
from src.core.errors import AnalysisFailure, ValidationError
from src.core.interfaces.image_analyzer import IImageAnalyzer

logger = logging.getLogger(__name__)


@dataclass
class ImageAnalysisReport:
    image_id: str
    analysis: ImageAnalysisResult
    created_at: datetime = field(default_factory=datetime.utcnow)


class AnalyzeImageUseCase:
    """
    Use Case: image URL → bytes → verdict with flag tags.

    `fetch` resolves a URL (data:, http(s):, file:) to image bytes and
    raises ValidationError when it cannot.
    """

    def __init__(
        self,
        analyzer: IImageAnalyzer,
        fetch: Callable[[str], bytes],
        stock_photo_threshold: float = policy.STOCK_PHOTO_THRESHOLD,
    ):
        self._analyzer = analyzer
        self._fetch = fetch
        self._stock_threshold = stock_photo_threshold

    def execute(
        self,
        image_url: str,
        context: str,
        supplier_id: str,
        product_id: str | None = None,
    ) -> ImageAnalysisReport:
        if not image_url or not supplier_id:
            raise ValidationError("imageUrl and supplierId are required")
        try:
            ctx = AnalysisContext(context)
        except ValueError:
            raise ValidationError(
                f"Unknown analysis type '{context}'. Expected one of: "
                + ", ".join(c.value for c in AnalysisContext)
            )

        image_bytes = self._fetch(image_url)

        try:
            verdict = self._analyzer.analyze(image_bytes, ctx)
        except AnalysisFailure as e:
            logger.warning(f"Analysis failed for supplier {supplier_id} ({ctx.value}): {e}")
            verdict = policy.fallback_verdict(str(e))

        verdict = policy.assemble_flags(verdict, self._stock_threshold)
        report = ImageAnalysisReport(image_id=f"analysis-{uuid.uuid4().hex[:12]}", analysis=verdict)
        logger.info(
            f"Analyzed {ctx.value} image for supplier {supplier_id}"
            f"{f' / product {product_id}' if product_id else ''}: flags={sorted(verdict.flags)}"
        )
        return report
