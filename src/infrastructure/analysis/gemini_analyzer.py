"""
Gemini Vision Analyzer — multimodal authenticity assessment.

Sends the image itself to Gemini and asks for a structured JSON verdict:
retail environment, stock/catalogue origin, re-photographed screens or
prints, and an overall confidence.

Uses the `google-genai` SDK (not the deprecated `google-generativeai`).
"""
import json
import logging
import time

import cv2
import numpy as np
from google import genai
from google.genai import types

from src.core.entities.analysis_result import AnalysisContext, ImageAnalysisResult
from src.core.errors import AnalysisFailure
from src.core.interfaces.image_analyzer import IImageAnalyzer

logger = logging.getLogger(__name__)


SYSTEM_PROMPT = """You are an authenticity reviewer for a marketplace where farmers, wholesalers and home producers sell to street-food vendors. Suppliers upload photos to prove they physically hold the stock they list.

IMPORTANT: Respond ONLY with a JSON object, no markdown, no backticks, no extra text.

Decide for the attached image:
1. Is it taken inside a retail store (supermarket shelves, price tags, branded displays)?
2. Is it a stock / catalogue photo (studio lighting, seamless background, watermarks of stock sites)?
3. Is it a photo of a screen or of a printed photo (moire, bezels, glare, paper edges) — i.e. a likely duplicate of an existing image?
4. Does it contain inappropriate content?

Output JSON format:
{
    "duplicate_score": 0.0 to 1.0,
    "retail_store_detected": true | false,
    "stock_photo_likelihood": 0.0 to 1.0,
    "inappropriate_content": true | false,
    "confidence": 0.0 to 1.0,
    "observations": ["short notes"]
}
"""

CONTEXT_HINTS = {
    AnalysisContext.PRODUCT: "The image is a product listing photo.",
    AnalysisContext.DOCUMENT: "The image is a scanned or photographed sourcing document (bill, receipt, license).",
    AnalysisContext.LIVE_INVENTORY: (
        "The image is a live inventory photo taken in the app; a black band at the bottom "
        "carries the capture time, GPS and product name and is expected."
    ),
}


def _clamp(value, lo: float = 0.0, hi: float = 1.0) -> float:
    return max(lo, min(float(value), hi))


class GeminiImageAnalyzer(IImageAnalyzer):
    """Gemini-powered analyzer. Raises AnalysisFailure on any API or parse error."""

    ENGINE_PREFIX = "gemini"

    def __init__(self, api_key: str, model_name: str = "gemini-2.0-flash", duplicate_threshold: float = 0.8):
        self.model_name = model_name
        self.client = genai.Client(api_key=api_key)
        self._duplicate_threshold = duplicate_threshold

    def analyze(self, image_bytes: bytes, context: AnalysisContext) -> ImageAnalysisResult:
        t0 = time.perf_counter()
        image_bytes, mime_type = self._prepare(image_bytes)
        prompt = SYSTEM_PROMPT + "\n\n" + CONTEXT_HINTS.get(context, "")

        raw = ""
        try:
            response = self.client.models.generate_content(
                model=self.model_name,
                contents=[
                    types.Part.from_bytes(data=image_bytes, mime_type=mime_type),
                    prompt,
                ],
                config={
                    "temperature": 0.1,
                    "max_output_tokens": 512,
                },
            )
            raw = self._strip_fences(response.text or "")
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise AnalysisFailure(f"JSON parse error: {e}. Raw: {raw[:200]}") from e
        except Exception as e:
            raise AnalysisFailure(f"LLM error: {e}") from e
        if not isinstance(data, dict):
            raise AnalysisFailure(f"Unexpected LLM output: {raw[:200]}")

        latency = (time.perf_counter() - t0) * 1000
        logger.info(f"Gemini verdict for {context.value} in {latency:.0f}ms: {data}")

        duplicate_score = _clamp(data.get("duplicate_score", 0))
        return ImageAnalysisResult(
            is_duplicate=duplicate_score >= self._duplicate_threshold,
            duplicate_score=round(duplicate_score, 3),
            retail_store_detected=bool(data.get("retail_store_detected", False)),
            stock_photo_likelihood=round(_clamp(data.get("stock_photo_likelihood", 0)), 3),
            inappropriate_content=bool(data.get("inappropriate_content", False)),
            confidence=round(_clamp(data.get("confidence", 0)), 3),
            engine=f"{self.ENGINE_PREFIX}:{self.model_name}",
        )

    @staticmethod
    def _strip_fences(raw: str) -> str:
        raw = raw.strip()
        # Handle markdown code blocks
        if raw.startswith("```"):
            lines = raw.split("\n")
            raw = "\n".join(lines[1:])
            if raw.rstrip().endswith("```"):
                raw = raw.rstrip()[:-3]
            raw = raw.strip()
        return raw

    @staticmethod
    def _prepare(image_bytes: bytes) -> tuple[bytes, str]:
        if image_bytes[:8] == b"\x89PNG\r\n\x1a\n":
            return image_bytes, "image/png"
        if image_bytes[:3] == b"\xff\xd8\xff":
            return image_bytes, "image/jpeg"
        # Anything else is re-encoded so the API always gets a supported format
        img = cv2.imdecode(np.frombuffer(image_bytes, dtype=np.uint8), cv2.IMREAD_COLOR)
        if img is None:
            raise AnalysisFailure("Could not decode image")
        ok, buf = cv2.imencode(".jpg", img, [cv2.IMWRITE_JPEG_QUALITY, 90])
        if not ok:
            raise AnalysisFailure("Could not re-encode image")
        return buf.tobytes(), "image/jpeg"
