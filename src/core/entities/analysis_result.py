"""
Entity: Image Analysis Result

Verdict of the AI analysis engine for one image. Transient: only the
live-photo subset (LivePhotoAnalysis) is persisted.
"""

from dataclasses import dataclass, field, replace
from enum import Enum


class AnalysisContext(str, Enum):
    PRODUCT = "product"
    DOCUMENT = "document"
    LIVE_INVENTORY = "live_inventory"


@dataclass(frozen=True)
class ImageAnalysisResult:
    """Scores describing duplicate / retail / stock-photo likelihood."""
    is_duplicate: bool = False
    duplicate_score: float = 0.0          # 0.0 (unique) to 1.0 (seen before)
    retail_store_detected: bool = False
    stock_photo_likelihood: float = 0.0   # 0.0 - 1.0
    inappropriate_content: bool = False
    confidence: float = 0.0               # 0.0 - 1.0
    flags: frozenset[str] = field(default_factory=frozenset)
    engine: str = ""
    fingerprint: str | None = None        # perceptual hash, when the engine computes one

    def with_flags(self, flags: set[str] | frozenset[str]) -> "ImageAnalysisResult":
        return replace(self, flags=frozenset(flags))
