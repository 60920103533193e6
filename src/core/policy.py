"""
Flagging policy.

Thresholds belong to the pipeline, not to the analysis engine, so they can
be tuned without touching any model.
"""

from src.core.entities.analysis_result import ImageAnalysisResult

FLAG_THRESHOLD = 0.7
STOCK_PHOTO_THRESHOLD = 0.7

FLAG_DUPLICATE = "duplicate"
FLAG_RETAIL_STORE = "retail_store"
FLAG_STOCK_PHOTO = "stock_photo"
FLAG_ANALYSIS_FAILED = "analysis_failed"

STANDARD_FLAGS = frozenset({FLAG_DUPLICATE, FLAG_RETAIL_STORE, FLAG_STOCK_PHOTO})


def should_flag(verdict: ImageAnalysisResult, threshold: float = FLAG_THRESHOLD) -> bool:
    """A live photo is auto-flagged when it looks like a retail shelf or a duplicate."""
    if FLAG_ANALYSIS_FAILED in verdict.flags:
        return True
    return verdict.retail_store_detected or verdict.duplicate_score > threshold


def assemble_flags(
    verdict: ImageAnalysisResult,
    stock_photo_threshold: float = STOCK_PHOTO_THRESHOLD,
) -> ImageAnalysisResult:
    """
    Rebuild the standard tags from the verdict's scores.

    Engine-specific tags (anything outside STANDARD_FLAGS) are kept as-is.
    """
    flags = {f for f in verdict.flags if f not in STANDARD_FLAGS}
    if verdict.is_duplicate:
        flags.add(FLAG_DUPLICATE)
    if verdict.retail_store_detected:
        flags.add(FLAG_RETAIL_STORE)
    if verdict.stock_photo_likelihood > stock_photo_threshold:
        flags.add(FLAG_STOCK_PHOTO)
    return verdict.with_flags(flags)


def fallback_verdict(reason: str = "") -> ImageAnalysisResult:
    """Verdict used when analysis fails: zero confidence, always flagged."""
    return ImageAnalysisResult(
        confidence=0.0,
        flags=frozenset({FLAG_ANALYSIS_FAILED}),
        engine=f"fallback:{reason}" if reason else "fallback",
    )


def describe_flags(verdict: ImageAnalysisResult, threshold: float = FLAG_THRESHOLD) -> str:
    """Human-readable reason stored on an auto-flagged photo."""
    parts = []
    if FLAG_ANALYSIS_FAILED in verdict.flags:
        parts.append("Automatic analysis unavailable.")
    if verdict.retail_store_detected:
        parts.append("Retail store environment detected.")
    if verdict.duplicate_score > threshold:
        parts.append(f"Possible duplicate image (score {verdict.duplicate_score:.2f}).")
    return " ".join(parts)
