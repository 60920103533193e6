"""
Contract: Image Analyzer

Scores a single image for authenticity signals (duplicate, retail shelf,
stock photo). Any backend (classic CV, vision LLM, hosted model) must
respect this contract; the pipeline depends on nothing else.
"""

from abc import ABC, abstractmethod

from src.core.entities.analysis_result import AnalysisContext, ImageAnalysisResult


class IImageAnalyzer(ABC):
    """
    Port: Image Analyzer

    Produces a verdict for one image. Implementations raise
    AnalysisFailure when no verdict can be produced; they never
    return a partial result.
    """

    @abstractmethod
    def analyze(self, image_bytes: bytes, context: AnalysisContext) -> ImageAnalysisResult:
        """
        Analyze one image.

        Args:
            image_bytes: Encoded image (JPEG/PNG).
            context: Where the image comes from (product, document, live_inventory).

        Returns:
            ImageAnalysisResult with scores in [0, 1].
        """
        ...

    def register(self, fingerprint: str) -> None:
        """
        Add a stored image to the duplicate index.

        `analyze` only compares against the index; callers register an
        image once it is persisted. No-op for engines without an index.
        """
