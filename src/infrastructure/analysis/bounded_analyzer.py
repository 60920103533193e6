"""
Bounded Analyzer — puts a deadline on any IImageAnalyzer.

The live-photo upload waits for the verdict, so the wait itself must be
bounded. On timeout or unexpected error the wrapper raises AnalysisFailure
and the pipeline falls back to a flagged verdict.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeout

from src.core.entities.analysis_result import AnalysisContext, ImageAnalysisResult
from src.core.errors import AnalysisFailure
from src.core.interfaces.image_analyzer import IImageAnalyzer

logger = logging.getLogger(__name__)


class BoundedImageAnalyzer(IImageAnalyzer):
    """Runs the wrapped analyzer on a worker thread with a timeout."""

    def __init__(self, inner: IImageAnalyzer, timeout_seconds: float = 15.0, max_workers: int = 4):
        self._inner = inner
        self._timeout = timeout_seconds
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="analysis")

    def analyze(self, image_bytes: bytes, context: AnalysisContext) -> ImageAnalysisResult:
        future = self._executor.submit(self._inner.analyze, image_bytes, context)
        try:
            return future.result(timeout=self._timeout)
        except FuturesTimeout as e:
            future.cancel()
            logger.warning(f"{type(self._inner).__name__} timed out after {self._timeout}s")
            raise AnalysisFailure(f"Analysis timed out after {self._timeout}s") from e
        except AnalysisFailure:
            raise
        except Exception as e:
            logger.exception(f"{type(self._inner).__name__} crashed")
            raise AnalysisFailure(f"Analysis error: {e}") from e

    def register(self, fingerprint: str) -> None:
        self._inner.register(fingerprint)

    def shutdown(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)
