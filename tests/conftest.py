from __future__ import annotations

from datetime import datetime, timezone

import cv2
import numpy as np
import pytest

from src.core.entities.analysis_result import AnalysisContext, ImageAnalysisResult
from src.core.entities.live_photo import DeviceInfo
from src.core.errors import AnalysisFailure
from src.core.payloads import encode_data_uri
from src.infrastructure.db.database import create_db_engine, create_session_factory, init_db
from src.infrastructure.db.repository import SqlVerificationStore
from src.infrastructure.storage.local_storage import LocalStorageService


class FakeAnalyzer:
    """Returns a fixed verdict (or raises) and records every call."""

    def __init__(self, verdict: ImageAnalysisResult | None = None, error: Exception | None = None):
        self.verdict = verdict or ImageAnalysisResult(duplicate_score=0.1, confidence=0.9)
        self.error = error
        self.calls: list[AnalysisContext] = []
        self.registered: list[str] = []

    def analyze(self, image_bytes: bytes, context: AnalysisContext) -> ImageAnalysisResult:
        self.calls.append(context)
        if self.error is not None:
            raise self.error
        return self.verdict

    def register(self, fingerprint: str) -> None:
        self.registered.append(fingerprint)


@pytest.fixture
def engine():
    eng = create_db_engine("sqlite://")
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def store(engine) -> SqlVerificationStore:
    return SqlVerificationStore(create_session_factory(engine))


@pytest.fixture
def storage(tmp_path) -> LocalStorageService:
    return LocalStorageService(tmp_path / "uploads")


@pytest.fixture
def fake_analyzer():
    def make(**verdict_fields) -> FakeAnalyzer:
        error = verdict_fields.pop("error", None)
        verdict = ImageAnalysisResult(**verdict_fields) if verdict_fields else None
        return FakeAnalyzer(verdict=verdict, error=error)
    return make


@pytest.fixture
def failing_analyzer() -> FakeAnalyzer:
    return FakeAnalyzer(error=AnalysisFailure("engine down"))


@pytest.fixture
def jpeg_data_uri():
    def make(width: int = 64, height: int = 48, seed: int = 0) -> str:
        rng = np.random.default_rng(seed)
        img = rng.integers(0, 255, size=(height, width, 3), dtype=np.uint8)
        ok, buf = cv2.imencode(".jpg", img)
        assert ok
        return encode_data_uri(buf.tobytes(), "image/jpeg")
    return make


@pytest.fixture
def device_info():
    def make(when: datetime | None = None) -> DeviceInfo:
        when = when or datetime.now(timezone.utc)
        return DeviceInfo(
            user_agent="pytest-device",
            timestamp=when.astimezone(timezone.utc).isoformat().replace("+00:00", "Z"),
            timezone="Asia/Kolkata",
        )
    return make
