from __future__ import annotations

import base64
from datetime import datetime, timezone

import cv2
import numpy as np
import pytest
from fastapi.testclient import TestClient

from src.api.main import create_app
from src.config.settings import Settings
from src.core.entities.analysis_result import AnalysisContext, ImageAnalysisResult
from src.core.payloads import encode_data_uri
from src.infrastructure.analysis.opencv_analyzer import OpenCVImageAnalyzer

PDF = encode_data_uri(b"%PDF-1.4 wheat purchase", "application/pdf")


class ScriptedAnalyzer:
    """Hands out queued verdicts; falls back to a clean one."""

    def __init__(self):
        self.queue: list[ImageAnalysisResult] = []
        self.contexts: list[AnalysisContext] = []
        self.registered: list[str] = []

    def analyze(self, image_bytes, context):
        self.contexts.append(context)
        if self.queue:
            return self.queue.pop(0)
        return ImageAnalysisResult(duplicate_score=0.05, confidence=0.92)

    def register(self, fingerprint):
        self.registered.append(fingerprint)


@pytest.fixture
def analyzer() -> ScriptedAnalyzer:
    return ScriptedAnalyzer()


@pytest.fixture
def client(store, storage, analyzer):
    settings = Settings(load_demo_data=False, database_url="sqlite://", _env_file=None)
    app = create_app(
        settings=settings,
        store=store,
        storage=storage,
        analyzer=analyzer,
        fetch=lambda url: base64.b64decode(url.split(",", 1)[1]),
    )
    with TestClient(app) as c:
        yield c


def live_photo_body(jpeg_data_uri, **overrides) -> dict:
    body = {
        "productId": "prod1",
        "supplierId": "sup1",
        "imageData": jpeg_data_uri(),
        "gpsLocation": {"latitude": 30.7046, "longitude": 76.7179, "accuracy": 10},
        "deviceInfo": {
            "userAgent": "Mozilla/5.0 (Linux; Android 10)",
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "timezone": "Asia/Kolkata",
        },
    }
    body.update(overrides)
    return body


def upload_pdf(client, supplier_id="sup1", original_name="Wheat bill.pdf") -> dict:
    r = client.post(
        "/api/verification/upload-document",
        json={
            "type": "purchase_bill",
            "supplierId": supplier_id,
            "file": PDF,
            "metadata": {"originalName": original_name, "description": "Rabi season"},
        },
    )
    assert r.status_code == 201, r.text
    return r.json()["data"]


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"


def test_upload_document_envelope(client):
    r = client.post(
        "/api/verification/upload-document",
        json={"type": "harvest_log", "supplierId": "sup1", "file": PDF, "metadata": {"originalName": "log.pdf"}},
    )
    assert r.status_code == 201
    j = r.json()
    assert j["success"] is True
    assert j["message"] == "Document uploaded successfully and queued for verification"
    doc = j["data"]
    assert doc["verificationStatus"] == "pending"
    assert doc["metadata"] == {"fileSize": 23, "mimeType": "application/pdf", "originalName": "log.pdf"}
    assert doc["fileName"] == "log.pdf"
    assert "rejectionReason" not in doc
    assert doc["uploadedAt"].endswith("Z")


def test_oversized_document_is_400_and_nothing_stored(client, store):
    big = encode_data_uri(b"\x00" * (15 * 1024 * 1024), "application/pdf")
    r = client.post(
        "/api/verification/upload-document",
        json={"type": "purchase_bill", "supplierId": "sup1", "file": big, "metadata": {"originalName": "big.pdf"}},
    )
    assert r.status_code == 400
    assert r.json() == {"success": False, "error": "File size must be less than 10MB"}
    assert store.list_documents() == []


def test_live_photo_pending(client, jpeg_data_uri, analyzer):
    r = client.post("/api/verification/live-photo", json=live_photo_body(jpeg_data_uri))
    assert r.status_code == 201, r.text
    j = r.json()
    assert j["message"] == "Photo uploaded successfully"
    photo = j["data"]
    assert photo["verificationStatus"] == "pending"
    assert photo["gpsLocation"] == {"latitude": 30.7046, "longitude": 76.7179, "accuracy": 10.0}
    assert photo["aiAnalysis"]["isRealTime"] is True
    assert photo["aiAnalysis"]["duplicateScore"] == 0.05
    assert photo["capturedAt"].endswith("Z")
    assert photo["receivedAt"].endswith("Z")
    assert "fingerprint" not in photo
    assert analyzer.contexts == [AnalysisContext.LIVE_INVENTORY]


def test_live_photo_duplicate_is_flagged(client, jpeg_data_uri, analyzer):
    analyzer.queue.append(ImageAnalysisResult(duplicate_score=0.9, retail_store_detected=False, confidence=0.9))
    r = client.post("/api/verification/live-photo", json=live_photo_body(jpeg_data_uri))
    assert r.status_code == 201
    assert r.json()["data"]["verificationStatus"] == "flagged"
    assert r.json()["message"] == "Photo uploaded but flagged for review"


def test_live_photo_without_gps(client, jpeg_data_uri):
    body = live_photo_body(jpeg_data_uri)
    del body["gpsLocation"]
    r = client.post("/api/verification/live-photo", json=body)
    assert r.status_code == 201
    assert "gpsLocation" not in r.json()["data"]


def test_live_photo_missing_fields_is_400_without_analysis(client, jpeg_data_uri, analyzer):
    r = client.post("/api/verification/live-photo", json=live_photo_body(jpeg_data_uri, productId=""))
    assert r.status_code == 400
    assert r.json()["success"] is False
    assert "productId" in r.json()["error"]
    assert analyzer.contexts == []


def test_bad_gps_is_400(client, jpeg_data_uri):
    body = live_photo_body(jpeg_data_uri, gpsLocation={"latitude": 123, "longitude": 0, "accuracy": 5})
    r = client.post("/api/verification/live-photo", json=body)
    assert r.status_code == 400
    assert "latitude" in r.json()["error"]


def test_analyze_image(client, jpeg_data_uri, analyzer):
    analyzer.queue.append(ImageAnalysisResult(retail_store_detected=True, stock_photo_likelihood=0.9, confidence=0.7))
    r = client.post(
        "/api/verification/analyze-image",
        json={"imageUrl": jpeg_data_uri(), "type": "product", "supplierId": "sup1", "productId": "prod1"},
    )
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["imageId"].startswith("analysis-")
    assert data["analysis"]["flags"] == ["retail_store", "stock_photo"]
    assert data["analysis"]["retailStoreDetected"] is True
    assert "createdAt" in data


def test_analyze_image_rejects_unknown_type(client, jpeg_data_uri):
    r = client.post(
        "/api/verification/analyze-image",
        json={"imageUrl": jpeg_data_uri(), "type": "selfie", "supplierId": "sup1"},
    )
    assert r.status_code == 400


def test_listings_by_supplier_and_all(client):
    upload_pdf(client, "sup1")
    upload_pdf(client, "sup2")
    mine = client.get("/api/verification/documents/sup1").json()["data"]
    everyone = client.get("/api/verification/documents/sup1", params={"all": "true"}).json()["data"]
    assert {d["supplierId"] for d in mine} == {"sup1"}
    assert len(everyone) == 2


def test_document_review_flow(client):
    doc = upload_pdf(client)

    r = client.post("/api/verification/verify-document", json={"documentId": doc["id"], "status": "rejected"})
    assert r.status_code == 400

    r = client.post(
        "/api/verification/verify-document",
        json={"documentId": doc["id"], "status": "rejected", "reason": "Stamp missing", "reviewer": "asha"},
    )
    assert r.status_code == 200
    assert r.json()["message"] == "Document rejected successfully"
    assert r.json()["data"]["rejectionReason"] == "Stamp missing"

    r = client.post("/api/verification/verify-document", json={"documentId": doc["id"], "status": "verified"})
    assert r.json()["data"]["verificationStatus"] == "verified"
    assert "rejectionReason" not in r.json()["data"]

    history = client.get(f"/api/verification/history/document/{doc['id']}").json()["data"]
    assert [(e["previousStatus"], e["newStatus"]) for e in history] == [("pending", "rejected"), ("rejected", "verified")]


def test_verify_unknown_document_is_404(client):
    r = client.post("/api/verification/verify-document", json={"documentId": "nope", "status": "verified"})
    assert r.status_code == 404
    assert r.json() == {"success": False, "error": "Document not found"}


def test_stale_review_is_409(client):
    doc = upload_pdf(client)
    r = client.post(
        "/api/verification/verify-document",
        json={"documentId": doc["id"], "status": "verified", "expectedStatus": "rejected"},
    )
    assert r.status_code == 409


def test_flagged_photo_review_keeps_analysis(client, jpeg_data_uri, analyzer):
    analyzer.queue.append(ImageAnalysisResult(duplicate_score=0.9, confidence=0.9))
    photo = client.post("/api/verification/live-photo", json=live_photo_body(jpeg_data_uri)).json()["data"]

    pending = client.get("/api/verification/pending-reviews").json()["data"]
    assert [p["id"] for p in pending["flaggedPhotos"]] == [photo["id"]]
    assert pending["livePhotos"] == []

    r = client.post("/api/verification/verify-live-photo", json={"photoId": photo["id"], "status": "verified"})
    assert r.status_code == 200
    assert r.json()["message"] == "Photo verified successfully"
    reviewed = r.json()["data"]
    assert reviewed["verificationStatus"] == "verified"
    assert reviewed["aiAnalysis"] == photo["aiAnalysis"]

    photos = client.get("/api/verification/live-photos/sup1").json()["data"]
    assert photos[0]["aiAnalysis"] == photo["aiAnalysis"]


def test_supplier_history_and_score(client, jpeg_data_uri):
    doc = upload_pdf(client)
    client.post("/api/verification/live-photo", json=live_photo_body(jpeg_data_uri))
    client.post("/api/verification/verify-document", json={"documentId": doc["id"], "status": "verified"})

    history = client.get("/api/verification/supplier/sup1").json()["data"]
    assert len(history["documents"]) == 1
    assert len(history["livePhotos"]) == 1

    score = client.get("/api/verification/score/sup1").json()["data"]
    assert score["score"] == 50
    assert score["level"] == "partial"

    empty = client.get("/api/verification/score/nobody").json()["data"]
    assert empty["score"] == 0


def test_demo_records_are_seeded_into_empty_store(store, storage, analyzer):
    settings = Settings(load_demo_data=True, database_url="sqlite://", _env_file=None)
    app = create_app(settings=settings, store=store, storage=storage, analyzer=analyzer, fetch=lambda url: b"")
    with TestClient(app) as c:
        pending = c.get("/api/verification/pending-reviews").json()["data"]
        assert [d["id"] for d in pending["documents"]] == ["doc1"]
        assert [p["id"] for p in pending["livePhotos"]] == ["photo2"]
        assert c.get("/api/verification/score/sup1").json()["data"]["score"] == 50


# ── Duplicate index ──

def field_scene(seed: int = 7) -> str:
    """A 600x800 outdoor-looking JPEG: blotchy colour plus sensor noise."""
    rng = np.random.default_rng(seed)
    small = rng.integers(0, 255, size=(15, 20, 3), dtype=np.uint8)
    img = cv2.resize(small, (800, 600), interpolation=cv2.INTER_LINEAR)
    img = np.clip(img.astype(int) + rng.integers(-20, 20, size=img.shape), 0, 255).astype(np.uint8)
    ok, buf = cv2.imencode(".jpg", img)
    assert ok
    return encode_data_uri(buf.tobytes(), "image/jpeg")


def opencv_app(store, storage, analyzer=None):
    settings = Settings(load_demo_data=False, database_url="sqlite://", _env_file=None)
    return create_app(
        settings=settings,
        store=store,
        storage=storage,
        analyzer=analyzer or OpenCVImageAnalyzer(),
        fetch=lambda url: base64.b64decode(url.split(",", 1)[1]),
    )


def test_checking_a_photo_does_not_make_its_upload_a_duplicate(jpeg_data_uri, store, storage):
    scene = field_scene()
    with TestClient(opencv_app(store, storage)) as c:
        r = c.post(
            "/api/verification/analyze-image",
            json={"imageUrl": scene, "type": "live_inventory", "supplierId": "sup1"},
        )
        assert r.json()["data"]["analysis"]["duplicateScore"] == 0.0

        first = c.post("/api/verification/live-photo", json=live_photo_body(jpeg_data_uri, imageData=scene))
        assert first.status_code == 201
        assert first.json()["data"]["verificationStatus"] == "pending"
        assert first.json()["data"]["aiAnalysis"]["duplicateScore"] == 0.0

        again = c.post("/api/verification/live-photo", json=live_photo_body(jpeg_data_uri, imageData=scene))
        assert again.json()["data"]["verificationStatus"] == "flagged"
        assert again.json()["data"]["aiAnalysis"]["duplicateScore"] == 1.0


def test_retry_after_failed_save_is_not_a_duplicate(jpeg_data_uri, store, storage, monkeypatch):
    scene = field_scene(seed=11)
    real_add_photo = store.add_photo
    attempts = []

    def flaky_add_photo(photo):
        attempts.append(photo.id)
        if len(attempts) == 1:
            raise RuntimeError("connection reset")
        return real_add_photo(photo)

    monkeypatch.setattr(store, "add_photo", flaky_add_photo)
    with TestClient(opencv_app(store, storage), raise_server_exceptions=False) as c:
        failed = c.post("/api/verification/live-photo", json=live_photo_body(jpeg_data_uri, imageData=scene))
        assert failed.status_code == 500
        assert failed.json() == {"success": False, "error": "Internal server error"}

        retry = c.post("/api/verification/live-photo", json=live_photo_body(jpeg_data_uri, imageData=scene))
        assert retry.status_code == 201
        assert retry.json()["data"]["verificationStatus"] == "pending"
        assert retry.json()["data"]["aiAnalysis"]["duplicateScore"] == 0.0


def test_duplicate_index_survives_a_restart(jpeg_data_uri, store, storage):
    scene = field_scene(seed=13)
    with TestClient(opencv_app(store, storage)) as c:
        r = c.post("/api/verification/live-photo", json=live_photo_body(jpeg_data_uri, imageData=scene))
        assert r.json()["data"]["verificationStatus"] == "pending"

    with TestClient(opencv_app(store, storage, analyzer=OpenCVImageAnalyzer())) as c:
        r = c.post("/api/verification/live-photo", json=live_photo_body(jpeg_data_uri, imageData=scene))
        assert r.json()["data"]["verificationStatus"] == "flagged"


# ── Unsafe identifiers ──

def test_path_like_supplier_id_on_document_is_400(client, store):
    r = client.post(
        "/api/verification/upload-document",
        json={"type": "purchase_bill", "supplierId": "../../..", "file": PDF, "metadata": {"originalName": "x.pdf"}},
    )
    assert r.status_code == 400
    assert r.json()["success"] is False
    assert "supplierId" in r.json()["error"]
    assert store.list_documents() == []


def test_path_like_supplier_id_on_live_photo_is_400(client, jpeg_data_uri, analyzer, store):
    r = client.post("/api/verification/live-photo", json=live_photo_body(jpeg_data_uri, supplierId="../../.."))
    assert r.status_code == 400
    assert "supplierId" in r.json()["error"]
    assert analyzer.contexts == []
    assert store.list_photos() == []


def test_analyze_image_outside_the_store_is_400(store, storage, analyzer, tmp_path):
    (tmp_path / "secret.jpg").write_bytes(b"\xff\xd8secret")
    settings = Settings(load_demo_data=False, database_url="sqlite://", _env_file=None)
    app = create_app(settings=settings, store=store, storage=storage, analyzer=analyzer)
    with TestClient(app) as c:
        r = c.post(
            "/api/verification/analyze-image",
            json={"imageUrl": storage.root.as_uri() + "/../secret.jpg", "type": "product", "supplierId": "sup1"},
        )
    assert r.status_code == 400
    assert analyzer.contexts == []


# ── Concurrent review ──

def test_second_review_from_the_same_snapshot_is_409(client):
    doc = upload_pdf(client)
    first = client.post(
        "/api/verification/verify-document",
        json={"documentId": doc["id"], "status": "verified", "expectedStatus": "pending"},
    )
    second = client.post(
        "/api/verification/verify-document",
        json={"documentId": doc["id"], "status": "rejected", "reason": "Forged", "expectedStatus": "pending"},
    )
    assert first.status_code == 200
    assert second.status_code == 409
    history = client.get(f"/api/verification/history/document/{doc['id']}").json()["data"]
    assert [e["newStatus"] for e in history] == ["verified"]
