from __future__ import annotations

import threading
import time
from datetime import datetime, timezone

import numpy as np
import pytest

from src.core.entities.live_photo import (
    DeviceInfo,
    GpsLocation,
    LiveInventoryPhoto,
    PhotoStatus,
)
from src.core.errors import CaptureError, CapturePermissionError, TransientNetworkError
from src.core.interfaces.upload_gateway import UploadReceipt
from src.core.use_cases.capture_live_photo import (
    CAMERA_DENIED_MESSAGE,
    NETWORK_ERROR_MESSAGE,
    CaptureSession,
    CaptureState,
)

FIXED_NOW = datetime(2024, 1, 20, 11, 15, 0, tzinfo=timezone.utc)   # 16:45 in Asia/Kolkata
FIX = GpsLocation(latitude=30.7046, longitude=76.7179, accuracy=10)


class FakeDevice:
    def __init__(self, deny_camera=False, location=None, location_gate=None):
        self.deny_camera = deny_camera
        self.location = location
        self.location_gate = location_gate          # Event the location call waits on
        self.streaming = False
        self.acquire_calls = 0
        self.release_calls = 0

    def acquire_camera(self, facing="environment"):
        self.acquire_calls += 1
        if self.deny_camera:
            raise CapturePermissionError("denied")
        self.streaming = True

    def acquire_location(self, timeout_s):
        if self.location_gate is not None:
            self.location_gate.wait(timeout=5)
            return None
        return self.location

    def capture_frame(self):
        if not self.streaming:
            raise CaptureError("not streaming")
        return np.zeros((48, 64, 3), dtype=np.uint8)

    def release(self):
        self.release_calls += 1
        self.streaming = False


class FakeWatermarker:
    def __init__(self):
        self.lines = None

    def render(self, frame, lines):
        self.lines = list(lines)
        return "data:image/jpeg;base64,/9j/AA=="


class FakeGateway:
    def __init__(self, failures=0):
        self.failures = failures
        self.submissions = []

    def submit_live_photo(self, submission):
        self.submissions.append(submission)
        if self.failures:
            self.failures -= 1
            raise TransientNetworkError("offline")
        photo = LiveInventoryPhoto(
            id="photo-1",
            product_id=submission.product_id,
            supplier_id=submission.supplier_id,
            image_reference="file:///x.jpg",
            captured_at=FIXED_NOW.replace(tzinfo=None),
            device_info=submission.device_info,
            gps_location=submission.gps_location,
            verification_status=PhotoStatus.PENDING,
        )
        return UploadReceipt(photo=photo, message="Photo uploaded successfully")


def make_session(device, gateway=None, watermarker=None) -> CaptureSession:
    return CaptureSession(
        device=device,
        watermarker=watermarker or FakeWatermarker(),
        gateway=gateway or FakeGateway(),
        product_id="prod1",
        supplier_id="sup1",
        product_name="Fresh Tomatoes",
        timezone_name="Asia/Kolkata",
        location_timeout_s=1.0,
        clock=lambda: FIXED_NOW,
    )


def wait_for_location(session, timeout=2.0):
    deadline = time.monotonic() + timeout
    while session.current_location() is None and time.monotonic() < deadline:
        time.sleep(0.01)


def test_full_capture_and_upload():
    device = FakeDevice(location=FIX)
    watermarker = FakeWatermarker()
    gateway = FakeGateway()
    with make_session(device, gateway, watermarker) as session:
        session.start_capture()
        assert session.state == CaptureState.STREAMING
        wait_for_location(session)

        image = session.capture_frame()
        assert image.startswith("data:image/jpeg;base64,")
        assert session.state == CaptureState.CAPTURED
        assert device.release_calls >= 1 and not device.streaming
        assert watermarker.lines == [
            "Time: 20/01/2024, 04:45:00 pm",
            "GPS: 30.704600, 76.717900",
            "Product: Fresh Tomatoes",
        ]

        receipt = session.submit()
        assert session.state == CaptureState.UPLOADED
        assert session.captured_image is None
        assert receipt.photo.gps_location == FIX

    sent = gateway.submissions[0]
    assert sent.device_info == DeviceInfo(
        user_agent="supplier-verification-capture",
        timestamp="2024-01-20T11:15:00Z",
        timezone="Asia/Kolkata",
    )


def test_capture_does_not_wait_for_geolocation():
    gate = threading.Event()
    device = FakeDevice(location_gate=gate)
    watermarker = FakeWatermarker()
    session = make_session(device, watermarker=watermarker)
    try:
        session.start_capture()
        started = time.monotonic()
        session.capture_frame()
        assert time.monotonic() - started < 0.5
        assert session.location is None
        assert watermarker.lines[1] == "GPS: Location not available"
        assert session.submit().photo.gps_location is None
    finally:
        gate.set()
        session.close()


def test_camera_denied_sets_message_and_releases():
    device = FakeDevice(deny_camera=True)
    session = make_session(device)
    with pytest.raises(CapturePermissionError):
        session.start_capture()
    assert session.state == CaptureState.IDLE
    assert session.error == CAMERA_DENIED_MESSAGE
    assert device.release_calls >= 1
    session.close()


def test_cancel_releases_camera():
    device = FakeDevice()
    with make_session(device) as session:
        session.start_capture()
        session.cancel()
        assert session.state == CaptureState.IDLE
        assert not device.streaming


def test_close_while_streaming_releases_camera():
    device = FakeDevice()
    session = make_session(device)
    session.start_capture()
    session.close()
    assert not device.streaming
    assert session.state == CaptureState.IDLE


def test_network_error_keeps_draft_for_retry():
    gateway = FakeGateway(failures=1)
    with make_session(FakeDevice(), gateway) as session:
        session.start_capture()
        draft = session.capture_frame()

        with pytest.raises(TransientNetworkError):
            session.submit()
        assert session.state == CaptureState.IDLE
        assert session.error == NETWORK_ERROR_MESSAGE
        assert session.captured_image == draft

        receipt = session.submit()
        assert receipt.photo.id == "photo-1"
        assert session.state == CaptureState.UPLOADED
        assert session.error is None
    assert len(gateway.submissions) == 2


def test_retake_discards_frame_and_restarts_camera():
    device = FakeDevice()
    with make_session(device) as session:
        session.start_capture()
        session.capture_frame()
        session.retake()
        assert session.captured_image is None
        assert session.state == CaptureState.STREAMING
        assert device.acquire_calls == 2


def test_cannot_submit_without_capture():
    with make_session(FakeDevice()) as session:
        with pytest.raises(CaptureError):
            session.submit()
