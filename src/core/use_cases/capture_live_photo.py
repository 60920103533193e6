"""
Use Case: Capture Live Photo (client side)

State machine driving one live inventory capture:

    idle → streaming → captured → uploading → uploaded
                                            ↘ idle (error, draft kept)
    streaming → idle       (cancel)
    captured  → streaming  (retake)

Camera and geolocation are requested independently. Geolocation runs on a
background thread and is only read if it has resolved by the time the
frame is taken; capture never waits for it. The camera is released on
every exit path (capture, cancel, failure, close).
"""

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime, timezone
from enum import Enum
from typing import Callable
from zoneinfo import ZoneInfo

from src.core.entities.live_photo import DeviceInfo, GpsLocation
from src.core.errors import (
    CaptureError,
    CapturePermissionError,
    TransientNetworkError,
    ValidationError,
)
from src.core.interfaces.capture_device import ICaptureDevice, IWatermarker
from src.core.interfaces.upload_gateway import (
    IUploadGateway,
    LivePhotoSubmission,
    UploadReceipt,
)

logger = logging.getLogger(__name__)

CAMERA_DENIED_MESSAGE = "Camera access denied. Please allow camera permissions and try again."
NETWORK_ERROR_MESSAGE = "Network error. Please check your connection and try again."
GPS_UNAVAILABLE = "GPS: Location not available"


class CaptureState(str, Enum):
    IDLE = "idle"
    STREAMING = "streaming"
    CAPTURED = "captured"
    UPLOADING = "uploading"
    UPLOADED = "uploaded"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CaptureSession:
    """One product, one supplier, one photo at a time."""

    def __init__(
        self,
        device: ICaptureDevice,
        watermarker: IWatermarker,
        gateway: IUploadGateway,
        product_id: str,
        supplier_id: str,
        product_name: str,
        timezone_name: str = "Asia/Kolkata",
        user_agent: str = "supplier-verification-capture",
        location_timeout_s: float = 10.0,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self._device = device
        self._watermarker = watermarker
        self._gateway = gateway
        self.product_id = product_id
        self.supplier_id = supplier_id
        self.product_name = product_name
        self._tz_name = timezone_name
        self._user_agent = user_agent
        self._location_timeout = location_timeout_s
        self._clock = clock
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="geolocation")
        self._location_future: Future | None = None
        self._facing = "environment"

        self.state = CaptureState.IDLE
        self.error: str | None = None
        self.captured_image: str | None = None      # draft, kept until upload succeeds
        self.location: GpsLocation | None = None
        self.receipt: UploadReceipt | None = None

    # ── Context manager: release on teardown ──

    def __enter__(self) -> "CaptureSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ── Transitions ──

    def start_capture(self, facing: str = "environment") -> None:
        """Open the camera and ask for a location fix in the background."""
        if self.state not in (CaptureState.IDLE, CaptureState.UPLOADED):
            raise CaptureError(f"Cannot start the camera while {self.state.value}")

        self.error = None
        self.receipt = None
        self._facing = facing
        self._request_location()

        try:
            self._device.acquire_camera(facing)
        except CapturePermissionError as e:
            logger.warning(f"Camera unavailable: {e}")
            self._device.release()
            self.state = CaptureState.IDLE
            self.error = CAMERA_DENIED_MESSAGE
            raise

        self.state = CaptureState.STREAMING
        logger.debug(f"Camera streaming ({facing}) for product {self.product_id}")

    def capture_frame(self) -> str:
        """Grab the current frame, burn the watermark, stop the camera."""
        if self.state != CaptureState.STREAMING:
            raise CaptureError(f"Cannot capture while {self.state.value}")

        try:
            frame = self._device.capture_frame()
            self.location = self.current_location()
            image = self._watermarker.render(frame, self.watermark_lines(self._clock()))
        except CaptureError as e:
            self.state = CaptureState.IDLE
            self.error = str(e)
            raise
        finally:
            self._device.release()

        self.captured_image = image
        self.state = CaptureState.CAPTURED
        return image

    def cancel(self) -> None:
        if self.state == CaptureState.STREAMING:
            self._device.release()
            self.state = CaptureState.IDLE

    def retake(self) -> None:
        """Discard the captured frame and restart the camera."""
        if self.captured_image is None or self.state not in (CaptureState.CAPTURED, CaptureState.IDLE):
            raise CaptureError("There is no captured photo to retake")
        self.captured_image = None
        self.location = None
        self.state = CaptureState.IDLE
        self.start_capture(self._facing)

    def submit(self) -> UploadReceipt:
        """
        Upload the draft. On failure the draft is kept so the user can retry
        without recapturing.
        """
        if self.captured_image is None or self.state not in (CaptureState.CAPTURED, CaptureState.IDLE):
            raise CaptureError("There is no captured photo to upload")

        self.state = CaptureState.UPLOADING
        self.error = None
        submission = LivePhotoSubmission(
            product_id=self.product_id,
            supplier_id=self.supplier_id,
            image_data=self.captured_image,
            device_info=self.device_info(),
            gps_location=self.location,
        )

        try:
            receipt = self._gateway.submit_live_photo(submission)
        except TransientNetworkError as e:
            logger.warning(f"Upload failed in transit, draft kept: {e}")
            self.state = CaptureState.IDLE
            self.error = NETWORK_ERROR_MESSAGE
            raise
        except ValidationError as e:
            self.state = CaptureState.IDLE
            self.error = str(e) or "Failed to upload photo"
            raise

        self.captured_image = None
        self.receipt = receipt
        self.state = CaptureState.UPLOADED
        logger.info(f"Uploaded {receipt.photo.id}: {receipt.photo.verification_status.value}")
        return receipt

    def close(self) -> None:
        self._device.release()
        if self.state == CaptureState.STREAMING:
            self.state = CaptureState.IDLE
        self._executor.shutdown(wait=False, cancel_futures=True)

    # ── Helpers ──

    def current_location(self) -> GpsLocation | None:
        """Location if already resolved, never blocks."""
        future = self._location_future
        if future is None or not future.done() or future.cancelled():
            return None
        if future.exception() is not None:
            return None
        return future.result()

    def device_info(self) -> DeviceInfo:
        return DeviceInfo(
            user_agent=self._user_agent,
            timestamp=self._clock().astimezone(timezone.utc).isoformat().replace("+00:00", "Z"),
            timezone=self._tz_name,
        )

    def watermark_lines(self, now: datetime) -> list[str]:
        local = now.astimezone(ZoneInfo(self._tz_name))
        timestamp = local.strftime("%d/%m/%Y, %I:%M:%S %p").lower()
        if self.location is not None:
            gps = f"GPS: {self.location.latitude:.6f}, {self.location.longitude:.6f}"
        else:
            gps = GPS_UNAVAILABLE
        return [f"Time: {timestamp}", gps, f"Product: {self.product_name}"]

    def _request_location(self) -> None:
        # Reuse a fix already obtained in this session
        if self.current_location() is not None:
            return
        if self._location_future is not None and not self._location_future.done():
            return
        self._location_future = self._executor.submit(self._device.acquire_location, self._location_timeout)
