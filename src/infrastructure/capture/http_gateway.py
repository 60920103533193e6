"""
Adapter: HTTP Upload Gateway

Capture-client side of POST /verification/live-photo.
Transport failures and 5xx answers are retryable (TransientNetworkError);
a 4xx or `success: false` means the server refused the payload.
"""

import logging

import httpx
from pydantic import ValidationError as SchemaError

from src.api.schemas.requests import DeviceInfoIn, GpsLocationIn, LivePhotoRequest
from src.api.schemas.responses import ApiResponse, LiveInventoryPhotoOut
from src.core.errors import TransientNetworkError, ValidationError
from src.core.interfaces.upload_gateway import IUploadGateway, LivePhotoSubmission, UploadReceipt

logger = logging.getLogger(__name__)

HTTP_TIMEOUT = 30.0


class HttpUploadGateway(IUploadGateway):

    def __init__(self, base_url: str, client: httpx.Client | None = None, timeout: float = HTTP_TIMEOUT):
        self._base_url = base_url.rstrip("/")
        self._client = client or httpx.Client(timeout=timeout)
        self._owns_client = client is None

    def submit_live_photo(self, submission: LivePhotoSubmission) -> UploadReceipt:
        url = f"{self._base_url}/verification/live-photo"
        gps = submission.gps_location
        body = LivePhotoRequest(
            product_id=submission.product_id,
            supplier_id=submission.supplier_id,
            image_data=submission.image_data,
            gps_location=(
                GpsLocationIn(latitude=gps.latitude, longitude=gps.longitude, accuracy=gps.accuracy)
                if gps
                else None
            ),
            device_info=DeviceInfoIn(
                user_agent=submission.device_info.user_agent,
                timestamp=submission.device_info.timestamp,
                timezone=submission.device_info.timezone,
            ),
        )
        payload = body.model_dump(by_alias=True, exclude_none=True)

        try:
            resp = self._client.post(url, json=payload)
        except httpx.TransportError as e:
            logger.warning(f"Cannot reach verification server at {url}: {e}")
            raise TransientNetworkError(str(e)) from e

        if resp.status_code >= 500:
            raise TransientNetworkError(f"Server error {resp.status_code}")

        try:
            envelope = ApiResponse[LiveInventoryPhotoOut].model_validate(resp.json())
        except (ValueError, SchemaError) as e:
            if resp.is_success:
                raise TransientNetworkError(f"Malformed response from server: {e}") from e
            raise ValidationError(f"Upload refused ({resp.status_code})") from e

        if resp.is_error or not envelope.success or envelope.data is None:
            raise ValidationError(envelope.error or envelope.message or f"Upload refused ({resp.status_code})")

        return UploadReceipt(photo=envelope.data.to_entity(), message=envelope.message or "")

    def close(self) -> None:
        if self._owns_client:
            self._client.close()
