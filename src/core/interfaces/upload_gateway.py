"""
Contract: Upload Gateway (client side)

How the capture client talks to the server. HTTP in production,
a fake in tests.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from src.core.entities.live_photo import DeviceInfo, GpsLocation, LiveInventoryPhoto


@dataclass(frozen=True)
class LivePhotoSubmission:
    product_id: str
    supplier_id: str
    image_data: str                       # data URI, JPEG
    device_info: DeviceInfo
    gps_location: GpsLocation | None = None


@dataclass(frozen=True)
class UploadReceipt:
    photo: LiveInventoryPhoto
    message: str = ""


class IUploadGateway(ABC):
    """Port: submits captured photos to the verification server."""

    @abstractmethod
    def submit_live_photo(self, submission: LivePhotoSubmission) -> UploadReceipt:
        """
        Raises:
            ValidationError: the server refused the payload.
            TransientNetworkError: the request failed in transit.
        """
        ...
