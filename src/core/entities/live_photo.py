"""
Entity: Live Inventory Photo

A camera-captured, watermarked photo of physical stock, tying a product
to a place and time.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class PhotoStatus(str, Enum):
    PENDING = "pending"
    VERIFIED = "verified"
    FLAGGED = "flagged"
    REJECTED = "rejected"


@dataclass(frozen=True)
class GpsLocation:
    latitude: float
    longitude: float
    accuracy: float      # meters


@dataclass(frozen=True)
class DeviceInfo:
    """Audit data reported by the capturing device. Always required."""
    user_agent: str
    timestamp: str       # ISO-8601, client clock
    timezone: str        # IANA name, e.g. "Asia/Kolkata"


@dataclass(frozen=True)
class LivePhotoAnalysis:
    """Subset of the AI verdict kept on the photo record."""
    is_real_time: bool
    duplicate_score: float       # 0.0 - 1.0
    retail_store_detected: bool
    confidence: float            # 0.0 - 1.0


@dataclass
class LiveInventoryPhoto:
    """Domain entity: live inventory photo."""
    id: str
    product_id: str
    supplier_id: str
    image_reference: str
    captured_at: datetime                    # client-reported
    device_info: DeviceInfo
    gps_location: GpsLocation | None = None  # None when geolocation was denied
    verification_status: PhotoStatus = PhotoStatus.PENDING
    status_reason: str | None = None         # why it is flagged/rejected
    ai_analysis: LivePhotoAnalysis | None = None
    received_at: datetime = field(default_factory=datetime.utcnow)
    fingerprint: str | None = None           # duplicate-index key, never sent to clients
