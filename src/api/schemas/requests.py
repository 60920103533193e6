"""
Pydantic schemas — Request models for the API.

Wire names are camelCase (`supplierId`), Python names snake_case.
Required business fields default to empty so the use cases can report
every missing field in one validation message.
"""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from src.core.entities.live_photo import DeviceInfo, GpsLocation


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DocumentUploadMetadata(CamelModel):
    original_name: str = ""
    description: str | None = None
    mime_type: str | None = None


class DocumentUploadRequest(CamelModel):
    type: str = ""
    supplier_id: str = ""
    file: str = ""                      # data URI or bare base64
    metadata: DocumentUploadMetadata | None = None


class GpsLocationIn(CamelModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    accuracy: float = Field(ge=0)

    def to_entity(self) -> GpsLocation:
        return GpsLocation(latitude=self.latitude, longitude=self.longitude, accuracy=self.accuracy)


class DeviceInfoIn(CamelModel):
    user_agent: str = Field(min_length=1)
    timestamp: str = Field(min_length=1)
    timezone: str = Field(min_length=1)

    def to_entity(self) -> DeviceInfo:
        return DeviceInfo(user_agent=self.user_agent, timestamp=self.timestamp, timezone=self.timezone)


class LivePhotoRequest(CamelModel):
    product_id: str = ""
    supplier_id: str = ""
    image_data: str = ""
    gps_location: GpsLocationIn | None = None
    device_info: DeviceInfoIn | None = None


class ImageVerificationRequest(CamelModel):
    image_url: str = ""
    type: str = ""                      # "product" | "document" | "live_inventory"
    supplier_id: str = ""
    product_id: str | None = None


class VerifyDocumentRequest(CamelModel):
    document_id: str
    status: str
    reason: str | None = None
    reviewer: str | None = None
    expected_status: str | None = None


class VerifyLivePhotoRequest(CamelModel):
    photo_id: str
    status: str
    reason: str | None = None
    reviewer: str | None = None
    expected_status: str | None = None
