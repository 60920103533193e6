"""
Entity: Review Event

One entry of the review audit log. Status changes overwrite the record,
the log keeps every prior verdict.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class ReviewItemType(str, Enum):
    DOCUMENT = "document"
    LIVE_PHOTO = "live_photo"


@dataclass(frozen=True)
class ReviewEvent:
    item_type: ReviewItemType
    item_id: str
    supplier_id: str
    previous_status: str
    new_status: str
    reason: str | None = None
    reviewer: str | None = None
    created_at: datetime = field(default_factory=datetime.utcnow)
