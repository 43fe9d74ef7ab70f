from datetime import datetime
from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, Field, field_validator

from lessgo.core.clock import utcnow

_RATING_DESCRIPTIONS = {1: "Poor", 2: "Fair", 3: "Good", 4: "Very Good", 5: "Excellent"}


class Review(BaseModel):
    id: str
    reviewer_id: str
    reviewed_user_id: str
    listing_id: Optional[str] = None
    rating: int
    title: Optional[str] = None
    comment: str
    timestamp: datetime = Field(default_factory=utcnow)
    is_verified: bool = False

    @field_validator("rating")
    @classmethod
    def _clamp_rating(cls, v: int) -> int:
        return max(1, min(5, v))

    @property
    def rating_description(self) -> str:
        return _RATING_DESCRIPTIONS.get(self.rating, "Unknown")


class NotificationType(str, Enum):
    message = "message"
    offer = "offer"
    listing = "listing"
    review = "review"
    system = "system"


class NotificationItem(BaseModel):
    id: str
    user_id: str
    type: NotificationType
    title: str
    message: str
    data: Optional[Dict[str, str]] = None
    timestamp: datetime = Field(default_factory=utcnow)
    is_read: bool = False
