from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from lessgo.core.clock import utcnow
from lessgo.schemas.location import Location


class Badge(str, Enum):
    verified = "verified"
    top_seller = "top_seller"
    quick_responder = "quick_responder"
    trusted = "trusted"
    new_user = "new_user"

    @property
    def display_name(self) -> str:
        return self.value.replace("_", " ").title()


class User(BaseModel):
    id: str
    email: str = ""
    display_name: str = ""
    phone_number: Optional[str] = None
    profile_image_url: Optional[str] = None
    bio: Optional[str] = None
    location: Optional[Location] = None

    is_verified: bool = False
    verification_date: Optional[datetime] = None
    rating: float = Field(default=0.0, ge=0, le=5)
    total_reviews: int = Field(default=0, ge=0)
    badges: List[Badge] = Field(default_factory=list)

    date_joined: datetime = Field(default_factory=utcnow)
    last_active: datetime = Field(default_factory=utcnow)

    is_blocked: bool = False
    blocked_users: List[str] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)

    def has_blocked(self, user_id: str) -> bool:
        return user_id in self.blocked_users


class UserCreate(BaseModel):
    """Sign-up payload."""

    email: EmailStr
    display_name: str = Field(min_length=2, max_length=50)
    phone_number: Optional[str] = Field(default=None, max_length=20)
    bio: Optional[str] = Field(default=None, max_length=500)


class UserStats(BaseModel):
    total_listings: int
    total_messages: int
    average_rating: float
