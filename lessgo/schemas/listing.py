from datetime import datetime, timedelta
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from lessgo.core.clock import utcnow
from lessgo.schemas.location import Location

MAX_IMAGES = 10
MAX_TAGS = 10
MAX_TITLE_LENGTH = 60
MAX_DESCRIPTION_LENGTH = 1000
DEFAULT_EXPIRATION_DAYS = 30


class Category(str, Enum):
    electronics = "electronics"
    clothing = "clothing"
    home = "home"
    sports = "sports"
    books = "books"
    vehicles = "vehicles"
    furniture = "furniture"
    toys = "toys"
    beauty = "beauty"
    other = "other"

    @property
    def display_name(self) -> str:
        return _CATEGORY_NAMES[self]


_CATEGORY_NAMES = {
    Category.electronics: "Electronics",
    Category.clothing: "Clothing",
    Category.home: "Home & Garden",
    Category.sports: "Sports & Outdoors",
    Category.books: "Books & Media",
    Category.vehicles: "Vehicles",
    Category.furniture: "Furniture",
    Category.toys: "Toys & Games",
    Category.beauty: "Beauty & Health",
    Category.other: "Other",
}


class ItemCondition(str, Enum):
    # ordered best to worst
    new = "new"
    like_new = "like_new"
    excellent = "excellent"
    good = "good"
    fair = "fair"
    poor = "poor"

    @property
    def display_name(self) -> str:
        return self.value.replace("_", " ").title()

    @property
    def rank(self) -> int:
        return list(ItemCondition).index(self)


class Listing(BaseModel):
    id: str
    seller_id: str

    title: str = Field(max_length=255)
    description: str = ""
    price: float = Field(ge=0)
    original_price: Optional[float] = None

    category: Category = Category.other
    condition: ItemCondition = ItemCondition.good
    images: List[str] = Field(default_factory=list)  # images[0] is the main photo
    location: Location

    is_active: bool = True
    is_sold: bool = False
    is_featured: bool = False
    is_draft: bool = False

    views: int = Field(default=0, ge=0)
    favorites: int = Field(default=0, ge=0)

    is_negotiable: bool = True
    pickup_only: bool = True
    shipping_available: bool = False
    shipping_cost: Optional[float] = None
    delivery_radius: Optional[float] = None

    quantity: int = Field(default=1, ge=1)
    brand: Optional[str] = None
    model: Optional[str] = None
    tags: List[str] = Field(default_factory=list, max_length=MAX_TAGS)

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    expires_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @model_validator(mode="after")
    def _default_expiry(self):
        # an explicit expires_at=None means "never expires"
        self.apply_default_lifetime(DEFAULT_EXPIRATION_DAYS)
        return self

    def apply_default_lifetime(self, days: int) -> None:
        """Derive a defaulted expiry from ``days``; an expiry given explicitly is kept."""
        if "expires_at" not in self.model_fields_set:
            self.expires_at = self.created_at + timedelta(days=days)
            # assignment marks the field as set, keep it counted as defaulted
            self.model_fields_set.discard("expires_at")

    @property
    def is_expired(self) -> bool:
        if self.expires_at is None:
            return False
        return utcnow() > self.expires_at

    @property
    def is_available(self) -> bool:
        return self.is_active and not self.is_sold

    @property
    def main_image(self) -> Optional[str]:
        return self.images[0] if self.images else None

    @property
    def formatted_price(self) -> str:
        return f"${self.price:.2f}"

    @property
    def days_since_created(self) -> int:
        return (utcnow() - self.created_at).days


class ListingStats(BaseModel):
    total_messages: int
    days_active: int
