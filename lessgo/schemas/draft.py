from datetime import datetime, timedelta
from enum import IntEnum
from typing import List, Optional

from pydantic import BaseModel, Field

from lessgo.core.clock import utcnow
from lessgo.core.errors import FieldError
from lessgo.schemas.listing import (
    DEFAULT_EXPIRATION_DAYS,
    MAX_DESCRIPTION_LENGTH,
    MAX_TITLE_LENGTH,
    Category,
    ItemCondition,
    Listing,
)
from lessgo.schemas.location import Location


class CreateListingStep(IntEnum):
    photos = 0
    basic_info = 1
    details = 2
    location = 3
    review = 4

    @property
    def title(self) -> str:
        return {
            CreateListingStep.photos: "Photos",
            CreateListingStep.basic_info: "Basic Info",
            CreateListingStep.details: "Details",
            CreateListingStep.location: "Location",
            CreateListingStep.review: "Review",
        }[self]


class DraftListing(BaseModel):
    """Staging area of a listing that has not been posted yet.

    Unlike ``Listing`` nothing is enforced on assignment: a draft is allowed
    to be incomplete. ``validation_errors`` lists what still blocks posting.
    """

    id: str
    seller_id: str

    title: str = ""
    description: str = ""
    price: float = 0.0
    category: Optional[Category] = None
    condition: Optional[ItemCondition] = None
    images: List[str] = Field(default_factory=list)
    location: Optional[Location] = None
    tags: List[str] = Field(default_factory=list)

    is_negotiable: bool = True
    pickup_only: bool = True
    shipping_available: bool = False
    shipping_cost: Optional[float] = None
    quantity: int = 1
    brand: Optional[str] = None
    model: Optional[str] = None
    delivery_radius: Optional[float] = None

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    expires_at: Optional[datetime] = None

    @classmethod
    def blank(cls, draft_id: str, seller_id: str, expiration_days: int = DEFAULT_EXPIRATION_DAYS) -> "DraftListing":
        now = utcnow()
        return cls(
            id=draft_id,
            seller_id=seller_id,
            created_at=now,
            updated_at=now,
            expires_at=now + timedelta(days=expiration_days),
        )

    @property
    def is_expired(self) -> bool:
        if self.expires_at is None:
            return False
        return utcnow() > self.expires_at

    @property
    def days_until_expiry(self) -> int:
        if self.expires_at is None:
            return 0
        return (self.expires_at - utcnow()).days

    @property
    def validation_errors(self) -> List[FieldError]:
        errors: List[FieldError] = []

        if not self.title.strip():
            errors.append(FieldError("title", "Title is required"))
        elif len(self.title) > MAX_TITLE_LENGTH:
            errors.append(FieldError("title", f"Title must be {MAX_TITLE_LENGTH} characters or less"))

        if not self.description.strip():
            errors.append(FieldError("description", "Description is required"))
        elif len(self.description) > MAX_DESCRIPTION_LENGTH:
            errors.append(
                FieldError("description", f"Description must be {MAX_DESCRIPTION_LENGTH} characters or less")
            )

        if self.price <= 0:
            errors.append(FieldError("price", "Price must be greater than $0"))

        if self.category is None:
            errors.append(FieldError("category", "Category is required"))

        if self.condition is None:
            errors.append(FieldError("condition", "Item condition is required"))

        if len(self.images) < 1:
            errors.append(FieldError("images", "At least one photo is required"))

        if self.location is None:
            errors.append(FieldError("location", "Location is required"))

        return errors

    @property
    def can_be_posted(self) -> bool:
        return not self.validation_errors

    def to_listing(self, now: Optional[datetime] = None) -> Listing:
        """Published form of the draft. The draft id becomes the listing id."""
        now = now or utcnow()
        return Listing(
            id=self.id,
            seller_id=self.seller_id,
            title=self.title.strip(),
            description=self.description.strip(),
            price=self.price,
            category=self.category,
            condition=self.condition,
            images=list(self.images),
            location=self.location,
            is_active=True,
            is_sold=False,
            is_featured=False,
            is_draft=False,
            is_negotiable=self.is_negotiable,
            pickup_only=self.pickup_only,
            shipping_available=self.shipping_available,
            shipping_cost=self.shipping_cost,
            delivery_radius=self.delivery_radius,
            quantity=max(1, self.quantity),
            brand=self.brand,
            model=self.model,
            tags=list(self.tags),
            created_at=now,
            updated_at=now,
            expires_at=self.expires_at,
        )
