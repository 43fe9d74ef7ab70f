from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from lessgo.core.clock import utcnow
from lessgo.core.database import Base
from lessgo.models.location import LocationColumns


class Listing(LocationColumns, Base):
    __tablename__ = "listings"

    id = Column(String(64), primary_key=True)
    seller_id = Column(String(64), ForeignKey("users.id"), nullable=False, index=True)

    title = Column(String(255), nullable=False, default="")
    description = Column(Text, nullable=False, default="")

    price = Column(Numeric(10, 2, asdecimal=False), nullable=False, default=0)
    # 0 means "no original price"
    original_price = Column(Numeric(10, 2, asdecimal=False), nullable=False, default=0)

    # enum raw values; unknown strings fall back on read
    category = Column(String(30), nullable=False, default="other", index=True)
    condition = Column(String(30), nullable=False, default="good")

    is_active = Column(Boolean, nullable=False, default=True)
    is_sold = Column(Boolean, nullable=False, default=False)
    is_featured = Column(Boolean, nullable=False, default=False)
    is_draft = Column(Boolean, nullable=False, default=False)

    views = Column(Integer, nullable=False, default=0)
    favorites = Column(Integer, nullable=False, default=0)

    is_negotiable = Column(Boolean, nullable=False, default=True)
    pickup_only = Column(Boolean, nullable=False, default=True)
    shipping_available = Column(Boolean, nullable=False, default=False)
    # 0 means "not set" for both
    shipping_cost = Column(Numeric(10, 2, asdecimal=False), nullable=False, default=0)
    delivery_radius = Column(Float, nullable=False, default=0)

    quantity = Column(Integer, nullable=False, default=1)
    brand = Column(String(255), nullable=True)
    model = Column(String(255), nullable=True)
    tags = Column(JSON, nullable=False, default=list)

    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=utcnow, nullable=False)
    expires_at = Column(DateTime, nullable=True)

    owner = relationship("User", back_populates="listings")

    images = relationship(
        "ListingImage",
        back_populates="listing",
        cascade="all, delete-orphan",
        order_by="ListingImage.sort_order",
    )

    favorited_by = relationship(
        "Favorite",
        back_populates="listing",
        cascade="all, delete-orphan",
    )
