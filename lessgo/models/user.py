from sqlalchemy import JSON, Boolean, Column, DateTime, Float, Integer, String, Text
from sqlalchemy.orm import relationship

from lessgo.core.clock import utcnow
from lessgo.core.database import Base
from lessgo.models.location import LocationColumns


class User(LocationColumns, Base):
    __tablename__ = "users"

    id = Column(String(64), primary_key=True)
    email = Column(String(255), index=True, nullable=False, default="")
    display_name = Column(String(100), index=True, nullable=False, default="")
    phone_number = Column(String(20), nullable=True)
    profile_image_url = Column(Text, nullable=True)
    bio = Column(Text, nullable=True)

    is_verified = Column(Boolean, nullable=False, default=False)
    verification_date = Column(DateTime, nullable=True)
    rating = Column(Float, nullable=False, default=0.0)
    total_reviews = Column(Integer, nullable=False, default=0)

    # badge raw values, e.g. ["verified", "top_seller"]
    badges = Column(JSON, nullable=False, default=list)

    date_joined = Column(DateTime, default=utcnow, nullable=False)
    last_active = Column(DateTime, default=utcnow, nullable=False)

    is_blocked = Column(Boolean, nullable=False, default=False)
    blocked_users = Column(JSON, nullable=False, default=list)

    listings = relationship(
        "Listing",
        back_populates="owner",
        cascade="all, delete-orphan",
    )

    favorites = relationship(
        "Favorite",
        back_populates="user",
        cascade="all, delete-orphan",
    )
