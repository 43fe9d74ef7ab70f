from sqlalchemy import Column, DateTime, ForeignKey, String
from sqlalchemy.orm import relationship

from lessgo.core.clock import utcnow
from lessgo.core.database import Base


class Favorite(Base):
    """Join row: a user favorited a listing. Existence is the whole payload."""

    __tablename__ = "favorites"

    user_id = Column(String(64), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    listing_id = Column(String(64), ForeignKey("listings.id", ondelete="CASCADE"), primary_key=True, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    user = relationship("User", back_populates="favorites")
    listing = relationship("Listing", back_populates="favorited_by")
