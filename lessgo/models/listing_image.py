from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from lessgo.core.clock import utcnow
from lessgo.core.database import Base


class ListingImage(Base):
    __tablename__ = "listing_images"

    id = Column(Integer, primary_key=True)
    listing_id = Column(String(64), ForeignKey("listings.id", ondelete="CASCADE"), index=True, nullable=False)

    # URL reference, or inline "data:<mime>;base64,..." for captured bytes
    ref = Column(Text, nullable=False)
    sort_order = Column(Integer, nullable=False, default=0)  # 0 = main photo

    created_at = Column(DateTime, default=utcnow, nullable=False)

    listing = relationship("Listing", back_populates="images")
