from sqlalchemy import JSON, Column, DateTime, String

from lessgo.core.clock import utcnow
from lessgo.core.database import Base


class ListingDraft(Base):
    """Auto-saved state of an unpublished listing.

    Kept apart from ``listings`` so half-filled drafts never show up in
    feeds or searches. The payload is the serialized DraftListing.
    """

    __tablename__ = "listing_drafts"

    id = Column(String(64), primary_key=True)
    seller_id = Column(String(64), nullable=False, index=True)
    payload = Column(JSON, nullable=False, default=dict)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, nullable=False)
