"""Listing feeds, seller edits and counters.

``views`` and ``favorites`` on a listing are denormalized counters. Views
are bumped in the background and a lost increment is only logged.
"""
from datetime import datetime
from typing import Callable, List, Optional

from sqlalchemy import select

from lessgo.core.clock import utcnow
from lessgo.core.log import get_logger
from lessgo.models.chat import Chat as ChatModel
from lessgo.models.message import Message as MessageModel
from lessgo.schemas.listing import DEFAULT_EXPIRATION_DAYS, Category, Listing, ListingStats
from lessgo.schemas.message import Message
from lessgo.services.favorites import FavoritesIndex
from lessgo.services.persistence import PersistenceEngine
from lessgo.services.queries import ListingFilter, Sort
from lessgo.services.write_queue import WriteQueue

logger = get_logger("lessgo.listings")


class ListingCatalog:
    def __init__(
        self,
        engine: PersistenceEngine,
        queue: WriteQueue,
        favorites: Optional[FavoritesIndex] = None,
        clock: Callable[[], datetime] = utcnow,
        expiration_days: int = DEFAULT_EXPIRATION_DAYS,
    ):
        self.engine = engine
        self.queue = queue
        self.favorites = favorites
        self.clock = clock
        self.expiration_days = expiration_days

    # ---------------------------
    # feeds
    # ---------------------------
    def get(self, listing_id: str) -> Optional[Listing]:
        return self.engine.fetch_by_id(Listing, listing_id)

    def active_listings(self, limit: Optional[int] = None, offset: int = 0) -> List[Listing]:
        """Available listings, newest first."""
        return self.engine.fetch_filtered(
            Listing,
            ListingFilter(available_only=True, exclude_drafts=True),
            limit=limit,
            offset=offset,
        )

    def listings_for_seller(self, seller_id: str) -> List[Listing]:
        return self.engine.fetch_filtered(Listing, ListingFilter(seller_id=seller_id, exclude_drafts=True))

    def search(
        self,
        text: str = "",
        category: Optional[Category] = None,
        min_price: Optional[float] = None,
        max_price: Optional[float] = None,
    ) -> List[Listing]:
        """Available listings matching every given criterion; featured first, then newest."""
        found = self.engine.fetch_filtered(
            Listing,
            ListingFilter(
                available_only=True,
                exclude_drafts=True,
                category=category,
                min_price=min_price,
                max_price=max_price,
                search_text=text or None,
            ),
        )
        # stable sort keeps the newest-first order inside each group
        found.sort(key=lambda listing: not listing.is_featured)
        return found

    def listings_by_price_range(self, min_price: float, max_price: float) -> List[Listing]:
        """Listings priced within ``[min_price, max_price]``, cheapest first."""
        return self.engine.fetch_filtered(
            Listing,
            ListingFilter(min_price=min_price, max_price=max_price, exclude_drafts=True),
            Sort("price"),
        )

    # ---------------------------
    # seller edits
    # ---------------------------
    def save(self, listing: Listing) -> Listing:
        """Store a new or edited listing. A listing built without an expiry gets the configured lifetime."""
        listing.apply_default_lifetime(self.expiration_days)
        listing.updated_at = self.clock()
        return self.engine.upsert(listing)

    def mark_sold(self, listing_id: str) -> Optional[Listing]:
        now = self.clock()

        def change(listing: Listing) -> None:
            listing.is_sold = True
            listing.is_active = False
            listing.updated_at = now

        sold = self.engine.modify(Listing, listing_id, change)
        if sold is not None:
            logger.info("Listing %s marked sold", listing_id)
        return sold

    def set_active(self, listing_id: str, active: bool) -> Optional[Listing]:
        now = self.clock()

        def change(listing: Listing) -> None:
            listing.is_active = active
            listing.updated_at = now

        return self.engine.modify(Listing, listing_id, change)

    def delete(self, listing_id: str) -> bool:
        deleted = self.engine.delete_by_id(Listing, listing_id)
        if deleted:
            logger.info("Deleted listing %s", listing_id)
        return deleted

    # ---------------------------
    # counters
    # ---------------------------
    def record_view(self, listing_id: str) -> None:
        def change(listing: Listing) -> None:
            listing.views += 1

        self.queue.submit(f"view listing {listing_id}", self.engine.modify, Listing, listing_id, change)

    def toggle_favorite(self, user_id: str, listing_id: str) -> bool:
        """Flip the favorite relation and keep the listing's counter in step."""
        if self.favorites is None:
            raise RuntimeError("ListingCatalog was created without a favorites index")
        favorited = self.favorites.toggle_favorite(user_id, listing_id)
        delta = 1 if favorited else -1

        def change(listing: Listing) -> None:
            listing.favorites = max(listing.favorites + delta, 0)

        self.engine.modify(Listing, listing_id, change)
        return favorited

    def listing_stats(self, listing_id: str) -> Optional[ListingStats]:
        listing = self.get(listing_id)
        if listing is None:
            return None
        chats_about_listing = select(ChatModel.id).where(ChatModel.listing_id == listing_id)
        return ListingStats(
            total_messages=self.engine.count(Message, [MessageModel.chat_id.in_(chats_about_listing)]),
            days_active=max((self.clock() - listing.created_at).days, 0),
        )
