from typing import List, Set

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from lessgo.core.database import Store
from lessgo.core.errors import PersistenceError
from lessgo.core.log import get_logger
from lessgo.models.favorite import Favorite
from lessgo.models.listing import Listing as ListingModel
from lessgo.schemas.listing import Listing
from lessgo.services.converters import mapper_for

logger = get_logger("lessgo.favorites")


class FavoritesIndex:
    """Many-to-many "user favorited listing" relation.

    The relation does not touch ``Listing.favorites``; that counter is a
    separate denormalized field maintained by the listing catalog.
    """

    def __init__(self, store: Store):
        self.store = store

    def toggle_favorite(self, user_id: str, listing_id: str) -> bool:
        """Flip the relation and return the new state (True = favorited)."""
        try:
            # read and write share one transaction under the store's writer lock
            with self.store.session() as db:
                existing = db.get(Favorite, (user_id, listing_id))
                if existing is not None:
                    db.delete(existing)
                    favorited = False
                else:
                    db.add(Favorite(user_id=user_id, listing_id=listing_id))
                    favorited = True
        except SQLAlchemyError as e:
            logger.error("Error toggling favorite %s/%s: %s", user_id, listing_id, e)
            raise PersistenceError(f"Could not update favorite for listing {listing_id}") from e
        logger.debug("User %s %s listing %s", user_id, "favorited" if favorited else "unfavorited", listing_id)
        return favorited

    def is_favorited(self, user_id: str, listing_id: str) -> bool:
        try:
            with self.store.session() as db:
                return db.get(Favorite, (user_id, listing_id)) is not None
        except SQLAlchemyError as e:
            logger.error("Error checking favorite %s/%s: %s", user_id, listing_id, e)
            return False

    def favorites_for_user(self, user_id: str) -> List[Listing]:
        """Favorited listings, most recently favorited first."""
        mapper = mapper_for(Listing)
        try:
            with self.store.session() as db:
                records = (
                    db.query(ListingModel)
                    .join(Favorite, Favorite.listing_id == ListingModel.id)
                    .filter(Favorite.user_id == user_id)
                    .order_by(Favorite.created_at.desc(), ListingModel.id.asc())
                    .all()
                )
                listings = []
                for record in records:
                    try:
                        listings.append(mapper.to_domain(record))
                    except ValueError as e:
                        logger.error("Skipping unreadable listing %s: %s", record.id, e)
                return listings
        except SQLAlchemyError as e:
            logger.error("Error fetching favorites of %s: %s", user_id, e)
            return []

    def favorite_ids(self, user_id: str) -> Set[str]:
        try:
            with self.store.session() as db:
                rows = db.query(Favorite.listing_id).filter(Favorite.user_id == user_id).all()
                return {listing_id for (listing_id,) in rows}
        except SQLAlchemyError as e:
            logger.error("Error fetching favorite ids of %s: %s", user_id, e)
            return set()

    def favorited_by_count(self, listing_id: str) -> int:
        try:
            with self.store.session() as db:
                return db.query(func.count()).select_from(Favorite).filter(Favorite.listing_id == listing_id).scalar() or 0
        except SQLAlchemyError as e:
            logger.error("Error counting favorites of %s: %s", listing_id, e)
            return 0
