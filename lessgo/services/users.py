import uuid
from datetime import datetime
from typing import Callable, List, Optional

from lessgo.core.clock import utcnow
from lessgo.core.errors import ValidationError
from lessgo.core.log import get_logger
from lessgo.schemas.listing import Listing
from lessgo.schemas.message import Message
from lessgo.schemas.user import Badge, User, UserCreate, UserStats
from lessgo.services.persistence import PersistenceEngine
from lessgo.services.queries import ListingFilter, MessageFilter, UserFilter
from lessgo.services.write_queue import WriteQueue

logger = get_logger("lessgo.users")


class UserDirectory:
    def __init__(
        self,
        engine: PersistenceEngine,
        queue: WriteQueue,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.engine = engine
        self.queue = queue
        self.clock = clock

    def register(self, payload: UserCreate, user_id: Optional[str] = None) -> User:
        if self.engine.count(User, UserFilter(email=payload.email)):
            raise ValidationError("email", "An account with this email already exists")
        now = self.clock()
        user = User(
            id=user_id or str(uuid.uuid4()),
            email=payload.email,
            display_name=payload.display_name.strip(),
            phone_number=payload.phone_number,
            bio=payload.bio,
            badges=[Badge.new_user],
            date_joined=now,
            last_active=now,
        )
        created = self.engine.insert(user)
        logger.info("Registered user %s", created.id)
        return created

    def save(self, user: User) -> User:
        return self.engine.upsert(user)

    def get(self, user_id: str) -> Optional[User]:
        return self.engine.fetch_by_id(User, user_id)

    def all_users(self) -> List[User]:
        return self.engine.fetch_all(User)

    def find_by_name(self, text: str) -> List[User]:
        return self.engine.fetch_filtered(User, UserFilter(name_contains=text))

    def block_user(self, user_id: str, blocked_id: str) -> Optional[User]:
        """Add ``blocked_id`` to the user's block list. Blocking twice is a no-op."""
        if user_id == blocked_id:
            raise ValidationError("blocked_users", "You cannot block yourself")

        def change(user: User) -> None:
            if blocked_id not in user.blocked_users:
                user.blocked_users.append(blocked_id)

        return self.engine.modify(User, user_id, change)

    def unblock_user(self, user_id: str, blocked_id: str) -> Optional[User]:
        def change(user: User) -> None:
            user.blocked_users = [b for b in user.blocked_users if b != blocked_id]

        return self.engine.modify(User, user_id, change)

    def user_stats(self, user_id: str) -> Optional[UserStats]:
        user = self.get(user_id)
        if user is None:
            return None
        return UserStats(
            total_listings=self.engine.count(Listing, ListingFilter(seller_id=user_id, exclude_drafts=True)),
            total_messages=self.engine.count(Message, MessageFilter(sender_id=user_id)),
            average_rating=user.rating,
        )

    def touch(self, user_id: str) -> None:
        """Bump ``last_active`` in the background."""
        now = self.clock()

        def change(user: User) -> None:
            user.last_active = now

        self.queue.submit(f"touch user {user_id}", self.engine.modify, User, user_id, change)
