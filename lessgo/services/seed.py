"""Sample users, listings and conversations for a fresh store."""
from datetime import datetime, timedelta
from typing import Callable

from lessgo.core.clock import utcnow
from lessgo.core.database import Store
from lessgo.core.log import get_logger
from lessgo.models.chat import Chat as ChatModel
from lessgo.schemas.listing import Category, ItemCondition, Listing
from lessgo.schemas.location import Location
from lessgo.schemas.message import Chat, Message
from lessgo.schemas.user import User
from lessgo.services.converters import mapper_for

logger = get_logger("lessgo.seed")

SAMPLE_LOCATION = Location.at(37.7749, -122.4194, address="123 Main St", city="San Francisco")


def sample_users(now: datetime):
    return [
        User(id="user1", email="john@example.com", display_name="John Smith", date_joined=now, last_active=now),
        User(id="user2", email="sarah@example.com", display_name="Sarah Johnson", date_joined=now, last_active=now),
        User(id="user3", email="mike@example.com", display_name="Mike Wilson", date_joined=now, last_active=now),
    ]


def sample_listings(now: datetime):
    return [
        Listing(
            id="listing1",
            seller_id="user1",
            title="iPhone 14 Pro Max",
            description="Excellent condition iPhone 14 Pro Max, 256GB.",
            price=899.99,
            category=Category.electronics,
            condition=ItemCondition.excellent,
            images=["sample1.jpg"],
            location=SAMPLE_LOCATION,
            created_at=now,
            updated_at=now,
        ),
        Listing(
            id="listing2",
            seller_id="user2",
            title="Nike Air Jordan 1",
            description="Authentic Nike Air Jordan 1 in size 10.",
            price=150.00,
            category=Category.clothing,
            condition=ItemCondition.good,
            images=["sample2.jpg"],
            location=SAMPLE_LOCATION,
            created_at=now,
            updated_at=now,
        ),
    ]


def sample_conversations(now: datetime):
    # (participants, listing, sender, text)
    threads = [
        (["user1", "user2"], "listing1", "user2", "Is this still available?"),
        (["user1", "user3"], "listing2", "user3", "What's your best price?"),
    ]
    chats, messages = [], []
    for n, (participants, listing_id, sender, text) in enumerate(threads, start=1):
        sent_at = now - timedelta(minutes=len(threads) - n)
        message = Message(
            id=f"message{n}",
            chat_id=f"chat{n}",
            sender_id=sender,
            receiver_id=next(p for p in participants if p != sender),
            content=text,
            timestamp=sent_at,
        )
        chats.append(
            Chat(
                id=f"chat{n}",
                participants=participants,
                listing_id=listing_id,
                last_message=message,
                created_at=sent_at,
                updated_at=sent_at,
            )
        )
        messages.append(message)
    return chats, messages


def seed_sample_data(store: Store, clock: Callable[[], datetime] = utcnow) -> bool:
    """Write the sample data set unless the store already holds chats.

    Returns True if anything was written.
    """
    with store.session() as db:
        if db.query(ChatModel).count():
            logger.info("Store already has chats, skipping sample data")
            return False

    now = clock()
    chats, messages = sample_conversations(now)
    values = [*sample_users(now), *sample_listings(now), *chats, *messages]

    with store.batch() as scratch:
        for value in values:
            scratch.add(mapper_for(type(value)).to_record(value))

    logger.info("Seeded %d sample records", len(values))
    return True
