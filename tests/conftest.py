import itertools
from datetime import datetime, timedelta

import pytest

from lessgo.core.database import Store
from lessgo.core.identity import Identity
from lessgo.schemas.listing import Category, ItemCondition, Listing
from lessgo.schemas.location import Location
from lessgo.schemas.user import User
from lessgo.services.persistence import PersistenceEngine
from lessgo.services.write_queue import WriteQueue

FIXED_NOW = datetime(2024, 5, 1, 12, 0, 0)


class FakeClock:
    def __init__(self, now: datetime = FIXED_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


@pytest.fixture
def store():
    s = Store("sqlite://").open()
    yield s
    s.close()


@pytest.fixture
def engine(store):
    return PersistenceEngine(store)


@pytest.fixture
def queue():
    q = WriteQueue("test-writes")
    yield q
    q.close()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def me():
    return Identity(user_id="currentUser", display_name="Me")


@pytest.fixture
def ids():
    counter = itertools.count(1)
    return lambda: f"id{next(counter)}"


@pytest.fixture
def make_listing():
    def _make(listing_id="listing-1", seller_id="seller-1", price=25.0, **fields):
        fields.setdefault("title", f"Item {listing_id}")
        fields.setdefault("description", "Gently used")
        fields.setdefault("category", Category.sports)
        fields.setdefault("condition", ItemCondition.good)
        fields.setdefault("images", ["https://img.lessgo.app/1.jpg"])
        fields.setdefault("location", Location.general_city("Austin", "TX"))
        fields.setdefault("created_at", FIXED_NOW)
        fields.setdefault("updated_at", FIXED_NOW)
        return Listing(id=listing_id, seller_id=seller_id, price=price, **fields)

    return _make


@pytest.fixture
def make_user():
    def _make(user_id="seller-1", display_name="Sam Seller", **fields):
        fields.setdefault("email", f"{user_id}@lessgo.app")
        return User(id=user_id, display_name=display_name, **fields)

    return _make
