from datetime import timedelta

import pytest

from lessgo.schemas.listing import Category, Listing
from lessgo.schemas.message import Chat, Message
from lessgo.services.listings import ListingCatalog


@pytest.fixture
def catalog(engine, queue, clock):
    return ListingCatalog(engine, queue, clock=clock)


def test_active_listings_skip_sold_paused_and_drafts(catalog, engine, make_listing, clock):
    engine.upsert(make_listing("old"))
    engine.upsert(make_listing("new", created_at=clock.now + timedelta(hours=1)))
    engine.upsert(make_listing("sold", is_sold=True))
    engine.upsert(make_listing("paused", is_active=False))
    engine.upsert(make_listing("draft", is_draft=True))

    assert [l.id for l in catalog.active_listings()] == ["new", "old"]
    assert [l.id for l in catalog.active_listings(limit=1)] == ["new"]


def test_listings_by_price_range(catalog, engine, make_listing):
    for price in [10.0, 75.0, 150.0, 300.0]:
        engine.upsert(make_listing(f"p{int(price)}", price=price))

    assert [l.price for l in catalog.listings_by_price_range(50, 200)] == [75.0, 150.0]


def test_search_puts_featured_first(catalog, engine, make_listing, clock):
    engine.upsert(make_listing("plain-new", title="Bike", created_at=clock.now + timedelta(days=1)))
    engine.upsert(make_listing("featured-old", title="Kids bike", is_featured=True))
    engine.upsert(make_listing("lamp", title="Lamp"))

    assert [l.id for l in catalog.search("bike")] == ["featured-old", "plain-new"]


def test_search_by_category_and_price(catalog, engine, make_listing):
    engine.upsert(make_listing("bike", category=Category.sports, price=120.0))
    engine.upsert(make_listing("ball", category=Category.sports, price=15.0))
    engine.upsert(make_listing("novel", category=Category.books, price=12.0))

    assert [l.id for l in catalog.search(category=Category.sports, max_price=50)] == ["ball"]


def test_listings_for_seller(catalog, engine, make_listing):
    engine.upsert(make_listing("mine", seller_id="me"))
    engine.upsert(make_listing("sold-mine", seller_id="me", is_sold=True))
    engine.upsert(make_listing("theirs", seller_id="them"))

    assert sorted(l.id for l in catalog.listings_for_seller("me")) == ["mine", "sold-mine"]


def test_save_stamps_updated_at(catalog, make_listing, clock):
    clock.advance(days=2)
    saved = catalog.save(make_listing("bike"))
    assert saved.updated_at == clock.now


def test_mark_sold_and_reactivate(catalog, engine, make_listing):
    engine.upsert(make_listing("bike"))

    sold = catalog.mark_sold("bike")
    assert sold.is_sold and not sold.is_available
    assert catalog.active_listings() == []

    assert catalog.set_active("bike", False).is_active is False
    assert catalog.mark_sold("ghost") is None


def test_record_view_in_background(catalog, engine, queue, make_listing):
    engine.upsert(make_listing("bike"))

    catalog.record_view("bike")
    catalog.record_view("bike")
    catalog.record_view("ghost")
    queue.flush()

    assert engine.fetch_by_id(Listing, "bike").views == 2


def test_delete(catalog, engine, make_listing):
    engine.upsert(make_listing("bike"))
    assert catalog.delete("bike") is True
    assert catalog.get("bike") is None
    assert catalog.delete("bike") is False


def test_listing_stats(catalog, engine, make_listing, clock):
    engine.upsert(make_listing("bike", created_at=clock.now - timedelta(days=3)))
    engine.insert(Chat(id="c1", participants=["buyer", "seller-1"], listing_id="bike"))
    engine.insert(Chat(id="c2", participants=["buyer", "seller-1"], listing_id="lamp"))
    for n, chat_id in enumerate(["c1", "c1", "c2"]):
        engine.insert(Message(id=f"m{n}", chat_id=chat_id, sender_id="buyer", content="hi"))

    stats = catalog.listing_stats("bike")
    assert stats.total_messages == 2
    assert stats.days_active == 3
    assert catalog.listing_stats("ghost") is None


def test_save_applies_configured_lifetime(engine, queue, clock, make_listing):
    catalog = ListingCatalog(engine, queue, clock=clock, expiration_days=7)

    fresh = catalog.save(make_listing("fresh"))
    pinned = catalog.save(make_listing("pinned", expires_at=clock.now + timedelta(days=90)))
    forever = catalog.save(make_listing("forever", expires_at=None))

    assert fresh.expires_at == clock.now + timedelta(days=7)
    assert pinned.expires_at == clock.now + timedelta(days=90)
    assert forever.expires_at is None

    # a stored listing keeps its expiry on later edits
    fresh.title = "Fresh bike"
    assert ListingCatalog(engine, queue, clock=clock).save(fresh).expires_at == clock.now + timedelta(days=7)
