import pytest
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from lessgo.core.errors import PersistenceError
from lessgo.schemas.listing import Listing
from lessgo.schemas.message import Chat, Message
from lessgo.schemas.user import User
from lessgo.services.converters import mapper_for
from lessgo.services.queries import ListingFilter, Sort


def to_record(value):
    return mapper_for(type(value)).to_record(value)


def test_upsert_updates_in_place(engine, make_listing):
    engine.upsert(make_listing("bike", price=100.0))
    engine.upsert(make_listing("bike", price=80.0, title="Bike, price drop"))

    assert engine.count(Listing) == 1
    stored = engine.fetch_by_id(Listing, "bike")
    assert stored.price == 80.0
    assert stored.title == "Bike, price drop"


def test_upsert_retry_does_not_duplicate(engine, make_listing):
    listing = make_listing("bike")
    engine.upsert(listing)
    engine.upsert(listing)
    assert engine.count(Listing) == 1


def test_insert_keeps_existing_record(engine, make_listing):
    engine.insert(make_listing("bike", price=100.0))
    again = engine.insert(make_listing("bike", price=1.0))

    assert again.price == 100.0
    assert engine.fetch_by_id(Listing, "bike").price == 100.0


def test_update_existing_skips_missing(engine, make_listing):
    assert engine.update_existing(make_listing("ghost")) is False
    assert engine.fetch_by_id(Listing, "ghost") is None


def test_modify_and_delete_missing(engine):
    assert engine.modify(Listing, "nope", lambda listing: None) is None
    assert engine.delete_by_id(Listing, "nope") is False


def test_modify_applies_change(engine, make_listing):
    engine.upsert(make_listing("bike"))

    def bump(listing):
        listing.views += 3

    assert engine.modify(Listing, "bike", bump).views == 3
    assert engine.fetch_by_id(Listing, "bike").views == 3


def test_price_range_sorted_by_price(engine, make_listing):
    for n, price in enumerate([300.0, 10.0, 150.0, 75.0]):
        engine.upsert(make_listing(f"l{n}", price=price))

    found = engine.fetch_filtered(Listing, ListingFilter(min_price=50, max_price=200), Sort("price"))
    assert [l.price for l in found] == [75.0, 150.0]


def test_equal_sort_keys_break_ties_by_id(engine, make_listing):
    for listing_id in ["c", "a", "b"]:
        engine.upsert(make_listing(listing_id))

    found = engine.fetch_all(Listing, Sort("created_at", descending=True))
    assert [l.id for l in found] == ["a", "b", "c"]


def test_unknown_sort_field_degrades_to_empty(engine, make_listing):
    engine.upsert(make_listing("bike"))
    assert engine.fetch_all(Listing, Sort("colour")) == []


def test_free_text_search_is_case_insensitive(engine, make_listing):
    engine.upsert(make_listing("a", title="Mountain BIKE"))
    engine.upsert(make_listing("b", title="Desk", description="Fits a bike helmet underneath"))
    engine.upsert(make_listing("c", title="Lamp", tags=["bike-light"]))
    engine.upsert(make_listing("d", title="Sofa"))

    found = engine.fetch_filtered(Listing, ListingFilter(search_text="bike"))
    assert sorted(l.id for l in found) == ["a", "b", "c"]


def test_search_treats_wildcards_literally(engine, make_listing):
    engine.upsert(make_listing("a", title="100% cotton shirt"))
    engine.upsert(make_listing("b", title="1000 piece puzzle"))

    found = engine.fetch_filtered(Listing, ListingFilter(search_text="100%"))
    assert [l.id for l in found] == ["a"]


def test_available_only_filter(engine, make_listing):
    engine.upsert(make_listing("live"))
    engine.upsert(make_listing("sold", is_sold=True))
    engine.upsert(make_listing("paused", is_active=False))

    found = engine.fetch_filtered(Listing, ListingFilter(available_only=True))
    assert [l.id for l in found] == ["live"]


def test_limit_and_offset(engine, make_listing):
    for price in [1.0, 2.0, 3.0, 4.0]:
        engine.upsert(make_listing(f"p{int(price)}", price=price))

    page = engine.fetch_filtered(Listing, None, Sort("price"), limit=2, offset=1)
    assert [l.id for l in page] == ["p2", "p3"]


def test_listings_for_user_follow_owner(engine, make_listing, make_user):
    engine.upsert(make_user("seller-1"))
    engine.upsert(make_listing("mine", seller_id="seller-1"))
    engine.upsert(make_listing("theirs", seller_id="seller-2"))

    assert [l.id for l in engine.listings_for_user("seller-1")] == ["mine"]


def test_listing_for_chat(engine, make_listing):
    engine.upsert(make_listing("bike"))
    engine.insert(Chat(id="chat-1", participants=["buyer", "seller-1"], listing_id="bike"))
    engine.insert(Chat(id="chat-2", participants=["buyer", "seller-1"]))

    assert engine.listing_for_chat("chat-1").id == "bike"
    assert engine.listing_for_chat("chat-2") is None


def test_deleting_user_removes_their_listings(engine, make_listing, make_user):
    engine.upsert(make_user("seller-1"))
    engine.upsert(make_listing("bike", seller_id="seller-1"))

    assert engine.delete_by_id(User, "seller-1") is True
    assert engine.fetch_by_id(Listing, "bike") is None


def test_reads_degrade_and_writes_raise_when_table_is_gone(store, engine, make_listing):
    engine.upsert(make_listing("bike"))
    with store.engine.begin() as conn:
        conn.execute(text("DROP TABLE listings"))

    assert engine.fetch_all(Listing) == []
    assert engine.fetch_by_id(Listing, "bike") is None
    assert engine.count(Listing) == 0
    with pytest.raises(PersistenceError):
        engine.upsert(make_listing("bike"))


def test_unmapped_type_is_rejected(engine):
    with pytest.raises(TypeError):
        engine.fetch_all(dict)


def test_transaction_commits_all_or_nothing(engine, make_listing):
    with pytest.raises(PersistenceError):
        with engine.transaction() as tx:
            tx.insert(make_listing("bike"))
            tx.insert(Chat(id="chat-1", participants=["buyer", "seller-1"], listing_id="bike"))
            raise SQLAlchemyError("connection lost")

    assert engine.count(Listing) == 0
    assert engine.count(Chat) == 0

    with engine.transaction() as tx:
        tx.insert(make_listing("bike"))
        tx.modify(Listing, "bike", lambda listing: listing.model_copy(update={"views": 4}))

    assert engine.fetch_by_id(Listing, "bike").views == 4


def test_batch_merges_onto_existing_rows(store, engine, make_listing, clock):
    engine.upsert(make_listing("bike", price=100.0, images=["a.jpg", "b.jpg"]))
    engine.insert(Chat(id="chat-1", participants=["buyer", "seller-1"], listing_id="bike"))
    engine.insert(Message(id="m1", chat_id="chat-1", sender_id="buyer", content="old", timestamp=clock.now))

    with store.batch() as scratch:
        scratch.add(to_record(make_listing("bike", price=80.0, images=["c.jpg"])))
        scratch.add(to_record(Chat(id="chat-1", participants=["buyer", "seller-1"], listing_id="bike", is_pinned=True)))
        scratch.add(to_record(Message(id="m1", chat_id="chat-1", sender_id="buyer", content="new", timestamp=clock.now)))

    assert engine.count(Listing) == 1
    listing = engine.fetch_by_id(Listing, "bike")
    assert (listing.price, listing.images) == (80.0, ["c.jpg"])
    assert engine.fetch_by_id(Chat, "chat-1").is_pinned is True
    assert engine.count(Message) == 1
    assert engine.fetch_by_id(Message, "m1").content == "new"


def test_batch_merge_failure_raises_persistence_error(store, engine, clock):
    with store.engine.begin() as conn:
        conn.execute(text("DROP TABLE messages"))

    with pytest.raises(PersistenceError):
        with store.batch() as scratch:
            scratch.add(to_record(Message(id="m1", chat_id="chat-1", sender_id="buyer", content="hi", timestamp=clock.now)))
