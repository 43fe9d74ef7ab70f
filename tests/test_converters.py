from sqlalchemy import select, text

from lessgo.models.listing import Listing as ListingModel
from lessgo.schemas.listing import Category, ItemCondition, Listing
from lessgo.schemas.location import Location, LocationType
from lessgo.schemas.message import Chat, Message, MessageType
from lessgo.schemas.user import Badge, User
from lessgo.services.converters import (
    decode_amount,
    decode_image,
    encode_amount,
    encode_image,
    enum_or_default,
)


def test_enum_fallbacks():
    assert enum_or_default(Category, "gadgets", Category.other) is Category.other
    assert enum_or_default(ItemCondition, None, ItemCondition.good) is ItemCondition.good
    assert enum_or_default(Category, "books", Category.other) is Category.books


def test_zero_and_negative_amounts_mean_absent():
    assert decode_amount(0) is None
    assert decode_amount(-4.0) is None
    assert decode_amount(12.5) == 12.5
    assert encode_amount(None) == 0.0
    assert encode_amount(7.25) == 7.25


def test_inline_image_bytes():
    ref = encode_image(b"\x89PNG", "image/png")
    assert ref.startswith("data:image/png;base64,")
    assert decode_image(ref) == b"\x89PNG"


def test_image_urls_pass_through():
    url = "https://img.lessgo.app/bike.jpg"
    assert encode_image(url) == url
    assert decode_image(url) is None


def test_absent_costs_are_stored_as_zero(store, engine, make_listing):
    engine.upsert(make_listing("bike", shipping_cost=None, original_price=None, delivery_radius=None))

    with store.session() as db:
        record = db.scalars(select(ListingModel).where(ListingModel.id == "bike")).one()
        assert (record.shipping_cost, record.original_price, record.delivery_radius) == (0, 0, 0)

    stored = engine.fetch_by_id(Listing, "bike")
    assert stored.shipping_cost is None
    assert stored.original_price is None
    assert stored.delivery_radius is None


def test_present_costs_survive(engine, make_listing):
    engine.upsert(make_listing("bike", shipping_cost=12.5, original_price=300.0, delivery_radius=5.0))

    stored = engine.fetch_by_id(Listing, "bike")
    assert stored.shipping_cost == 12.5
    assert stored.original_price == 300.0
    assert stored.delivery_radius == 5.0


def test_corrupted_enum_strings_fall_back(store, engine, make_listing):
    engine.upsert(make_listing("bike"))
    with store.session() as db:
        db.execute(
            text("UPDATE listings SET category = 'gadgets', condition = 'mint', location_type = 'moon' WHERE id = 'bike'")
        )

    stored = engine.fetch_by_id(Listing, "bike")
    assert stored.category is Category.other
    assert stored.condition is ItemCondition.good
    assert stored.location.location_type is LocationType.specific_address


def test_unknown_badges_are_dropped(store, engine, make_user):
    engine.upsert(make_user("u1", badges=[Badge.verified]))
    with store.session() as db:
        db.execute(text("""UPDATE users SET badges = '["verified", "legend"]' WHERE id = 'u1'"""))

    assert engine.fetch_by_id(User, "u1").badges == [Badge.verified]


def test_image_order_is_kept_and_rewritten(engine, make_listing):
    engine.upsert(make_listing("bike", images=["a.jpg", "b.jpg", "c.jpg"]))
    assert engine.fetch_by_id(Listing, "bike").images == ["a.jpg", "b.jpg", "c.jpg"]

    engine.upsert(make_listing("bike", images=["c.jpg", "a.jpg"]))
    assert engine.fetch_by_id(Listing, "bike").images == ["c.jpg", "a.jpg"]


def test_location_round_trip(engine, make_listing):
    spot = Location.at(30.27, -97.74, address="1 Congress Ave", city="Austin", meeting_instructions="Lobby")
    engine.upsert(make_listing("bike", location=spot))

    assert engine.fetch_by_id(Listing, "bike").location == spot


def test_read_message_reads_as_delivered(store, engine):
    engine.insert(Chat(id="chat-1", participants=["a", "b"]))
    engine.insert(Message(id="m1", chat_id="chat-1", sender_id="a", receiver_id="b", content="hi"))
    with store.session() as db:
        db.execute(text("UPDATE messages SET is_read = 1, is_delivered = 0 WHERE id = 'm1'"))

    stored = engine.fetch_by_id(Message, "m1")
    assert stored.is_read and stored.is_delivered


def test_unknown_message_type_reads_as_text(store, engine):
    engine.insert(Chat(id="chat-1", participants=["a", "b"]))
    engine.insert(Message(id="m1", chat_id="chat-1", sender_id="a", content="hi", message_type=MessageType.offer))
    with store.session() as db:
        db.execute(text("UPDATE messages SET message_type = 'sticker' WHERE id = 'm1'"))

    assert engine.fetch_by_id(Message, "m1").message_type is MessageType.text


def test_chat_keeps_participant_order_and_last_message(engine):
    last = Message(id="m9", chat_id="chat-1", sender_id="b", receiver_id="a", content="See you at 5")
    engine.insert(Chat(id="chat-1", participants=["b", "a"], last_message=last, unread_count=2))

    stored = engine.fetch_by_id(Chat, "chat-1")
    assert stored.participants == ["b", "a"]
    assert stored.last_message.id == "m9"
    assert stored.last_message.content == "See you at 5"
    assert stored.last_message.receiver_id == "a"
    assert stored.unread_count == 2
