from lessgo.schemas.listing import Listing
from lessgo.schemas.message import Chat, Message
from lessgo.schemas.user import User
from lessgo.services.seed import seed_sample_data


def test_seed_writes_sample_data(store, engine, clock):
    assert seed_sample_data(store, clock=clock) is True

    assert [u.display_name for u in engine.fetch_all(User)] == ["John Smith", "Mike Wilson", "Sarah Johnson"]
    assert engine.count(Listing) == 2
    assert engine.fetch_by_id(Listing, "listing1").images == ["sample1.jpg"]

    chat = engine.fetch_by_id(Chat, "chat1")
    assert chat.participants == ["user1", "user2"]
    assert chat.listing_id == "listing1"
    assert chat.last_message.content == "Is this still available?"
    assert engine.count(Message) == 2


def test_seed_runs_once(store, engine, clock):
    seed_sample_data(store, clock=clock)
    assert seed_sample_data(store, clock=clock) is False

    assert engine.count(User) == 3
    assert engine.count(Chat) == 2
    assert engine.count(Message) == 2
