import pytest
from sqlalchemy import text

from lessgo.core.errors import PersistenceError
from lessgo.schemas.listing import Listing
from lessgo.services.favorites import FavoritesIndex
from lessgo.services.listings import ListingCatalog


@pytest.fixture
def favorites(store):
    return FavoritesIndex(store)


def test_toggle_twice_restores_state(favorites, engine, make_listing):
    engine.upsert(make_listing("bike"))

    assert favorites.is_favorited("buyer", "bike") is False
    assert favorites.toggle_favorite("buyer", "bike") is True
    assert favorites.is_favorited("buyer", "bike") is True
    assert favorites.toggle_favorite("buyer", "bike") is False
    assert favorites.is_favorited("buyer", "bike") is False


def test_unknown_pair_is_not_favorited(favorites):
    assert favorites.is_favorited("nobody", "nothing") is False


def test_favorites_are_per_user(favorites, engine, make_listing):
    engine.upsert(make_listing("bike"))
    engine.upsert(make_listing("lamp"))
    favorites.toggle_favorite("alice", "bike")
    favorites.toggle_favorite("alice", "lamp")
    favorites.toggle_favorite("bob", "lamp")

    assert favorites.favorite_ids("alice") == {"bike", "lamp"}
    assert favorites.favorite_ids("bob") == {"lamp"}
    assert sorted(l.id for l in favorites.favorites_for_user("alice")) == ["bike", "lamp"]
    assert favorites.favorited_by_count("lamp") == 2
    assert favorites.favorited_by_count("bike") == 1


def test_deleting_listing_drops_its_favorites(favorites, engine, make_listing):
    engine.upsert(make_listing("bike"))
    favorites.toggle_favorite("alice", "bike")

    engine.delete_by_id(Listing, "bike")

    assert favorites.is_favorited("alice", "bike") is False
    assert favorites.favorites_for_user("alice") == []


def test_toggle_failure_raises(store, favorites):
    with store.engine.begin() as conn:
        conn.execute(text("DROP TABLE favorites"))

    with pytest.raises(PersistenceError):
        favorites.toggle_favorite("alice", "bike")
    assert favorites.is_favorited("alice", "bike") is False
    assert favorites.favorite_ids("alice") == set()


def test_catalog_keeps_counter_in_step(favorites, engine, queue, make_listing):
    catalog = ListingCatalog(engine, queue, favorites)
    engine.upsert(make_listing("bike"))

    catalog.toggle_favorite("alice", "bike")
    catalog.toggle_favorite("bob", "bike")
    assert engine.fetch_by_id(Listing, "bike").favorites == 2

    catalog.toggle_favorite("alice", "bike")
    assert engine.fetch_by_id(Listing, "bike").favorites == 1
