import pytest

from lessgo.core.config import Settings
from lessgo.core.identity import DefaultIdentityProvider, Identity, IdentityProvider
from lessgo.main import bootstrap
from lessgo.schemas.draft import CreateListingStep


def test_bootstrap_wires_services():
    settings = Settings(_env_file=None, database_url="sqlite://", listing_expiration_days=10)

    with bootstrap(settings, seed=True) as market:
        assert market.identity.user_id == "currentUser"
        assert market.store.is_open
        assert len(market.listings.active_listings()) == 2
        assert [p.id for p in market.chats.list_chat_previews("user1")] == ["chat2", "chat1"]

        workflow = market.new_draft_workflow()
        assert workflow.seller_id == "currentUser"
        assert workflow.current_step is CreateListingStep.photos
        assert (workflow.draft.expires_at - workflow.draft.created_at).days == 10

        workflow.update_title("Desk")
        market.queue.flush()
        resumed = market.resume_draft(workflow.draft.id)
        assert resumed.draft.title == "Desk"

    assert not market.store.is_open


def test_custom_identity():
    settings = Settings(_env_file=None, database_url="sqlite://")
    market = bootstrap(settings, identity_provider=DefaultIdentityProvider("ana", "Ana"))
    try:
        assert market.chats.identity.user_id == "ana"
        assert market.new_draft_workflow().seller_id == "ana"
    finally:
        market.close()


def test_identity_provider_must_implement_current():
    with pytest.raises(TypeError):
        IdentityProvider()

    class SignedIn(IdentityProvider):
        def current(self):
            return Identity(user_id="u-42", display_name="Kim")

    settings = Settings(_env_file=None, database_url="sqlite://")
    with bootstrap(settings, identity_provider=SignedIn()) as market:
        assert market.identity.user_id == "u-42"
