from dataclasses import dataclass
from typing import Optional

from lessgo.core.config import Settings, get_settings
from lessgo.core.database import Store
from lessgo.core.identity import DefaultIdentityProvider, Identity, IdentityProvider
from lessgo.core.log import configure_logging, get_logger
from lessgo.services.chats import ChatService
from lessgo.services.drafts import DraftWorkflow
from lessgo.services.favorites import FavoritesIndex
from lessgo.services.listings import ListingCatalog
from lessgo.services.persistence import PersistenceEngine
from lessgo.services.seed import seed_sample_data
from lessgo.services.users import UserDirectory
from lessgo.services.write_queue import WriteQueue

logger = get_logger("lessgo.main")


@dataclass
class Marketplace:
    """Every service of the local store, wired to one open store handle."""

    settings: Settings
    identity: Identity
    store: Store
    engine: PersistenceEngine
    queue: WriteQueue
    favorites: FavoritesIndex
    users: UserDirectory
    listings: ListingCatalog
    chats: ChatService

    def new_draft_workflow(self) -> DraftWorkflow:
        return DraftWorkflow(
            self.engine,
            self.queue,
            self.identity.user_id,
            expiration_days=self.settings.listing_expiration_days,
            image_mime=self.settings.inline_image_mime,
        )

    def resume_draft(self, draft_id: str) -> Optional[DraftWorkflow]:
        return DraftWorkflow.resume(
            self.engine,
            self.queue,
            draft_id,
            expiration_days=self.settings.listing_expiration_days,
            image_mime=self.settings.inline_image_mime,
        )

    def close(self) -> None:
        # pending background writes land before the store goes away
        self.queue.flush()
        self.queue.close()
        self.store.close()
        logger.info("%s shut down", self.settings.app_name)

    def __enter__(self) -> "Marketplace":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


def bootstrap(
    settings: Optional[Settings] = None,
    identity_provider: Optional[IdentityProvider] = None,
    seed: bool = False,
) -> Marketplace:
    # --- Load settings ---
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    # --- Open store (runs migrations) ---
    store = Store(
        settings.database_url,
        echo=settings.echo_sql,
        allow_destructive_reset=settings.reset_store_on_migration_failure,
    ).open()

    provider = identity_provider or DefaultIdentityProvider(settings.current_user_id, settings.current_user_name)
    identity = provider.current()

    # --- Services ---
    engine = PersistenceEngine(store)
    queue = WriteQueue()
    favorites = FavoritesIndex(store)
    marketplace = Marketplace(
        settings=settings,
        identity=identity,
        store=store,
        engine=engine,
        queue=queue,
        favorites=favorites,
        users=UserDirectory(engine, queue),
        listings=ListingCatalog(engine, queue, favorites, expiration_days=settings.listing_expiration_days),
        chats=ChatService(engine, identity, image_mime=settings.inline_image_mime),
    )

    if seed:
        seed_sample_data(store)

    logger.info("%s ready (%s) as %s", settings.app_name, settings.app_env, identity.user_id)
    return marketplace
