from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


# repository root, the default home of the on-device store
BASE_DIR = Path(__file__).resolve().parent.parent.parent


class Settings(BaseSettings):
    # app
    app_name: str = "LessGo"
    app_env: str = "dev"
    log_level: str = "INFO"

    # store
    database_url: str = f"sqlite:///{BASE_DIR / 'lessgo.db'}"
    echo_sql: bool = False

    # Destructive fallback when a schema migration fails.
    # Off by default: turning it on deletes every local record on failure.
    reset_store_on_migration_failure: bool = False

    # listings
    listing_expiration_days: int = 30
    inline_image_mime: str = "image/jpeg"

    # Authentication is stubbed, this is the identity handed to every service
    current_user_id: str = "currentUser"
    current_user_name: str = "Me"

    model_config = SettingsConfigDict(
        env_prefix="LESSGO_",
        env_file=".env",
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()
