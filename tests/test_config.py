from lessgo.core.config import Settings, get_settings


def test_defaults():
    settings = Settings(_env_file=None)

    assert settings.app_name == "LessGo"
    assert settings.database_url.startswith("sqlite:///")
    assert settings.database_url.endswith("lessgo.db")
    assert settings.reset_store_on_migration_failure is False
    assert settings.listing_expiration_days == 30
    assert settings.current_user_id == "currentUser"


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("LESSGO_DATABASE_URL", "sqlite://")
    monkeypatch.setenv("LESSGO_RESET_STORE_ON_MIGRATION_FAILURE", "true")
    monkeypatch.setenv("LESSGO_LISTING_EXPIRATION_DAYS", "14")

    settings = Settings(_env_file=None)

    assert settings.database_url == "sqlite://"
    assert settings.reset_store_on_migration_failure is True
    assert settings.listing_expiration_days == 14


def test_get_settings_is_cached():
    get_settings.cache_clear()
    try:
        assert get_settings() is get_settings()
    finally:
        get_settings.cache_clear()
