# tests/unit/test_config.py
import pytest

from stockwatch.core.config import Settings, _resolve_env_file, clear_settings_cache, get_settings
from stockwatch.core.exceptions import ConfigurationError


def test_defaults():
    settings = Settings()

    assert settings.POLL_TICK_SECONDS == 10
    assert settings.DEFAULT_POLL_INTERVAL_SECONDS == 30
    assert settings.HIGH_PRIORITY_POLL_INTERVAL_SECONDS == 10
    assert settings.HISTORY_TTL_DAYS == 90
    assert settings.NOTIFICATION_MAX_ATTEMPTS == 3
    assert settings.NOTIFICATION_CHANNELS == ["sms"]


def test_notification_channels_accept_comma_separated_env(monkeypatch):
    monkeypatch.setenv("NOTIFICATION_CHANNELS", "sms, push")

    assert Settings().NOTIFICATION_CHANNELS == ["sms", "push"]


def test_postgres_url_gets_async_driver():
    settings = Settings(DATABASE_URL="postgresql://user:pass@db/stockwatch")

    assert settings.async_database_url == "postgresql+asyncpg://user:pass@db/stockwatch"


def test_validate_for_service_lists_missing_settings():
    with pytest.raises(ConfigurationError) as exc_info:
        Settings(DATABASE_URL="", BESTBUY_API_KEY="").validate_for_service()

    assert "DATABASE_URL" in str(exc_info.value)
    assert "BESTBUY_API_KEY" in str(exc_info.value)


def test_validate_for_service_passes_when_configured():
    Settings(DATABASE_URL="sqlite+aiosqlite:///x.db", BESTBUY_API_KEY="key").validate_for_service()


def test_get_settings_is_cached(monkeypatch):
    clear_settings_cache()
    first = get_settings()

    assert get_settings() is first

    clear_settings_cache()
    assert get_settings() is not first
    clear_settings_cache()


def test_check_timeout_covers_both_provider_calls_and_limiter_waits():
    settings = Settings(PROVIDER_TIMEOUT_SECONDS=10, RATE_LIMIT_MAX_WAIT_SECONDS=5)

    assert settings.check_timeout_seconds == 30
    assert Settings(CHECK_TIMEOUT_SECONDS=12).check_timeout_seconds == 12


def test_env_file_from_env_var_is_used_without_local_dotenv(monkeypatch, tmp_path):
    env_file = tmp_path / "service.env"
    env_file.write_text("LOG_LEVEL=DEBUG\n")
    monkeypatch.chdir(tmp_path)  # no ./.env here
    monkeypatch.setenv("ENV_FILE", str(env_file))

    assert _resolve_env_file() == str(env_file)


def test_missing_env_file_resolves_to_none(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("ENV_FILE", raising=False)

    assert _resolve_env_file() is None

    (tmp_path / ".env").write_text("LOG_LEVEL=DEBUG\n")
    assert _resolve_env_file() == ".env"
