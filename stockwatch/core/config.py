# stockwatch/core/config.py

import os
from functools import lru_cache
from typing import Annotated, List, Optional

from pydantic import BeforeValidator, ConfigDict
from pydantic_settings import BaseSettings, NoDecode

from stockwatch.core.exceptions import ConfigurationError


def _parse_csv_list(value):
    if value in (None, "", []):
        return []
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    if isinstance(value, (list, tuple, set)):
        return [str(item).strip() for item in value if str(item).strip()]
    return []


def _resolve_env_file() -> Optional[str]:
    """ENV_FILE when set, else ./.env; None when the file is missing"""
    env_file = os.environ.get('ENV_FILE', '.env')
    return env_file if os.path.exists(env_file) else None


class Settings(BaseSettings):
    """
    Service settings.
    Loads values from environment variables (.env file)
    """
    # Database settings
    DATABASE_URL: str = ""
    DATABASE_POOL_SIZE: int = 10
    DATABASE_MAX_OVERFLOW: int = 20

    # Best Buy API
    BESTBUY_API_KEY: str = ""
    BESTBUY_BASE_URL: str = "https://api.bestbuy.com/v1"
    BESTBUY_REQUESTS_PER_SECOND: float = 5.0
    BESTBUY_REQUESTS_PER_DAY: Optional[int] = None

    # Provider limits shared by every retailer adapter
    PROVIDER_TIMEOUT_SECONDS: float = 10.0
    PROVIDER_MAX_CONCURRENT_REQUESTS: int = 5
    RATE_LIMIT_MAX_WAIT_SECONDS: float = 5.0
    # Whole-check budget; unset means two provider calls plus two limiter waits
    CHECK_TIMEOUT_SECONDS: Optional[float] = None

    # Polling
    POLL_TICK_SECONDS: int = 10
    DEFAULT_POLL_INTERVAL_SECONDS: int = 30
    HIGH_PRIORITY_POLL_INTERVAL_SECONDS: int = 10
    POLL_MAX_CONCURRENCY: int = 10
    POLL_ENABLED: bool = True

    # History retention
    HISTORY_TTL_DAYS: int = 90
    HISTORY_CLEANUP_HOUR: int = 3

    # Queues
    INVENTORY_EVENTS_QUEUE: str = "inventory-events"
    NOTIFICATIONS_QUEUE: str = "notifications"
    QUEUE_LOCK_DURATION_SECONDS: int = 60
    EVENT_MAX_DELIVERY_COUNT: int = 10

    # Notifications
    NOTIFICATION_CHANNELS: Annotated[List[str], NoDecode, BeforeValidator(lambda v: _parse_csv_list(v))] = ["sms"]
    NOTIFICATION_MAX_ATTEMPTS: int = 3
    NOTIFICATION_PREFETCH: int = 8
    NOTIFICATION_POLL_INTERVAL_SECONDS: float = 1.0
    CHANNEL_SEND_TIMEOUT_SECONDS: float = 10.0

    # SMS gateway
    SMS_API_ENDPOINT: str = ""
    SMS_API_KEY: str = ""
    SMS_FROM_NUMBER: str = ""

    # Push gateway
    PUSH_GATEWAY_URL: str = ""
    PUSH_GATEWAY_TOKEN: str = ""
    PUSH_ICON_URL: str = "/icon-192.png"
    PUSH_BADGE_URL: str = "/badge-72.png"

    # Environment
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"
    DEBUG: bool = False

    model_config = ConfigDict(
        env_file=_resolve_env_file(),
        case_sensitive=True,
        extra="ignore",
    )

    @property
    def async_database_url(self) -> str:
        """DATABASE_URL with the asyncpg driver when a bare postgres URL is given."""
        url = self.DATABASE_URL
        if url.startswith('postgresql://'):
            url = url.replace('postgresql://', 'postgresql+asyncpg://', 1)
        return url

    @property
    def check_timeout_seconds(self) -> float:
        """Outer timeout for one product check (product lookup plus store lookup)."""
        if self.CHECK_TIMEOUT_SECONDS:
            return self.CHECK_TIMEOUT_SECONDS
        return 2 * (self.PROVIDER_TIMEOUT_SECONDS + self.RATE_LIMIT_MAX_WAIT_SECONDS)

    def validate_for_service(self) -> None:
        """Fail fast at boot when required configuration is missing."""
        missing = []
        if not self.DATABASE_URL:
            missing.append("DATABASE_URL")
        if not self.BESTBUY_API_KEY:
            missing.append("BESTBUY_API_KEY")
        if missing:
            raise ConfigurationError(
                f"Missing required configuration: {', '.join(missing)}"
            )


@lru_cache()
def get_settings():
    """Cached settings to avoid reloading the .env file"""
    return Settings()


def clear_settings_cache():
    """Clear the settings cache - useful when switching between environments"""
    get_settings.cache_clear()
