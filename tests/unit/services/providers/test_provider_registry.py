# tests/unit/services/providers/test_provider_registry.py
import pytest

from stockwatch.core.config import Settings
from stockwatch.core.enums import RetailerId
from stockwatch.core.exceptions import UnsupportedRetailerError
from stockwatch.services.providers.bestbuy import BestBuyInventoryProvider
from stockwatch.services.providers.factory import ProviderRegistry, build_provider_registry


def test_registry_built_from_settings_registers_bestbuy():
    registry = build_provider_registry(Settings(BESTBUY_API_KEY="key", BESTBUY_REQUESTS_PER_SECOND=2.0))

    provider = registry.get_provider("bestbuy")

    assert isinstance(provider, BestBuyInventoryProvider)
    assert provider.config.api_key == "key"
    assert provider.rate_limiter.requests_per_second == 2.0
    assert registry.get_provider(RetailerId.BESTBUY) is provider
    assert registry.get_provider("BestBuy") is provider


def test_retailer_without_credentials_is_not_registered():
    registry = build_provider_registry(Settings(BESTBUY_API_KEY=""))

    assert registry.supported_retailers() == []
    assert registry.is_supported("bestbuy") is False


def test_unsupported_retailer_raises():
    registry = ProviderRegistry()

    with pytest.raises(UnsupportedRetailerError) as exc_info:
        registry.get_provider("walmart")

    assert exc_info.value.retailer == "walmart"
