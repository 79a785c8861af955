"""
Inventory provider registry.

The registry is built once at startup from settings and handed to the poll
scheduler; it is not mutated afterwards.
"""
import logging
from typing import Dict, Iterable, List, Optional, Type, Union

import httpx

from stockwatch.core.config import Settings
from stockwatch.core.enums import RetailerId
from stockwatch.core.exceptions import UnsupportedRetailerError
from stockwatch.services.providers.base import BaseInventoryProvider, ProviderConfig
from stockwatch.services.providers.bestbuy import BestBuyInventoryProvider

logger = logging.getLogger(__name__)

PROVIDER_CLASSES: Dict[RetailerId, Type[BaseInventoryProvider]] = {
    RetailerId.BESTBUY: BestBuyInventoryProvider,
}


def _key(retailer: Union[RetailerId, str]) -> str:
    if isinstance(retailer, RetailerId):
        return retailer.value
    return str(retailer).lower()


class ProviderRegistry:
    """Maps retailer ids to their provider instances"""

    def __init__(self, providers: Iterable[BaseInventoryProvider] = ()):
        self._providers: Dict[str, BaseInventoryProvider] = {}
        for provider in providers:
            self._providers[_key(provider.retailer_id)] = provider

    def get_provider(self, retailer: Union[RetailerId, str]) -> BaseInventoryProvider:
        """
        Get the provider for a retailer

        Raises:
            UnsupportedRetailerError: If no provider is registered for the retailer
        """
        provider = self._providers.get(_key(retailer))
        if provider is None:
            raise UnsupportedRetailerError(_key(retailer))
        return provider

    def is_supported(self, retailer: Union[RetailerId, str]) -> bool:
        return _key(retailer) in self._providers

    def supported_retailers(self) -> List[str]:
        return list(self._providers.keys())

    async def aclose(self) -> None:
        for provider in self._providers.values():
            await provider.aclose()


def build_provider_registry(settings: Settings, client: Optional[httpx.AsyncClient] = None) -> ProviderRegistry:
    """
    Build the registry from settings

    Only retailers with credentials configured are registered.
    """
    providers: List[BaseInventoryProvider] = []

    if settings.BESTBUY_API_KEY:
        config = ProviderConfig(
            api_key=settings.BESTBUY_API_KEY,
            requests_per_second=settings.BESTBUY_REQUESTS_PER_SECOND,
            requests_per_day=settings.BESTBUY_REQUESTS_PER_DAY,
            max_concurrent_requests=settings.PROVIDER_MAX_CONCURRENT_REQUESTS,
            timeout_seconds=settings.PROVIDER_TIMEOUT_SECONDS,
            max_wait_seconds=settings.RATE_LIMIT_MAX_WAIT_SECONDS,
            base_url=settings.BESTBUY_BASE_URL,
        )
        providers.append(PROVIDER_CLASSES[RetailerId.BESTBUY](config, client=client))

    registry = ProviderRegistry(providers)
    logger.info(f"Inventory providers registered: {', '.join(registry.supported_retailers()) or 'none'}")
    return registry
