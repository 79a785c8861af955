"""
Base Inventory Provider Interface

This module defines the abstract base class that every retailer inventory
provider implements. Each provider handles the specifics of talking to a
retailer's API and normalizes the response to an ``InventoryCheckResult``.

Providers enforce their own rate limit; the poll scheduler never throttles
requests itself.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from stockwatch.core.enums import RetailerId
from stockwatch.core.exceptions import ProviderUnavailableError, RateLimitedError
from stockwatch.schemas.inventory import InventoryCheckResult, StoreLocation
from stockwatch.services.providers.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)


@dataclass
class ProviderConfig:
    """Configuration for an inventory provider"""
    api_key: str
    requests_per_second: float = 5.0
    requests_per_day: Optional[int] = None
    max_concurrent_requests: int = 5
    timeout_seconds: float = 10.0
    max_wait_seconds: float = 5.0
    base_url: Optional[str] = None


class BaseInventoryProvider(ABC):
    """Base class for all retailer inventory providers"""

    retailer_id: RetailerId
    retailer_name = "Generic Retailer"

    def __init__(self, config: ProviderConfig, client: Optional[httpx.AsyncClient] = None):
        """Initialize the provider

        Args:
            config: API key, rate limit and timeout settings
            client: Shared HTTP client; one is created (and owned) when omitted
        """
        self.config = config
        self.rate_limiter = RateLimiter(
            requests_per_second=config.requests_per_second,
            requests_per_day=config.requests_per_day,
            max_concurrent=config.max_concurrent_requests,
            max_wait_seconds=config.max_wait_seconds,
        )
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=config.timeout_seconds)

    @abstractmethod
    async def check_inventory(
        self,
        sku: str,
        store_locations: Optional[List[StoreLocation]] = None,
    ) -> InventoryCheckResult:
        """Check inventory for a product

        Args:
            sku: Retailer-specific product identifier
            store_locations: Optional stores to check for in-store pickup

        Returns:
            Normalized status and product links

        Raises:
            ProductNotFoundError: The retailer does not know the SKU
            ProviderUnavailableError: Network or HTTP failure
            RateLimitedError: The provider's rate limit could not be satisfied
        """
        pass

    @abstractmethod
    def get_add_to_cart_url(self, sku: str) -> str:
        pass

    @abstractmethod
    def get_product_url(self, sku: str) -> str:
        pass

    @abstractmethod
    async def validate_sku(self, sku: str) -> bool:
        """Return True if the SKU exists and can be monitored"""
        pass

    async def find_stores(self, zip_code: str, max_results: int = 10) -> List[StoreLocation]:
        """Search for stores near a ZIP code (optional capability)"""
        raise NotImplementedError(f"{self.retailer_name} does not support store search")

    async def _get_json(self, url: str, params: Optional[Dict[str, Any]] = None) -> Optional[Dict[str, Any]]:
        """
        Rate-limited GET returning parsed JSON.

        Returns None on 404 so callers can map it to ProductNotFoundError.
        """
        logger.debug(f"{self.retailer_name} GET {url}")
        async with self.rate_limiter.slot():
            try:
                response = await self._client.get(url, params=params)
            except httpx.TimeoutException as e:
                logger.error(f"{self.retailer_name} timeout: {str(e)}")
                raise ProviderUnavailableError(f"{self.retailer_name} request timed out: {str(e)}")
            except httpx.RequestError as e:
                logger.error(f"{self.retailer_name} network error: {str(e)}")
                raise ProviderUnavailableError(f"{self.retailer_name} network error: {str(e)}")

        if response.status_code == 404:
            return None
        if response.status_code == 429:
            raise RateLimitedError(f"{self.retailer_name} API throttled the request (429)")
        if response.status_code >= 400:
            logger.error(f"{self.retailer_name} API error {response.status_code}: {response.text[:200]}")
            raise ProviderUnavailableError(
                f"{self.retailer_name} API error: {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise ProviderUnavailableError(
                f"{self.retailer_name} returned invalid JSON: {str(e)}",
                status_code=response.status_code,
            )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
