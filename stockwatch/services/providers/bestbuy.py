"""
Best Buy inventory provider.

Uses the Best Buy Products API to check online and in-store availability.
Documentation: https://bestbuyapis.github.io/api-documentation/
"""

import logging
from typing import Any, Dict, List, Optional

from stockwatch.core.enums import RetailerId
from stockwatch.core.exceptions import ProductNotFoundError, ProviderError
from stockwatch.core.utils import to_iso, utc_now
from stockwatch.schemas.inventory import (
    AvailabilityState,
    InventoryCheckResult,
    InventoryStatus,
    StoreAvailability,
    StoreLocation,
)
from stockwatch.services.providers.base import BaseInventoryProvider

logger = logging.getLogger(__name__)

PRODUCT_FIELDS = (
    "sku,name,salePrice,url,image,addToCartUrl,onlineAvailability,"
    "onlineAvailabilityText,inStoreAvailability,inStoreAvailabilityText"
)
STORE_FIELDS = "storeId,name,address,city,region,postalCode,distance"
STORE_SEARCH_RADIUS_MILES = 25


class BestBuyInventoryProvider(BaseInventoryProvider):
    retailer_id = RetailerId.BESTBUY
    retailer_name = "Best Buy"

    DEFAULT_BASE_URL = "https://api.bestbuy.com/v1"

    @property
    def base_url(self) -> str:
        return (self.config.base_url or self.DEFAULT_BASE_URL).rstrip("/")

    def _params(self, **extra: Any) -> Dict[str, Any]:
        params = {"apiKey": self.config.api_key, "format": "json"}
        params.update(extra)
        return params

    async def check_inventory(
        self,
        sku: str,
        store_locations: Optional[List[StoreLocation]] = None,
    ) -> InventoryCheckResult:
        product = await self._fetch_product_details(sku)
        if product is None:
            raise ProductNotFoundError(sku, self.retailer_id.value)

        checked_at = to_iso(utc_now())
        online_available = bool(product.get("onlineAvailability"))
        status = InventoryStatus(
            online=AvailabilityState(
                available=online_available,
                last_known_available=checked_at if online_available else None,
            ),
            stores=[],
        )

        if store_locations:
            store_ids = [location.store_id for location in store_locations]
            rows = await self._fetch_store_availability(sku, store_ids)
            stores = []
            for row in rows:
                store = row.get("store") or {}
                available = bool(row.get("inStorePickup"))
                stores.append(
                    StoreAvailability(
                        store_id=str(store.get("storeId", "")),
                        available=available,
                        last_known_available=checked_at if available else None,
                    )
                )
            status.stores = stores

        return InventoryCheckResult(
            status=status,
            product_url=self.get_product_url(sku),
            add_to_cart_url=self.get_add_to_cart_url(sku),
            image_url=product.get("image") or None,
            product_name=product.get("name") or None,
        )

    def get_add_to_cart_url(self, sku: str) -> str:
        return f"https://api.bestbuy.com/click/-/{sku}/cart"

    def get_product_url(self, sku: str) -> str:
        return f"https://www.bestbuy.com/site/{sku}.p"

    async def validate_sku(self, sku: str) -> bool:
        try:
            return await self._fetch_product_details(sku) is not None
        except ProviderError as e:
            logger.warning(f"Could not validate Best Buy SKU {sku}: {str(e)}")
            return False

    async def find_stores(self, zip_code: str, max_results: int = 10) -> List[StoreLocation]:
        url = f"{self.base_url}/stores(area({zip_code},{STORE_SEARCH_RADIUS_MILES}))"
        data = await self._get_json(url, params=self._params(pageSize=str(max_results), show=STORE_FIELDS))
        if not data:
            return []

        return [
            StoreLocation(
                store_id=str(store.get("storeId", "")),
                store_name=store.get("name", ""),
                address=f"{store.get('address', '')}, {store.get('city', '')}, {store.get('region', '')}",
                zip_code=str(store.get("postalCode", "")),
            )
            for store in data.get("stores", [])
        ]

    async def _fetch_product_details(self, sku: str) -> Optional[Dict[str, Any]]:
        url = f"{self.base_url}/products(sku={sku})"
        data = await self._get_json(url, params=self._params(show=PRODUCT_FIELDS))
        if not data or not data.get("total") or not data.get("products"):
            return None
        return data["products"][0]

    async def _fetch_store_availability(self, sku: str, store_ids: List[str]) -> List[Dict[str, Any]]:
        # One call covers every requested store
        url = f"{self.base_url}/products/{sku}/stores.json"
        data = await self._get_json(url, params={"apiKey": self.config.api_key, "storeIds": ",".join(store_ids)})
        if not data:
            return []
        return data.get("stores") or []
