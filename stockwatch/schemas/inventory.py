"""
Schemas for normalized inventory data returned by retailer providers.
"""

from typing import List, Optional

from pydantic import Field

from stockwatch.schemas.base import BaseSchema


class StoreLocation(BaseSchema):
    """Physical store location for inventory checks"""
    store_id: str
    store_name: str
    address: Optional[str] = None
    zip_code: str = ""


class AvailabilityState(BaseSchema):
    """Availability for a single location (online or store)"""
    available: bool = False
    quantity: Optional[int] = None
    last_known_available: Optional[str] = None  # ISO 8601


class StoreAvailability(AvailabilityState):
    store_id: str


class InventoryStatus(BaseSchema):
    online: AvailabilityState = Field(default_factory=AvailabilityState)
    stores: List[StoreAvailability] = Field(default_factory=list)

    @property
    def is_available(self) -> bool:
        """Online OR any store location"""
        return self.online.available or any(store.available for store in self.stores)


class InventoryCheckResult(BaseSchema):
    """Result of a provider inventory check"""
    status: InventoryStatus
    product_url: str
    add_to_cart_url: str
    image_url: Optional[str] = None
    product_name: Optional[str] = None
