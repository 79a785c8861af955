"""
Message documents published to the queues.

Both documents are immutable once built: redelivery reuses the same payload
and retry bookkeeping belongs to the queue's delivery count.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import Field

from stockwatch.core.enums import ChangeEventType, NotificationChannel
from stockwatch.schemas.base import FrozenSchema


class ChangeEventProduct(FrozenSchema):
    id: str
    sku: str
    name: str
    retailer: str
    product_url: str
    add_to_cart_url: str
    image_url: Optional[str] = None


class StoreAvailabilitySummary(FrozenSchema):
    store_id: str
    store_name: str
    available: bool


class ChangeEventAvailability(FrozenSchema):
    online: bool
    stores: List[StoreAvailabilitySummary] = Field(default_factory=list)


class EventMetadata(FrozenSchema):
    correlation_id: str
    source: str


class InventoryChangeEvent(FrozenSchema):
    """Inventory change event published to the inventory-events queue"""
    event_id: str
    event_type: ChangeEventType
    timestamp: datetime
    product: ChangeEventProduct
    availability: ChangeEventAvailability
    metadata: EventMetadata

    def first_available_store_name(self) -> Optional[str]:
        for store in self.availability.stores:
            if store.available:
                return store.store_name
        return None


class NotificationRequest(FrozenSchema):
    """Notification delivery request queued on the notifications queue"""
    request_id: str
    timestamp: datetime
    trigger_event: InventoryChangeEvent
    # Kept as plain names so an unrecognised channel is skipped, not a parse failure
    channels: List[str]
    attempt_count: int = 0
    max_attempts: int = 3
    correlation_id: str


class NotificationResult(FrozenSchema):
    """Outcome of one channel (or one push subscription) for one dispatch attempt"""
    request_id: str
    channel: NotificationChannel
    success: bool
    error: Optional[str] = None
    message_id: Optional[str] = None
    timestamp: datetime
