"""
Change event publisher.

Publishes inventory change events and notification requests onto the durable
queues. Delivery is at-least-once: consumers of ``inventory-events`` must be
idempotent by ``eventId``. Nothing here retries; a failure surfaces as
``PublishError`` for the caller's product check, while the state change that
was already persisted stays the source of truth.
"""

import logging
from datetime import datetime
from typing import List, Optional

from stockwatch.core.enums import (
    EVENT_SOURCE_INVENTORY_MONITOR,
    NOTIFICATION_SUBJECT,
    NotificationChannel,
)
from stockwatch.core.exceptions import PublishError, QueueError
from stockwatch.core.utils import new_id
from stockwatch.models.product import MonitoredProduct
from stockwatch.schemas.events import (
    ChangeEventAvailability,
    ChangeEventProduct,
    EventMetadata,
    InventoryChangeEvent,
    NotificationRequest,
    StoreAvailabilitySummary,
)
from stockwatch.schemas.inventory import InventoryCheckResult
from stockwatch.services.availability import AvailabilityTransition
from stockwatch.services.message_queue import MessageQueue

logger = logging.getLogger(__name__)


def _store_names(product: MonitoredProduct) -> dict:
    names = {}
    for location in product.store_locations or []:
        store_id = str(location.get("storeId", ""))
        if store_id:
            names[store_id] = location.get("storeName") or store_id
    return names


def build_change_event(
    product: MonitoredProduct,
    result: InventoryCheckResult,
    transition: AvailabilityTransition,
    timestamp: datetime,
    correlation_id: str,
    source: str = EVENT_SOURCE_INVENTORY_MONITOR,
) -> InventoryChangeEvent:
    """Snapshot the product and its per-location availability at the time of the transition"""
    names = _store_names(product)
    return InventoryChangeEvent(
        event_id=new_id(),
        event_type=transition.change_event_type,
        timestamp=timestamp,
        product=ChangeEventProduct(
            id=product.id,
            sku=product.sku,
            name=product.name,
            retailer=product.retailer,
            product_url=result.product_url,
            add_to_cart_url=result.add_to_cart_url,
            image_url=result.image_url or product.image_url,
        ),
        availability=ChangeEventAvailability(
            online=result.status.online.available,
            stores=[
                StoreAvailabilitySummary(
                    store_id=store.store_id,
                    store_name=names.get(store.store_id, store.store_id),
                    available=store.available,
                )
                for store in result.status.stores
            ],
        ),
        metadata=EventMetadata(correlation_id=correlation_id, source=source),
    )


def build_notification_request(
    event: InventoryChangeEvent,
    channels: List[NotificationChannel],
    max_attempts: int,
    timestamp: Optional[datetime] = None,
) -> NotificationRequest:
    return NotificationRequest(
        request_id=new_id(),
        timestamp=timestamp or event.timestamp,
        trigger_event=event,
        channels=[NotificationChannel(channel).value for channel in channels],
        attempt_count=0,
        max_attempts=max_attempts,
        correlation_id=event.metadata.correlation_id,
    )


class EventPublisher:
    def __init__(
        self,
        queue: MessageQueue,
        events_queue_name: str = "inventory-events",
        notifications_queue_name: str = "notifications",
    ):
        self.queue = queue
        self.events_queue_name = events_queue_name
        self.notifications_queue_name = notifications_queue_name

    async def publish_change_event(self, event: InventoryChangeEvent) -> None:
        try:
            await self.queue.send(
                self.events_queue_name,
                event.to_payload(),
                message_id=event.event_id,
                subject=event.event_type.value,
                correlation_id=event.metadata.correlation_id,
                application_properties={
                    "retailer": event.product.retailer,
                    "productId": event.product.id,
                    "sku": event.product.sku,
                },
            )
        except QueueError as e:
            raise PublishError(f"Failed to publish {event.event_type.value} for {event.product.sku}: {str(e)}") from e

        logger.info(f"Published {event.event_type.value} event {event.event_id} for {event.product.sku}")

    async def queue_notification(self, request: NotificationRequest) -> None:
        try:
            await self.queue.send(
                self.notifications_queue_name,
                request.to_payload(),
                message_id=request.request_id,
                subject=NOTIFICATION_SUBJECT,
                correlation_id=request.correlation_id,
            )
        except QueueError as e:
            raise PublishError(
                f"Failed to queue notification for {request.trigger_event.product.sku}: {str(e)}"
            ) from e

        logger.info(f"Queued notification {request.request_id} for {request.trigger_event.product.sku}")
