"""
Web Push alerts.

Encryption and VAPID signing are handled by the push gateway; this sender
builds the notification payload and hands one ``{subscription, payload}``
document per subscription to the gateway.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Sequence

import httpx

from stockwatch.core.enums import NotificationChannel
from stockwatch.core.exceptions import ChannelConfigurationError
from stockwatch.core.utils import utc_now
from stockwatch.schemas.events import InventoryChangeEvent, NotificationResult
from stockwatch.schemas.preferences import PushSubscription

logger = logging.getLogger(__name__)

PUSH_TITLE = "🚨 IN STOCK!"
# Gateway statuses meaning the browser subscription is gone
EXPIRED_SUBSCRIPTION_STATUSES = (404, 410)


class PushSender:
    channel = NotificationChannel.PUSH

    def __init__(
        self,
        gateway_url: Optional[str],
        gateway_token: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        icon_url: str = "/icon-192.png",
        badge_url: str = "/badge-72.png",
        timeout_seconds: float = 10.0,
    ):
        self.gateway_url = gateway_url
        self.gateway_token = gateway_token
        self.icon_url = icon_url
        self.badge_url = badge_url
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout_seconds)

    def is_configured(self) -> bool:
        return bool(self.gateway_url)

    def build_payload(self, event: InventoryChangeEvent) -> Dict[str, Any]:
        product = event.product
        return {
            "title": PUSH_TITLE,
            "body": product.name,
            "icon": product.image_url or self.icon_url,
            "badge": self.badge_url,
            "tag": f"inventory-{product.id}",
            "data": {
                "url": product.add_to_cart_url,
                "productId": product.id,
            },
            "actions": [
                {"action": "add-to-cart", "title": "Add to Cart"},
                {"action": "view", "title": "View Product"},
            ],
            # Stay on screen until the user acts on it
            "requireInteraction": True,
        }

    async def send(
        self,
        request_id: str,
        subscriptions: Sequence[PushSubscription],
        event: InventoryChangeEvent,
    ) -> List[NotificationResult]:
        """Deliver to every subscription concurrently; one result per subscription"""
        if not self.is_configured():
            raise ChannelConfigurationError(
                self.channel.value,
                "Push sender is not configured (PUSH_GATEWAY_URL is required)",
            )

        payload = self.build_payload(event)
        logger.info(f"Sending push notification to {len(subscriptions)} subscription(s)")

        return list(
            await asyncio.gather(
                *[self._deliver(request_id, subscription, payload) for subscription in subscriptions]
            )
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    async def _deliver(
        self,
        request_id: str,
        subscription: PushSubscription,
        payload: Dict[str, Any],
    ) -> NotificationResult:
        document = {
            "subscription": subscription.model_dump(mode="json"),
            "payload": payload,
        }
        headers = {"Content-Type": "application/json"}
        if self.gateway_token:
            headers["Authorization"] = f"Bearer {self.gateway_token}"

        try:
            response = await self._client.post(self.gateway_url, json=document, headers=headers)
        except httpx.TimeoutException:
            return self._failed(request_id, "Push gateway request timed out")
        except httpx.HTTPError as e:
            return self._failed(request_id, f"Push gateway request failed: {str(e)}")

        if response.status_code in EXPIRED_SUBSCRIPTION_STATUSES:
            logger.warning(f"Push subscription expired: {subscription.endpoint[:60]}")
            return self._failed(request_id, f"Subscription expired (HTTP {response.status_code})")
        if response.status_code >= 400:
            return self._failed(request_id, f"Push gateway HTTP {response.status_code}: {response.text[:200]}")

        message_id = None
        try:
            data = response.json()
            if isinstance(data, dict):
                message_id = data.get("id") or data.get("messageId")
        except ValueError:
            pass

        return NotificationResult(
            request_id=request_id,
            channel=self.channel,
            success=True,
            message_id=message_id,
            timestamp=utc_now(),
        )

    def _failed(self, request_id: str, error: str) -> NotificationResult:
        logger.error(f"Push delivery failed: {error}")
        return NotificationResult(
            request_id=request_id,
            channel=self.channel,
            success=False,
            error=error,
            timestamp=utc_now(),
        )
