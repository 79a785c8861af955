# tests/unit/services/notifications/test_push_sender.py
import json

import httpx
import pytest

from conftest import make_notification_request
from stockwatch.core.enums import NotificationChannel
from stockwatch.core.exceptions import ChannelConfigurationError
from stockwatch.schemas.preferences import PushSubscription
from stockwatch.services.notifications.push import PushSender

SUBSCRIPTIONS = [
    PushSubscription.model_validate(
        {"endpoint": "https://push.example/sub-1", "keys": {"p256dh": "key-1", "auth": "auth-1"}}
    ),
    PushSubscription.model_validate(
        {"endpoint": "https://push.example/sub-2", "keys": {"p256dh": "key-2", "auth": "auth-2"}}
    ),
]


def make_sender(handler, gateway_url="https://push.test/send") -> PushSender:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return PushSender(gateway_url, gateway_token="token", client=client)


def test_payload_shape():
    event = make_notification_request().trigger_event
    sender = make_sender(lambda r: httpx.Response(201))

    payload = sender.build_payload(event)

    assert payload["title"] == "🚨 IN STOCK!"
    assert payload["body"] == event.product.name
    assert payload["icon"] == event.product.image_url
    assert payload["badge"] == "/badge-72.png"
    assert payload["tag"] == f"inventory-{event.product.id}"
    assert payload["data"] == {"url": event.product.add_to_cart_url, "productId": event.product.id}
    assert [a["action"] for a in payload["actions"]] == ["add-to-cart", "view"]
    assert payload["requireInteraction"] is True


def test_payload_icon_falls_back_to_default():
    event = make_notification_request().trigger_event
    event = event.model_copy(update={"product": event.product.model_copy(update={"image_url": None})})

    assert make_sender(lambda r: httpx.Response(201)).build_payload(event)["icon"] == "/icon-192.png"


@pytest.mark.asyncio
async def test_each_subscription_gets_its_own_result():
    request = make_notification_request(channels=("push",))
    posted = []

    def handler(http_request):
        document = json.loads(http_request.content)
        posted.append(document)
        if document["subscription"]["endpoint"].endswith("sub-2"):
            return httpx.Response(410, text="gone")
        return httpx.Response(201, json={"id": "push-1"})

    results = await make_sender(handler).send(request.request_id, SUBSCRIPTIONS, request.trigger_event)

    assert len(posted) == 2
    assert posted[0]["payload"]["title"] == "🚨 IN STOCK!"
    assert posted[0]["subscription"]["keys"] == {"p256dh": "key-1", "auth": "auth-1"}
    assert [r.success for r in results] == [True, False]
    assert all(r.channel == NotificationChannel.PUSH for r in results)
    assert results[0].message_id == "push-1"
    assert "expired" in results[1].error


@pytest.mark.asyncio
async def test_unconfigured_gateway_raises():
    request = make_notification_request()

    with pytest.raises(ChannelConfigurationError):
        await make_sender(lambda r: httpx.Response(201), gateway_url=None).send(
            request.request_id, SUBSCRIPTIONS, request.trigger_event
        )
