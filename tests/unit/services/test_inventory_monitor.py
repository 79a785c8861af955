# tests/unit/services/test_inventory_monitor.py
import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from conftest import NOW, check_result, make_product, status_doc
from stockwatch.core.enums import ChangeEventType, RetailerId
from stockwatch.core.exceptions import ProductNotFoundError, PublishError
from stockwatch.schemas.preferences import MonitoringPreferences
from stockwatch.services.inventory_monitor import InventoryMonitor, PollCadence
from stockwatch.services.providers.factory import ProviderRegistry


class FakeProvider:
    """Stands in for a retailer adapter; responses are keyed by SKU"""
    retailer_id = RetailerId.BESTBUY
    retailer_name = "Best Buy"

    def __init__(self, responses=None, delay: float = 0):
        self.responses = responses or {}
        self.delay = delay
        self.calls = []

    async def check_inventory(self, sku, store_locations=None):
        self.calls.append((sku, store_locations))
        if self.delay:
            await asyncio.sleep(self.delay)
        response = self.responses[sku]
        if isinstance(response, Exception):
            raise response
        return response

    async def aclose(self):
        pass


def make_monitor(products, provider, preference_store=None, **kwargs):
    store = AsyncMock()
    store.get_active_products.return_value = products
    publisher = AsyncMock()
    monitor = InventoryMonitor(
        store,
        ProviderRegistry([provider]),
        publisher,
        preference_store,
        clock=lambda: NOW,
        **kwargs,
    )
    return monitor, store, publisher


# --- Scenarios ---

@pytest.mark.asyncio
async def test_no_products_is_a_noop():
    provider = FakeProvider()
    monitor, store, publisher = make_monitor([], provider)

    summary = await monitor.run_tick()

    assert summary.total == 0
    assert summary.checked == 0
    assert provider.calls == []
    store.record_check.assert_not_awaited()
    publisher.publish_change_event.assert_not_awaited()


@pytest.mark.asyncio
async def test_unchanged_status_only_records_the_check():
    product = make_product(current_status=status_doc(online=False))
    provider = FakeProvider({product.sku: check_result(online=False)})
    monitor, store, publisher = make_monitor([product], provider)

    summary = await monitor.run_tick()

    assert summary.succeeded == 1
    assert summary.transitions == 0
    store.record_check.assert_awaited_once()
    args = store.record_check.await_args.args
    assert args[0] == product.id
    assert args[2] == NOW
    assert args[3] is False  # status_changed
    store.record_transition.assert_not_awaited()
    publisher.publish_change_event.assert_not_awaited()
    publisher.queue_notification.assert_not_awaited()


@pytest.mark.asyncio
async def test_becoming_available_publishes_one_event_and_one_notification():
    product = make_product(current_status=status_doc(online=False))
    provider = FakeProvider({product.sku: check_result(online=True)})
    monitor, store, publisher = make_monitor([product], provider)

    summary = await monitor.run_tick()

    assert summary.transitions == 1
    assert store.record_check.await_args.args[3] is True
    store.record_transition.assert_awaited_once()
    assert store.record_transition.await_args.args[3] is True  # now_available

    publisher.publish_change_event.assert_awaited_once()
    event = publisher.publish_change_event.await_args.args[0]
    assert event.event_type == ChangeEventType.AVAILABLE
    assert event.product.id == product.id
    assert event.availability.online is True
    assert event.metadata.correlation_id == summary.correlation_id
    assert event.metadata.source == "inventory-monitor"

    publisher.queue_notification.assert_awaited_once()
    request = publisher.queue_notification.await_args.args[0]
    assert request.trigger_event == event
    assert request.channels == ["sms"]
    assert request.attempt_count == 0
    assert request.max_attempts == 3
    assert request.correlation_id == summary.correlation_id


@pytest.mark.asyncio
async def test_becoming_unavailable_publishes_event_without_notification():
    product = make_product(current_status=status_doc(online=True))
    provider = FakeProvider({product.sku: check_result(online=False)})
    monitor, store, publisher = make_monitor([product], provider)

    summary = await monitor.run_tick()

    assert summary.transitions == 1
    event = publisher.publish_change_event.await_args.args[0]
    assert event.event_type == ChangeEventType.UNAVAILABLE
    publisher.queue_notification.assert_not_awaited()


@pytest.mark.asyncio
async def test_first_check_of_unavailable_product_is_not_a_transition():
    product = make_product(current_status=None)
    provider = FakeProvider({product.sku: check_result(online=False)})
    monitor, store, publisher = make_monitor([product], provider)

    summary = await monitor.run_tick()

    assert summary.transitions == 0
    publisher.publish_change_event.assert_not_awaited()


@pytest.mark.asyncio
async def test_product_not_found_is_isolated_from_other_products():
    missing = make_product(sku="0000000")
    healthy = make_product(sku="6505727", current_status=status_doc(online=False))
    provider = FakeProvider({
        "0000000": ProductNotFoundError("0000000", "bestbuy"),
        "6505727": check_result(online=True),
    })
    monitor, store, publisher = make_monitor([missing, healthy], provider)

    summary = await monitor.run_tick()

    assert summary.checked == 2
    assert summary.failed == 1
    assert summary.succeeded == 1
    failed = [o for o in summary.outcomes if o.status == "failed"]
    assert failed[0].sku == "0000000"
    assert "ProductNotFoundError" in failed[0].error
    store.record_check.assert_awaited_once()
    publisher.publish_change_event.assert_awaited_once()
    publisher.queue_notification.assert_awaited_once()


@pytest.mark.asyncio
async def test_retailer_without_provider_is_skipped():
    product = make_product(retailer="walmart")
    monitor, store, publisher = make_monitor([product], FakeProvider())

    summary = await monitor.run_tick()

    assert summary.skipped == 1
    assert summary.failed == 0
    store.record_check.assert_not_awaited()


@pytest.mark.asyncio
async def test_slow_provider_times_out_as_a_failure():
    product = make_product()
    provider = FakeProvider({product.sku: check_result(online=True)}, delay=0.5)
    monitor, store, publisher = make_monitor([product], provider, check_timeout_seconds=0.01)

    summary = await monitor.run_tick()

    assert summary.failed == 1
    assert "timed out" in summary.outcomes[0].error
    store.record_check.assert_not_awaited()


@pytest.mark.asyncio
async def test_publish_failure_fails_the_check_after_state_is_saved():
    product = make_product(current_status=status_doc(online=False))
    provider = FakeProvider({product.sku: check_result(online=True)})
    monitor, store, publisher = make_monitor([product], provider)
    publisher.publish_change_event.side_effect = PublishError("queue down")

    summary = await monitor.run_tick()

    assert summary.failed == 1
    store.record_check.assert_awaited_once()
    store.record_transition.assert_awaited_once()
    publisher.queue_notification.assert_not_awaited()


@pytest.mark.asyncio
async def test_store_locations_are_passed_to_the_provider():
    product = make_product(store_locations=[{"storeId": "281", "storeName": "Union Square", "zipCode": "10003"}])
    provider = FakeProvider({product.sku: check_result(online=False, stores={"281": False})})
    monitor, _, _ = make_monitor([product], provider)

    await monitor.run_tick()

    locations = provider.calls[0][1]
    assert [location.store_id for location in locations] == ["281"]


# --- Cadence ---

@pytest.mark.asyncio
async def test_products_not_yet_due_are_left_alone():
    recent = make_product(sku="1", last_checked_at=NOW - timedelta(seconds=5))
    stale = make_product(sku="2", last_checked_at=NOW - timedelta(seconds=31))
    provider = FakeProvider({"1": check_result(online=False), "2": check_result(online=False)})
    monitor, _, _ = make_monitor([recent, stale], provider)

    summary = await monitor.run_tick()

    assert summary.total == 2
    assert summary.not_due == 1
    assert summary.checked == 1
    assert [sku for sku, _ in provider.calls] == ["2"]


def test_high_priority_products_use_the_shorter_interval():
    cadence = PollCadence(default_interval_seconds=30, high_priority_interval_seconds=10)
    high = make_product(priority="high", last_checked_at=NOW - timedelta(seconds=9))
    normal = make_product(priority="normal", last_checked_at=NOW - timedelta(seconds=9))

    assert cadence.is_due(high, NOW) is True
    assert cadence.is_due(normal, NOW) is False
    assert cadence.is_due(make_product(last_checked_at=None), NOW) is True


@pytest.mark.asyncio
async def test_monitoring_preferences_override_the_default_cadence():
    product = make_product(last_checked_at=NOW - timedelta(seconds=40))
    provider = FakeProvider({product.sku: check_result(online=False)})
    preference_store = AsyncMock()
    preference_store.get_monitoring.return_value = MonitoringPreferences(
        default_poll_interval_seconds=60,
        high_priority_poll_interval_seconds=15,
    )
    monitor, _, _ = make_monitor([product], provider, preference_store=preference_store)

    summary = await monitor.run_tick()

    assert summary.not_due == 1
    assert provider.calls == []


@pytest.mark.asyncio
async def test_concurrency_is_bounded():
    in_flight = 0
    peak = 0

    class TrackingProvider(FakeProvider):
        async def check_inventory(self, sku, store_locations=None):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            return check_result(online=False)

    products = [make_product(sku=str(i)) for i in range(6)]
    monitor, _, _ = make_monitor(products, TrackingProvider(), max_concurrency=2)

    summary = await monitor.run_tick()

    assert summary.succeeded == 6
    assert peak == 2
