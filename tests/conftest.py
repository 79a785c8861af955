# tests/conftest.py
from datetime import datetime, timezone
from typing import List, Optional

import pytest

from stockwatch.core.config import Settings
from stockwatch.core.utils import new_id
from stockwatch.database import create_all_tables, create_engine, create_session_factory
from stockwatch.models.product import MonitoredProduct
from stockwatch.schemas.inventory import (
    AvailabilityState,
    InventoryCheckResult,
    InventoryStatus,
    StoreAvailability,
)
from stockwatch.services.availability import diff_availability
from stockwatch.services.event_publisher import build_change_event, build_notification_request

NOW = datetime(2026, 3, 14, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def settings(tmp_path):
    """Provide test settings backed by a throwaway SQLite file"""
    return Settings(
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'stockwatch.db'}",
        BESTBUY_API_KEY="test_key",
        POLL_MAX_CONCURRENCY=1,
        SMS_API_ENDPOINT="https://sms.test/messages",
        SMS_FROM_NUMBER="+15550000000",
        PUSH_GATEWAY_URL="https://push.test/send",
    )


@pytest.fixture
async def test_engine(settings):
    """Create the schema on a fresh SQLite file for each test."""
    engine = create_engine(settings)
    await create_all_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return create_session_factory(test_engine)


# --- Builders ---------------------------------------------------------------

def status_doc(online: bool = False, stores: Optional[dict] = None) -> InventoryStatus:
    """InventoryStatus from an online flag and a {store_id: available} map"""
    return InventoryStatus(
        online=AvailabilityState(available=online),
        stores=[
            StoreAvailability(store_id=store_id, available=available)
            for store_id, available in (stores or {}).items()
        ],
    )


def check_result(online: bool = False, stores: Optional[dict] = None, sku: str = "6505727") -> InventoryCheckResult:
    return InventoryCheckResult(
        status=status_doc(online, stores),
        product_url=f"https://www.bestbuy.com/site/{sku}.p",
        add_to_cart_url=f"https://api.bestbuy.com/click/-/{sku}/cart",
        image_url="https://pisces.bbystatic.com/image.jpg",
        product_name="PlayStation 5 Console",
    )


def make_product(
    sku: str = "6505727",
    retailer: str = "bestbuy",
    name: str = "PlayStation 5 Console",
    current_status: Optional[InventoryStatus] = None,
    store_locations: Optional[List[dict]] = None,
    **overrides,
) -> MonitoredProduct:
    fields = dict(
        id=new_id(),
        retailer=retailer,
        sku=sku,
        name=name,
        is_active=True,
        priority="normal",
        store_locations=store_locations,
        current_status=current_status.to_payload() if current_status is not None else None,
        last_checked_at=None,
        product_url="",
        add_to_cart_url="",
    )
    fields.update(overrides)
    return MonitoredProduct(**fields)


def make_notification_request(
    product: Optional[MonitoredProduct] = None,
    stores: Optional[dict] = None,
    channels=("sms",),
):
    product = product or make_product(
        store_locations=[{"storeId": "281", "storeName": "Best Buy Union Square", "zipCode": "10003"}]
    )
    result = check_result(online=not stores, stores=stores)
    transition = diff_availability(None, result.status)
    event = build_change_event(product, result, transition, NOW, correlation_id="corr-1")
    return build_notification_request(event, list(channels), max_attempts=3)


@pytest.fixture
def saved_product(session_factory):
    """Insert a monitored product and return it"""

    async def _save(**kwargs) -> MonitoredProduct:
        product = make_product(**kwargs)
        async with session_factory() as session:
            async with session.begin():
                session.add(product)
        return product

    return _save
