"""
Inventory monitor.

One ``run_tick`` call is one pass of the poll scheduler:

1. Load the active products and keep the ones due under their priority cadence.
2. Check each due product concurrently (bounded), isolating failures per product.
3. For each product: diff availability, persist the check, and on a
   transition append history, publish one change event and, when the product
   became available, queue one notification request.
4. Wait for every check to settle and report a ``TickSummary``.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Sequence

from stockwatch.core.enums import NotificationChannel, ProductPriority
from stockwatch.core.exceptions import (
    BaseServiceError,
    PersistenceError,
    ProviderUnavailableError,
    UnsupportedRetailerError,
)
from stockwatch.core.utils import ensure_utc, new_id, utc_now
from stockwatch.models.product import MonitoredProduct
from stockwatch.schemas.inventory import StoreLocation
from stockwatch.schemas.preferences import MonitoringPreferences
from stockwatch.services.availability import AvailabilityTransition, diff_availability
from stockwatch.services.event_publisher import (
    EventPublisher,
    build_change_event,
    build_notification_request,
)
from stockwatch.services.inventory_store import InventoryStore
from stockwatch.services.preferences import PreferenceStore
from stockwatch.services.providers.base import BaseInventoryProvider
from stockwatch.services.providers.factory import ProviderRegistry

logger = logging.getLogger(__name__)

CHECK_SUCCEEDED = "succeeded"
CHECK_FAILED = "failed"
CHECK_SKIPPED = "skipped"


@dataclass
class PollCadence:
    """Per-priority polling intervals"""
    default_interval_seconds: int = 30
    high_priority_interval_seconds: int = 10
    # Tolerates the time between a tick starting and the previous check being stamped
    grace_seconds: float = 2.0

    @classmethod
    def from_preferences(cls, monitoring: MonitoringPreferences, grace_seconds: float = 2.0) -> "PollCadence":
        return cls(
            default_interval_seconds=monitoring.default_poll_interval_seconds,
            high_priority_interval_seconds=monitoring.high_priority_poll_interval_seconds,
            grace_seconds=grace_seconds,
        )

    def interval_for(self, priority: Optional[str]) -> timedelta:
        if priority == ProductPriority.HIGH.value:
            return timedelta(seconds=self.high_priority_interval_seconds)
        return timedelta(seconds=self.default_interval_seconds)

    def is_due(self, product: MonitoredProduct, now: datetime) -> bool:
        last_checked = ensure_utc(product.last_checked_at)
        if last_checked is None:
            return True
        elapsed = ensure_utc(now) - last_checked
        return elapsed + timedelta(seconds=self.grace_seconds) >= self.interval_for(product.priority)


@dataclass
class CheckOutcome:
    product_id: str
    sku: str
    retailer: str
    status: str
    status_changed: bool = False
    now_available: Optional[bool] = None
    error: Optional[str] = None


@dataclass
class TickSummary:
    correlation_id: str
    total: int = 0
    checked: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    not_due: int = 0
    transitions: int = 0
    duration_ms: int = 0
    outcomes: List[CheckOutcome] = field(default_factory=list)


class InventoryMonitor:
    def __init__(
        self,
        store: InventoryStore,
        registry: ProviderRegistry,
        publisher: EventPublisher,
        preference_store: Optional[PreferenceStore] = None,
        *,
        cadence: Optional[PollCadence] = None,
        notification_channels: Sequence[NotificationChannel] = (NotificationChannel.SMS,),
        notification_max_attempts: int = 3,
        max_concurrency: int = 10,
        check_timeout_seconds: float = 10.0,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.registry = registry
        self.publisher = publisher
        self.preference_store = preference_store
        self.cadence = cadence or PollCadence()
        self.notification_channels = [NotificationChannel(c) for c in notification_channels]
        self.notification_max_attempts = notification_max_attempts
        self.max_concurrency = max_concurrency
        self.check_timeout_seconds = check_timeout_seconds
        self._clock = clock
        self._idle = asyncio.Event()
        self._idle.set()

    async def run_tick(self) -> TickSummary:
        self._idle.clear()
        try:
            return await self._run_tick()
        finally:
            self._idle.set()

    async def wait_idle(self, timeout: Optional[float] = None) -> None:
        """Wait for an in-flight tick to settle"""
        await asyncio.wait_for(self._idle.wait(), timeout=timeout)

    async def _run_tick(self) -> TickSummary:
        start_time = time.monotonic()
        summary = TickSummary(correlation_id=new_id())

        logger.info(f"Inventory monitor tick started (correlation_id={summary.correlation_id})")

        products = await self.store.get_active_products()
        summary.total = len(products)
        logger.info(f"Found {len(products)} active products to monitor")
        if not products:
            return summary

        cadence = await self._resolve_cadence()
        tick_time = self._clock()
        due = [product for product in products if cadence.is_due(product, tick_time)]
        summary.not_due = len(products) - len(due)

        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def check_with_limit(product: MonitoredProduct) -> CheckOutcome:
            async with semaphore:
                return await self.check_product(product, summary.correlation_id)

        results = await asyncio.gather(
            *[check_with_limit(product) for product in due],
            return_exceptions=True,
        )

        for product, result in zip(due, results):
            if isinstance(result, BaseException):
                logger.error(f"Unhandled error checking {product.sku}: {result!r}")
                result = CheckOutcome(
                    product_id=product.id,
                    sku=product.sku,
                    retailer=product.retailer,
                    status=CHECK_FAILED,
                    error=repr(result),
                )
            summary.outcomes.append(result)

        summary.checked = len(due)
        summary.succeeded = sum(1 for o in summary.outcomes if o.status == CHECK_SUCCEEDED)
        summary.failed = sum(1 for o in summary.outcomes if o.status == CHECK_FAILED)
        summary.skipped = sum(1 for o in summary.outcomes if o.status == CHECK_SKIPPED)
        summary.transitions = sum(1 for o in summary.outcomes if o.status_changed)
        summary.duration_ms = int((time.monotonic() - start_time) * 1000)

        logger.info(
            f"Inventory check complete: {summary.succeeded} succeeded, {summary.failed} failed, "
            f"{summary.skipped} skipped, {summary.not_due} not due, {summary.transitions} transitions, "
            f"{summary.duration_ms}ms"
        )
        for outcome in summary.outcomes:
            if outcome.status == CHECK_FAILED:
                logger.error(f"Failed to check product {outcome.sku}: {outcome.error}")

        return summary

    async def check_product(self, product: MonitoredProduct, correlation_id: str) -> CheckOutcome:
        """Check one product; never raises"""
        outcome = CheckOutcome(
            product_id=product.id,
            sku=product.sku,
            retailer=product.retailer,
            status=CHECK_SUCCEEDED,
        )

        try:
            provider = self.registry.get_provider(product.retailer)
        except UnsupportedRetailerError:
            logger.warning(f"No provider available for retailer: {product.retailer} (sku {product.sku})")
            outcome.status = CHECK_SKIPPED
            return outcome

        try:
            transition = await self._check(product, provider, correlation_id)
        except BaseServiceError as e:
            outcome.status = CHECK_FAILED
            outcome.error = f"{type(e).__name__}: {str(e)}"
            return outcome
        except Exception as e:
            logger.exception(f"Unexpected error checking {product.sku}")
            outcome.status = CHECK_FAILED
            outcome.error = f"{type(e).__name__}: {str(e)}"
            return outcome

        outcome.status_changed = transition.changed
        outcome.now_available = transition.now_available
        return outcome

    async def _check(
        self,
        product: MonitoredProduct,
        provider: BaseInventoryProvider,
        correlation_id: str,
    ) -> AvailabilityTransition:
        locations = [StoreLocation.model_validate(location) for location in product.store_locations or []]

        try:
            result = await asyncio.wait_for(
                provider.check_inventory(product.sku, locations or None),
                timeout=self.check_timeout_seconds,
            )
        except asyncio.TimeoutError:
            raise ProviderUnavailableError(
                f"{provider.retailer_name} check for {product.sku} timed out after {self.check_timeout_seconds}s"
            )

        now = self._clock()
        transition = diff_availability(product.current_status, result.status)

        logger.info(
            f"Product {product.sku}: was {'available' if transition.was_available else 'unavailable'}, "
            f"now {'available' if transition.now_available else 'unavailable'}, changed: {transition.changed}"
        )

        await self.store.record_check(product.id, result, now, transition.changed)

        if not transition.changed:
            return transition

        await self.store.record_transition(product, result.status, now, transition.now_available)

        event = build_change_event(product, result, transition, now, correlation_id)
        await self.publisher.publish_change_event(event)

        # Only "back in stock" is worth an alert
        if transition.now_available:
            request = build_notification_request(
                event,
                self.notification_channels,
                self.notification_max_attempts,
                timestamp=now,
            )
            await self.publisher.queue_notification(request)

        return transition

    async def _resolve_cadence(self) -> PollCadence:
        if self.preference_store is None:
            return self.cadence
        try:
            monitoring = await self.preference_store.get_monitoring()
        except PersistenceError as e:
            logger.warning(f"Could not load monitoring preferences, using defaults: {str(e)}")
            return self.cadence
        if monitoring is None:
            return self.cadence
        return PollCadence.from_preferences(monitoring, grace_seconds=self.cadence.grace_seconds)
