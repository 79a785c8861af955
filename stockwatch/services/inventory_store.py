"""
State & history store for monitored products.

Owns the product status columns written by the poll scheduler and the
append-only inventory history. Every public method opens its own session from
the shared session factory, so one store instance is safe to use from many
concurrent product checks.
"""

import logging
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from stockwatch.core.enums import HistoryEventType
from stockwatch.core.exceptions import PersistenceError
from stockwatch.core.utils import ensure_utc, new_id, utc_now
from stockwatch.models.inventory_history import InventoryHistoryEntry
from stockwatch.models.product import MonitoredProduct
from stockwatch.schemas.inventory import InventoryCheckResult, InventoryStatus
from stockwatch.services.availability import compute_duration_in_stock_ms

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_TTL_DAYS = 90


class InventoryStore:
    def __init__(self, session_factory: async_sessionmaker, history_ttl_days: Optional[int] = DEFAULT_HISTORY_TTL_DAYS):
        self._session_factory = session_factory
        self.history_ttl_days = history_ttl_days

    # ------------------------------------------------------------------
    # Products
    # ------------------------------------------------------------------
    async def get_active_products(self) -> List[MonitoredProduct]:
        """All products with monitoring enabled"""
        try:
            async with self._session_factory() as session:
                stmt = select(MonitoredProduct).where(MonitoredProduct.is_active.is_(True))
                result = await session.execute(stmt)
                return list(result.scalars().all())
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to load active products: {str(e)}") from e

    async def get_product(self, product_id: str) -> Optional[MonitoredProduct]:
        try:
            async with self._session_factory() as session:
                return await session.get(MonitoredProduct, product_id)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to load product {product_id}: {str(e)}") from e

    async def record_check(
        self,
        product_id: str,
        result: InventoryCheckResult,
        checked_at: datetime,
        status_changed: bool,
    ) -> None:
        """
        Persist the outcome of one check as a single UPDATE.

        Status, check time and links are always written; the status-change
        timestamp only when the availability verdict flipped.
        """
        values = {
            "current_status": result.status.to_payload(),
            "last_checked_at": checked_at,
            "product_url": result.product_url,
            "add_to_cart_url": result.add_to_cart_url,
            "updated_at": checked_at,
        }
        if result.image_url:
            values["image_url"] = result.image_url
        if status_changed:
            values["last_status_change_at"] = checked_at

        try:
            async with self._session_factory() as session:
                async with session.begin():
                    outcome = await session.execute(
                        update(MonitoredProduct)
                        .where(MonitoredProduct.id == product_id)
                        .values(**values)
                    )
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to update product {product_id}: {str(e)}") from e

        if outcome.rowcount == 0:
            raise PersistenceError(f"Product {product_id} no longer exists")

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------
    async def _latest_entry(self, session: AsyncSession, product_id: str) -> Optional[InventoryHistoryEntry]:
        stmt = (
            select(InventoryHistoryEntry)
            .where(InventoryHistoryEntry.product_id == product_id)
            .order_by(InventoryHistoryEntry.timestamp.desc())
            .limit(1)
        )
        result = await session.execute(stmt)
        return result.scalars().first()

    async def get_latest_history_entry(self, product_id: str) -> Optional[InventoryHistoryEntry]:
        try:
            async with self._session_factory() as session:
                return await self._latest_entry(session, product_id)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to read history for {product_id}: {str(e)}") from e

    async def record_transition(
        self,
        product: MonitoredProduct,
        status: InventoryStatus,
        timestamp: datetime,
        now_available: bool,
    ) -> InventoryHistoryEntry:
        """
        Append one history entry for a detected transition.

        The stock duration is computed against the latest existing entry for
        the product, read in the same transaction as the insert.
        """
        event_type = HistoryEventType.IN_STOCK if now_available else HistoryEventType.OUT_OF_STOCK

        try:
            async with self._session_factory() as session:
                async with session.begin():
                    previous = await self._latest_entry(session, product.id)
                    duration_ms = compute_duration_in_stock_ms(
                        event_type,
                        timestamp,
                        previous.event_type if previous else None,
                        previous.timestamp if previous else None,
                    )

                    entry = InventoryHistoryEntry(
                        id=new_id(),
                        product_id=product.id,
                        event_type=event_type.value,
                        timestamp=timestamp,
                        retailer=product.retailer,
                        sku=product.sku,
                        online=status.online.available,
                        stores=[store.to_payload() for store in status.stores],
                        duration_in_stock_ms=duration_ms,
                    )
                    if self.history_ttl_days:
                        entry.ttl_seconds = int(timedelta(days=self.history_ttl_days).total_seconds())
                        entry.expires_at = ensure_utc(timestamp) + timedelta(days=self.history_ttl_days)

                    session.add(entry)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to add history entry for {product.id}: {str(e)}") from e

        logger.info(
            f"History entry {entry.event_type} recorded for {product.sku}"
            + (f" (in stock for {duration_ms}ms)" if duration_ms is not None else "")
        )
        return entry

    async def get_product_history(
        self,
        product_id: str,
        limit: int = 50,
        before: Optional[datetime] = None,
    ) -> List[InventoryHistoryEntry]:
        """Newest-first page of history; pass the last timestamp as ``before`` for the next page"""
        stmt = (
            select(InventoryHistoryEntry)
            .where(InventoryHistoryEntry.product_id == product_id)
            .order_by(InventoryHistoryEntry.timestamp.desc())
            .limit(limit)
        )
        if before is not None:
            stmt = stmt.where(InventoryHistoryEntry.timestamp < before)

        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                return list(result.scalars().all())
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to read history for {product_id}: {str(e)}") from e

    async def purge_expired_history(self, now: Optional[datetime] = None) -> int:
        """Delete history entries past their expiry; returns the number removed"""
        now = now or utc_now()
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    result = await session.execute(
                        delete(InventoryHistoryEntry).where(
                            InventoryHistoryEntry.expires_at.is_not(None),
                            InventoryHistoryEntry.expires_at <= now,
                        )
                    )
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to purge history: {str(e)}") from e

        deleted = result.rowcount or 0
        logger.info(f"Purged {deleted} expired history entries")
        return deleted
