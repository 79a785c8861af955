"""
Availability diffing.

Pure functions comparing the stored status with a freshly observed one. A
product's verdict is online-available OR available at any store location.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Optional, Union

from stockwatch.core.enums import ChangeEventType, HistoryEventType
from stockwatch.core.utils import ensure_utc
from stockwatch.schemas.inventory import InventoryStatus

StatusLike = Union[InventoryStatus, Dict[str, Any], None]


def coerce_status(status: StatusLike) -> Optional[InventoryStatus]:
    """Accept a schema, the stored JSON document, or None"""
    if status is None:
        return None
    if isinstance(status, InventoryStatus):
        return status
    return InventoryStatus.model_validate(status)


def is_available(status: StatusLike) -> bool:
    """A product never checked before counts as unavailable"""
    status = coerce_status(status)
    if status is None:
        return False
    return status.is_available


@dataclass(frozen=True)
class AvailabilityTransition:
    was_available: bool
    now_available: bool

    @property
    def changed(self) -> bool:
        return self.was_available != self.now_available

    @property
    def history_event_type(self) -> HistoryEventType:
        return HistoryEventType.IN_STOCK if self.now_available else HistoryEventType.OUT_OF_STOCK

    @property
    def change_event_type(self) -> ChangeEventType:
        return ChangeEventType.AVAILABLE if self.now_available else ChangeEventType.UNAVAILABLE


def diff_availability(previous: StatusLike, observed: StatusLike) -> AvailabilityTransition:
    return AvailabilityTransition(
        was_available=is_available(previous),
        now_available=is_available(observed),
    )


def compute_duration_in_stock_ms(
    new_event_type: HistoryEventType,
    new_timestamp: datetime,
    prior_event_type: Optional[str],
    prior_timestamp: Optional[datetime],
) -> Optional[int]:
    """
    Milliseconds the product spent in stock.

    Only set for an out_of_stock entry whose immediately preceding entry was
    in_stock; None otherwise.
    """
    if new_event_type != HistoryEventType.OUT_OF_STOCK:
        return None
    if prior_event_type != HistoryEventType.IN_STOCK.value or prior_timestamp is None:
        return None

    delta = ensure_utc(new_timestamp) - ensure_utc(prior_timestamp)
    return delta // timedelta(milliseconds=1)
