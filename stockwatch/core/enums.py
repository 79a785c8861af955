"""
Shared enums and constants used across the service.
"""

from enum import Enum


class RetailerId(str, Enum):
    """Supported retailer identifiers"""
    BESTBUY = "bestbuy"
    AMAZON = "amazon"
    WALMART = "walmart"
    TARGET = "target"


class ProductPriority(str, Enum):
    """Priority affects polling frequency"""
    HIGH = "high"
    NORMAL = "normal"


class HistoryEventType(str, Enum):
    IN_STOCK = "in_stock"
    OUT_OF_STOCK = "out_of_stock"


class ChangeEventType(str, Enum):
    AVAILABLE = "inventory.available"
    UNAVAILABLE = "inventory.unavailable"


class NotificationChannel(str, Enum):
    SMS = "sms"
    PUSH = "push"


class QueuedMessageStatus(str, Enum):
    ACTIVE = "active"
    LOCKED = "locked"
    COMPLETED = "completed"
    DEAD_LETTERED = "dead_lettered"


EVENT_SOURCE_INVENTORY_MONITOR = "inventory-monitor"
NOTIFICATION_SUBJECT = "notification.send"
DEFAULT_PREFERENCES_ID = "default"
