"""
Core module exports.
"""
from .enums import (
    RetailerId,
    ProductPriority,
    HistoryEventType,
    ChangeEventType,
    NotificationChannel,
    QueuedMessageStatus,
)
