from .product import MonitoredProduct
from .inventory_history import InventoryHistoryEntry
from .preferences import UserPreferences
from .queued_message import QueuedMessage

# This ensures all models are registered with SQLAlchemy
__all__ = [
    'MonitoredProduct',
    'InventoryHistoryEntry',
    'UserPreferences',
    'QueuedMessage',
]
