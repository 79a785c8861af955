from .inventory import (
    AvailabilityState,
    InventoryCheckResult,
    InventoryStatus,
    StoreAvailability,
    StoreLocation,
)
from .events import (
    ChangeEventAvailability,
    ChangeEventProduct,
    EventMetadata,
    InventoryChangeEvent,
    NotificationRequest,
    NotificationResult,
    StoreAvailabilitySummary,
)
from .preferences import (
    MonitoringPreferences,
    NotificationPreferences,
    PushPreferences,
    PushSubscription,
    PushSubscriptionKeys,
    SmsPreferences,
)
