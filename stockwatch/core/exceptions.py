from typing import List, Optional


class BaseServiceError(Exception):
    """Base exception for all service-related errors."""
    pass

class ConfigurationError(BaseServiceError):
    """Raised at startup when required configuration is missing."""
    pass

class ProviderError(BaseServiceError):
    """Base exception for retailer provider errors."""
    pass

class UnsupportedRetailerError(ProviderError):
    """Raised when no provider is registered for a retailer."""

    def __init__(self, retailer: str):
        self.retailer = retailer
        super().__init__(f"No inventory provider registered for retailer '{retailer}'")

class ProductNotFoundError(ProviderError):
    """Raised when the retailer does not know the SKU."""

    def __init__(self, sku: str, retailer: Optional[str] = None):
        self.sku = sku
        self.retailer = retailer
        where = f" at {retailer}" if retailer else ""
        super().__init__(f"Product not found{where}: {sku}")

class ProviderUnavailableError(ProviderError):
    """Raised on transport or HTTP errors from the retailer API."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)

class RateLimitedError(ProviderError):
    """Raised when a provider's rate limit cannot be satisfied in time."""
    pass

class PersistenceError(BaseServiceError):
    """Raised when a state or history write fails."""
    pass

class QueueError(BaseServiceError):
    """Raised when the message queue cannot accept or settle a message."""
    pass

class PublishError(BaseServiceError):
    """Raised when an event or notification request cannot be published."""
    pass

class ChannelDeliveryError(BaseServiceError):
    """Raised when a single notification channel fails to deliver."""

    def __init__(self, channel: str, message: str):
        self.channel = channel
        super().__init__(message)

class ChannelConfigurationError(ChannelDeliveryError):
    """Raised when a channel sender is used without its endpoint or sender identity."""
    pass

class AllChannelsFailedError(BaseServiceError):
    """Raised when every attempted channel of a notification request failed."""

    def __init__(self, request_id: str, results: List):
        self.request_id = request_id
        self.results = results
        errors = ", ".join(r.error or "unknown error" for r in results)
        super().__init__(f"All notification deliveries failed for {request_id}: {errors}")
