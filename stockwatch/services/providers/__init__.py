from .base import BaseInventoryProvider, ProviderConfig
from .bestbuy import BestBuyInventoryProvider
from .factory import ProviderRegistry, build_provider_registry
from .rate_limiter import RateLimiter
