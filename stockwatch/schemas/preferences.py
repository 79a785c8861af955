"""
Schemas for the user preference document.
"""

from typing import List, Optional

from pydantic import Field

from stockwatch.schemas.base import BaseSchema


class SmsPreferences(BaseSchema):
    enabled: bool = False
    phone_number: Optional[str] = None  # E.164


class PushSubscriptionKeys(BaseSchema):
    p256dh: str
    auth: str


class PushSubscription(BaseSchema):
    """Web Push subscription details"""
    endpoint: str
    keys: PushSubscriptionKeys


class PushPreferences(BaseSchema):
    enabled: bool = False
    subscriptions: List[PushSubscription] = Field(default_factory=list)


class NotificationPreferences(BaseSchema):
    sms: SmsPreferences = Field(default_factory=SmsPreferences)
    push: PushPreferences = Field(default_factory=PushPreferences)


class MonitoringPreferences(BaseSchema):
    default_poll_interval_seconds: int = 30
    high_priority_poll_interval_seconds: int = 10
