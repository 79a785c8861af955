from sqlalchemy import Column, DateTime, String

from stockwatch.core.enums import DEFAULT_PREFERENCES_ID
from stockwatch.core.utils import utc_now
from stockwatch.database import Base, JSONType


class UserPreferences(Base):
    """Single-user preference document (id is always "default")."""
    __tablename__ = "user_preferences"

    id = Column(String(64), primary_key=True, default=DEFAULT_PREFERENCES_ID)
    notifications = Column(JSONType, nullable=False)  # {sms: {...}, push: {...}}
    monitoring = Column(JSONType, nullable=True)  # {defaultPollIntervalSeconds, highPriorityPollIntervalSeconds}
    api_key_references = Column(JSONType, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)
