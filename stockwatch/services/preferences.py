"""Single-user preference store."""

import logging
from typing import Optional

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from stockwatch.core.enums import DEFAULT_PREFERENCES_ID
from stockwatch.core.exceptions import PersistenceError
from stockwatch.models.preferences import UserPreferences
from stockwatch.schemas.preferences import MonitoringPreferences, NotificationPreferences

logger = logging.getLogger(__name__)


class PreferenceStore:
    def __init__(self, session_factory: async_sessionmaker, preferences_id: str = DEFAULT_PREFERENCES_ID):
        self._session_factory = session_factory
        self.preferences_id = preferences_id

    async def _load(self) -> Optional[UserPreferences]:
        try:
            async with self._session_factory() as session:
                return await session.get(UserPreferences, self.preferences_id)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to load user preferences: {str(e)}") from e

    async def get_preferences(self) -> Optional[NotificationPreferences]:
        """Notification preferences, or None when no preference document exists"""
        row = await self._load()
        if row is None or not row.notifications:
            return None
        return self._parse(NotificationPreferences, row.notifications, "notification")

    async def get_monitoring(self) -> Optional[MonitoringPreferences]:
        row = await self._load()
        if row is None or not row.monitoring:
            return None
        return self._parse(MonitoringPreferences, row.monitoring, "monitoring")

    @staticmethod
    def _parse(schema, document: dict, section: str):
        try:
            return schema.model_validate(document)
        except ValidationError as e:
            raise PersistenceError(
                f"Stored {section} preferences are invalid: {e.error_count()} validation error(s)"
            ) from e

    async def save_preferences(
        self,
        notifications: NotificationPreferences,
        monitoring: Optional[MonitoringPreferences] = None,
    ) -> None:
        """Create or replace the preference document"""
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    row = await session.get(UserPreferences, self.preferences_id)
                    if row is None:
                        row = UserPreferences(id=self.preferences_id, api_key_references={})
                        session.add(row)
                    row.notifications = notifications.to_payload()
                    row.monitoring = (monitoring or MonitoringPreferences()).to_payload()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to save user preferences: {str(e)}") from e

        logger.info(
            f"Preferences saved (sms={'on' if notifications.sms.enabled else 'off'}, "
            f"push={'on' if notifications.push.enabled else 'off'})"
        )
