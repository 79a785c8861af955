"""
Durable message queue backed by the ``queued_messages`` table.

Semantics follow a peek-lock broker:
- ``send`` is idempotent per (queue, message_id); a duplicate id is dropped.
- ``receive`` locks messages for ``lock_duration_seconds`` and bumps their
  delivery count. Rows are claimed with SKIP LOCKED so several workers can
  share a queue.
- ``complete`` settles a message; ``abandon`` makes it visible again, or
  dead-letters it once it has used ``max_delivery_count`` deliveries.
- A lock that expires without settlement is treated like an abandon on the
  next receive.

Payloads are never modified after ``send``.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from stockwatch.core.enums import QueuedMessageStatus
from stockwatch.core.exceptions import QueueError
from stockwatch.core.utils import ensure_utc, utc_now
from stockwatch.models.queued_message import QueuedMessage

logger = logging.getLogger(__name__)

MAX_DELIVERY_COUNT_EXCEEDED = "MaxDeliveryCountExceeded"


@dataclass
class ReceivedMessage:
    """A locked message handed to a consumer"""
    row_id: int
    queue_name: str
    message_id: str
    body: Dict[str, Any]
    delivery_count: int
    max_delivery_count: int
    subject: Optional[str] = None
    correlation_id: Optional[str] = None
    application_properties: Dict[str, Any] = field(default_factory=dict)
    enqueued_at: Optional[datetime] = None
    locked_until: Optional[datetime] = None


class MessageQueue:
    def __init__(
        self,
        session_factory: async_sessionmaker,
        lock_duration_seconds: int = 60,
        default_max_delivery_count: int = 10,
        max_delivery_counts: Optional[Dict[str, int]] = None,
    ):
        self._session_factory = session_factory
        self.lock_duration = timedelta(seconds=lock_duration_seconds)
        self.default_max_delivery_count = default_max_delivery_count
        self.max_delivery_counts = dict(max_delivery_counts or {})

    def max_delivery_count_for(self, queue_name: str) -> int:
        return self.max_delivery_counts.get(queue_name, self.default_max_delivery_count)

    async def send(
        self,
        queue_name: str,
        body: Dict[str, Any],
        *,
        message_id: str,
        subject: Optional[str] = None,
        correlation_id: Optional[str] = None,
        application_properties: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """
        Enqueue a message.

        Returns False when a message with the same id is already on the queue
        (duplicate detection), True otherwise.
        """
        message = QueuedMessage(
            queue_name=queue_name,
            message_id=message_id,
            subject=subject,
            correlation_id=correlation_id,
            body=body,
            application_properties=application_properties or {},
            status=QueuedMessageStatus.ACTIVE.value,
            delivery_count=0,
            max_delivery_count=self.max_delivery_count_for(queue_name),
            enqueued_at=utc_now(),
        )
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    existing = await session.execute(
                        select(QueuedMessage.id).where(
                            QueuedMessage.queue_name == queue_name,
                            QueuedMessage.message_id == message_id,
                        )
                    )
                    if existing.scalar() is not None:
                        logger.info(f"Duplicate message {message_id} on '{queue_name}' ignored")
                        return False
                    session.add(message)
        except IntegrityError:
            logger.info(f"Duplicate message {message_id} on '{queue_name}' ignored")
            return False
        except SQLAlchemyError as e:
            raise QueueError(f"Failed to enqueue {message_id} on '{queue_name}': {str(e)}") from e

        logger.debug(f"Enqueued {message_id} on '{queue_name}' (subject={subject})")
        return True

    async def receive(
        self,
        queue_name: str,
        max_messages: int = 1,
        now: Optional[datetime] = None,
    ) -> List[ReceivedMessage]:
        """Lock up to ``max_messages`` visible messages, oldest first"""
        now = now or utc_now()
        received: List[ReceivedMessage] = []

        stmt = (
            select(QueuedMessage)
            .where(
                QueuedMessage.queue_name == queue_name,
                or_(
                    QueuedMessage.status == QueuedMessageStatus.ACTIVE.value,
                    and_(
                        QueuedMessage.status == QueuedMessageStatus.LOCKED.value,
                        QueuedMessage.locked_until <= now,
                    ),
                ),
            )
            .order_by(QueuedMessage.enqueued_at.asc(), QueuedMessage.id.asc())
            .limit(max_messages)
            .with_for_update(skip_locked=True)
        )

        try:
            async with self._session_factory() as session:
                async with session.begin():
                    rows = (await session.execute(stmt)).scalars().all()
                    for row in rows:
                        if row.delivery_count >= row.max_delivery_count:
                            # Lock expired on the final delivery
                            self._mark_dead_lettered(row, MAX_DELIVERY_COUNT_EXCEEDED, now)
                            logger.warning(
                                f"Message {row.message_id} on '{queue_name}' dead-lettered "
                                f"after {row.delivery_count} deliveries (lock expired)"
                            )
                            continue

                        row.status = QueuedMessageStatus.LOCKED.value
                        row.delivery_count += 1
                        row.locked_until = now + self.lock_duration
                        received.append(
                            ReceivedMessage(
                                row_id=row.id,
                                queue_name=row.queue_name,
                                message_id=row.message_id,
                                body=row.body,
                                delivery_count=row.delivery_count,
                                max_delivery_count=row.max_delivery_count,
                                subject=row.subject,
                                correlation_id=row.correlation_id,
                                application_properties=row.application_properties or {},
                                enqueued_at=ensure_utc(row.enqueued_at),
                                locked_until=row.locked_until,
                            )
                        )
        except SQLAlchemyError as e:
            raise QueueError(f"Failed to receive from '{queue_name}': {str(e)}") from e

        return received

    async def complete(self, message: ReceivedMessage) -> bool:
        """Settle a message. Returns False if the lock was lost meanwhile."""
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    result = await session.execute(
                        update(QueuedMessage)
                        .where(
                            QueuedMessage.id == message.row_id,
                            QueuedMessage.status == QueuedMessageStatus.LOCKED.value,
                            QueuedMessage.delivery_count == message.delivery_count,
                        )
                        .values(
                            status=QueuedMessageStatus.COMPLETED.value,
                            locked_until=None,
                            settled_at=utc_now(),
                        )
                    )
        except SQLAlchemyError as e:
            raise QueueError(f"Failed to complete {message.message_id}: {str(e)}") from e

        if result.rowcount == 0:
            logger.warning(f"Lock lost for message {message.message_id}; it may be redelivered")
            return False
        return True

    async def abandon(self, message: ReceivedMessage, reason: Optional[str] = None) -> Optional[QueuedMessageStatus]:
        """
        Release a message for redelivery.

        Dead-letters it instead when its delivery count has reached the
        maximum. Returns the resulting status, or None if the lock was lost.
        """
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    row = await self._locked_row(session, message)
                    if row is None:
                        logger.warning(f"Lock lost for message {message.message_id}; abandon skipped")
                        return None

                    if row.delivery_count >= row.max_delivery_count:
                        detail = f"{MAX_DELIVERY_COUNT_EXCEEDED}: {reason}" if reason else MAX_DELIVERY_COUNT_EXCEEDED
                        self._mark_dead_lettered(row, detail, utc_now())
                        logger.warning(
                            f"Message {message.message_id} on '{message.queue_name}' dead-lettered "
                            f"after {row.delivery_count} deliveries"
                        )
                        return QueuedMessageStatus.DEAD_LETTERED

                    row.status = QueuedMessageStatus.ACTIVE.value
                    row.locked_until = None
                    return QueuedMessageStatus.ACTIVE
        except SQLAlchemyError as e:
            raise QueueError(f"Failed to abandon {message.message_id}: {str(e)}") from e

    async def dead_letter(self, message: ReceivedMessage, reason: str) -> bool:
        """Move a message straight to the dead-letter state"""
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    row = await self._locked_row(session, message)
                    if row is None:
                        logger.warning(f"Lock lost for message {message.message_id}; dead-letter skipped")
                        return False
                    self._mark_dead_lettered(row, reason, utc_now())
        except SQLAlchemyError as e:
            raise QueueError(f"Failed to dead-letter {message.message_id}: {str(e)}") from e

        logger.warning(f"Message {message.message_id} on '{message.queue_name}' dead-lettered: {reason}")
        return True

    async def count(self, queue_name: str, status: QueuedMessageStatus = QueuedMessageStatus.ACTIVE) -> int:
        """Count messages on a queue in the given state (without locking)"""
        stmt = select(func.count(QueuedMessage.id)).where(
            QueuedMessage.queue_name == queue_name,
            QueuedMessage.status == status.value,
        )
        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                return result.scalar() or 0
        except SQLAlchemyError as e:
            raise QueueError(f"Failed to count '{queue_name}': {str(e)}") from e

    async def peek_dead_letters(self, queue_name: str, limit: int = 20) -> List[QueuedMessage]:
        stmt = (
            select(QueuedMessage)
            .where(
                QueuedMessage.queue_name == queue_name,
                QueuedMessage.status == QueuedMessageStatus.DEAD_LETTERED.value,
            )
            .order_by(QueuedMessage.settled_at.desc())
            .limit(limit)
        )
        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                return list(result.scalars().all())
        except SQLAlchemyError as e:
            raise QueueError(f"Failed to read dead letters for '{queue_name}': {str(e)}") from e

    async def _locked_row(self, session, message: ReceivedMessage) -> Optional[QueuedMessage]:
        stmt = (
            select(QueuedMessage)
            .where(
                QueuedMessage.id == message.row_id,
                QueuedMessage.status == QueuedMessageStatus.LOCKED.value,
                QueuedMessage.delivery_count == message.delivery_count,
            )
            .with_for_update()
        )
        return (await session.execute(stmt)).scalars().first()

    @staticmethod
    def _mark_dead_lettered(row: QueuedMessage, reason: str, now: datetime) -> None:
        row.status = QueuedMessageStatus.DEAD_LETTERED.value
        row.locked_until = None
        row.dead_letter_reason = reason[:2000]
        row.settled_at = now
