from sqlalchemy import Column, DateTime, Index, Integer, String, Text

from stockwatch.core.enums import QueuedMessageStatus
from stockwatch.core.utils import utc_now
from stockwatch.database import Base, JSONType


class QueuedMessage(Base):
    """
    A durable queue message.

    The payload is written once and never changed; delivery bookkeeping lives
    in ``delivery_count`` / ``locked_until`` / ``status``.
    """
    __tablename__ = "queued_messages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    queue_name = Column(String(64), nullable=False)
    message_id = Column(String(64), nullable=False)
    subject = Column(String(64), nullable=True)
    correlation_id = Column(String(64), nullable=True)
    content_type = Column(String(64), nullable=False, default="application/json")
    body = Column(JSONType, nullable=False)
    application_properties = Column(JSONType, nullable=True)

    status = Column(String(32), nullable=False, default=QueuedMessageStatus.ACTIVE.value)
    delivery_count = Column(Integer, nullable=False, default=0)
    max_delivery_count = Column(Integer, nullable=False, default=10)
    locked_until = Column(DateTime(timezone=True), nullable=True)
    dead_letter_reason = Column(Text, nullable=True)

    enqueued_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    settled_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_queued_messages_queue_message_id", "queue_name", "message_id", unique=True),
        Index("ix_queued_messages_queue_status", "queue_name", "status", "enqueued_at"),
    )

    def __repr__(self):
        return (f"<QueuedMessage(id={self.id}, queue='{self.queue_name}', message_id='{self.message_id}', "
                f"status='{self.status}', deliveries={self.delivery_count}/{self.max_delivery_count})>")
