# stockwatch/models/inventory_history.py
"""
Inventory history model.

Append-only audit trail of availability transitions. Rows are inserted by the
inventory store when a transition is detected and are never updated; expired
rows are purged by the retention job.
"""

from sqlalchemy import BigInteger, Boolean, Column, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import relationship

from stockwatch.core.utils import new_id
from stockwatch.database import Base, JSONType


class InventoryHistoryEntry(Base):
    __tablename__ = "inventory_history"

    id = Column(String(36), primary_key=True, default=new_id)
    product_id = Column(
        String(36),
        ForeignKey("monitored_products.id", ondelete="CASCADE"),
        nullable=False,
    )

    # Event details
    event_type = Column(String(16), nullable=False)  # 'in_stock' | 'out_of_stock'
    timestamp = Column(DateTime(timezone=True), nullable=False)

    # Context
    retailer = Column(String(32), nullable=False)
    sku = Column(String(64), nullable=False)

    # Availability at time of event
    online = Column(Boolean, nullable=False, default=False)
    stores = Column(JSONType, nullable=False, default=list)

    # Set only when going out of stock after an in_stock entry
    duration_in_stock_ms = Column(BigInteger, nullable=True)

    # Retention
    ttl_seconds = Column(Integer, nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=True)

    product = relationship("MonitoredProduct", back_populates="history")

    __table_args__ = (
        Index("ix_inventory_history_product_timestamp", "product_id", "timestamp"),
        Index("ix_inventory_history_expires_at", "expires_at"),
    )

    def __repr__(self):
        return (f"<InventoryHistoryEntry(id={self.id}, product_id={self.product_id}, "
                f"event_type='{self.event_type}', timestamp={self.timestamp})>")
