"""
Monitored product model.

One row per retailer SKU being watched. The poll scheduler rewrites the
status columns on every check; the CRUD layer owns creation and pausing.
"""

from sqlalchemy import Boolean, Column, DateTime, Index, String
from sqlalchemy.orm import relationship

from stockwatch.core.enums import ProductPriority
from stockwatch.core.utils import new_id, utc_now
from stockwatch.database import Base, JSONType


class MonitoredProduct(Base):
    __tablename__ = "monitored_products"

    id = Column(String(36), primary_key=True, default=new_id)

    # Product identification
    retailer = Column(String(32), nullable=False)
    sku = Column(String(64), nullable=False)
    name = Column(String, nullable=False)

    # Monitoring configuration
    is_active = Column(Boolean, nullable=False, default=True)
    priority = Column(String(16), nullable=False, default=ProductPriority.NORMAL.value)
    store_locations = Column(JSONType, nullable=True)  # [{storeId, storeName, address?, zipCode}]

    # Current state
    current_status = Column(JSONType, nullable=True)  # {online: {...}, stores: [...]}
    last_checked_at = Column(DateTime(timezone=True), nullable=True)
    last_status_change_at = Column(DateTime(timezone=True), nullable=True)

    # Metadata
    image_url = Column(String, nullable=True)
    product_url = Column(String, nullable=False, default="")
    add_to_cart_url = Column(String, nullable=False, default="")
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)

    history = relationship(
        "InventoryHistoryEntry",
        back_populates="product",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        Index("ix_monitored_products_retailer_sku", "retailer", "sku", unique=True),
        Index("ix_monitored_products_is_active", "is_active"),
    )

    def __repr__(self):
        return f"<MonitoredProduct(id={self.id}, retailer='{self.retailer}', sku='{self.sku}', active={self.is_active})>"
