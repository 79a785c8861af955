"""Initial schema: monitored products, inventory history, preferences, queue

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19

Creates the four tables the monitor and notification worker use. JSON
columns are JSONB on PostgreSQL.
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = "001_initial_schema"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSON = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def upgrade() -> None:
    op.create_table(
        "monitored_products",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("retailer", sa.String(32), nullable=False),
        sa.Column("sku", sa.String(64), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("priority", sa.String(16), nullable=False, server_default="normal"),
        sa.Column("store_locations", JSON, nullable=True),
        sa.Column("current_status", JSON, nullable=True),
        sa.Column("last_checked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_status_change_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("image_url", sa.String(), nullable=True),
        sa.Column("product_url", sa.String(), nullable=False, server_default=""),
        sa.Column("add_to_cart_url", sa.String(), nullable=False, server_default=""),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_monitored_products_retailer_sku", "monitored_products", ["retailer", "sku"], unique=True)
    op.create_index("ix_monitored_products_is_active", "monitored_products", ["is_active"])

    op.create_table(
        "inventory_history",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "product_id",
            sa.String(36),
            sa.ForeignKey("monitored_products.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("event_type", sa.String(16), nullable=False),  # 'in_stock' | 'out_of_stock'
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("retailer", sa.String(32), nullable=False),
        sa.Column("sku", sa.String(64), nullable=False),
        sa.Column("online", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("stores", JSON, nullable=False),
        sa.Column("duration_in_stock_ms", sa.BigInteger(), nullable=True),
        sa.Column("ttl_seconds", sa.Integer(), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_inventory_history_product_timestamp", "inventory_history", ["product_id", "timestamp"])
    op.create_index("ix_inventory_history_expires_at", "inventory_history", ["expires_at"])

    op.create_table(
        "user_preferences",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("notifications", JSON, nullable=False),
        sa.Column("monitoring", JSON, nullable=True),
        sa.Column("api_key_references", JSON, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        "queued_messages",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("queue_name", sa.String(64), nullable=False),
        sa.Column("message_id", sa.String(64), nullable=False),
        sa.Column("subject", sa.String(64), nullable=True),
        sa.Column("correlation_id", sa.String(64), nullable=True),
        sa.Column("content_type", sa.String(64), nullable=False, server_default="application/json"),
        sa.Column("body", JSON, nullable=False),
        sa.Column("application_properties", JSON, nullable=True),
        sa.Column("status", sa.String(32), nullable=False, server_default="active"),
        sa.Column("delivery_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("max_delivery_count", sa.Integer(), nullable=False, server_default="10"),
        sa.Column("locked_until", sa.DateTime(timezone=True), nullable=True),
        sa.Column("dead_letter_reason", sa.Text(), nullable=True),
        sa.Column("enqueued_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("settled_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index(
        "ix_queued_messages_queue_message_id", "queued_messages", ["queue_name", "message_id"], unique=True
    )
    op.create_index(
        "ix_queued_messages_queue_status", "queued_messages", ["queue_name", "status", "enqueued_at"]
    )


def downgrade() -> None:
    op.drop_index("ix_queued_messages_queue_status", table_name="queued_messages")
    op.drop_index("ix_queued_messages_queue_message_id", table_name="queued_messages")
    op.drop_table("queued_messages")
    op.drop_table("user_preferences")
    op.drop_index("ix_inventory_history_expires_at", table_name="inventory_history")
    op.drop_index("ix_inventory_history_product_timestamp", table_name="inventory_history")
    op.drop_table("inventory_history")
    op.drop_index("ix_monitored_products_is_active", table_name="monitored_products")
    op.drop_index("ix_monitored_products_retailer_sku", table_name="monitored_products")
    op.drop_table("monitored_products")
