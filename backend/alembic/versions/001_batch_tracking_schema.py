"""Batch tracking schema

Revision ID: 001
Revises:
Create Date: 2025-08-04 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Products table
    op.create_table(
        "products",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("external_product_id", sa.String(64), nullable=False),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("sku", sa.String(100), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_products_external_product_id", "products", ["external_product_id"], unique=True)
    op.create_index("ix_products_sku", "products", ["sku"])
    op.create_index("ix_products_created_at", "products", ["created_at"])

    # Batches table
    op.create_table(
        "batches",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("product_id", sa.Integer(), sa.ForeignKey("products.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("batch_number", sa.String(100), nullable=False),
        sa.Column("expiry_date", sa.Date(), nullable=True),
        sa.Column("initial_quantity", sa.Integer(), nullable=False),
        sa.Column("remaining_quantity", sa.Integer(), nullable=False),
        sa.Column("is_synthesized", sa.Boolean(), server_default="0", nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("remaining_quantity >= 0", name="ck_batch_remaining_non_negative"),
        sa.CheckConstraint("remaining_quantity <= initial_quantity", name="ck_batch_remaining_within_initial"),
    )
    op.create_index("ix_batches_product_id", "batches", ["product_id"])
    op.create_index("ix_batches_batch_number", "batches", ["batch_number"], unique=True)
    op.create_index("ix_batches_expiry_date", "batches", ["expiry_date"])
    op.create_index("ix_batches_created_at", "batches", ["created_at"])

    # Orders table
    op.create_table(
        "orders",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("external_order_id", sa.String(100), nullable=False),
        sa.Column("customer_label", sa.String(255), nullable=True),
        sa.Column("order_date", sa.Date(), nullable=False),
        sa.Column("tenant", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_orders_external_order_id", "orders", ["external_order_id"], unique=True)
    op.create_index("ix_orders_order_date", "orders", ["order_date"])
    op.create_index("ix_orders_created_at", "orders", ["created_at"])

    # Order line items (consumptions)
    op.create_table(
        "order_line_items",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("order_id", sa.Integer(), sa.ForeignKey("orders.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("product_id", sa.Integer(), sa.ForeignKey("products.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("batch_id", sa.Integer(), sa.ForeignKey("batches.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.CheckConstraint("quantity > 0", name="ck_line_item_quantity_positive"),
    )
    op.create_index("ix_order_line_items_order_id", "order_line_items", ["order_id"])
    op.create_index("ix_order_line_items_product_id", "order_line_items", ["product_id"])
    op.create_index("ix_order_line_items_batch_id", "order_line_items", ["batch_id"])

    # Allocation shortfalls (backorders)
    op.create_table(
        "allocation_shortfalls",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("order_id", sa.Integer(), sa.ForeignKey("orders.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("product_id", sa.Integer(), sa.ForeignKey("products.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("quantity > 0", name="ck_shortfall_quantity_positive"),
    )
    op.create_index("ix_allocation_shortfalls_order_id", "allocation_shortfalls", ["order_id"])
    op.create_index("ix_allocation_shortfalls_product_id", "allocation_shortfalls", ["product_id"])
    op.create_index("ix_allocation_shortfalls_created_at", "allocation_shortfalls", ["created_at"])

    # Per-shop platform credentials
    op.create_table(
        "tenant_credentials",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("shop_domain", sa.String(255), nullable=False),
        sa.Column("access_token", sa.String(255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_tenant_credentials_shop_domain", "tenant_credentials", ["shop_domain"], unique=True)
    op.create_index("ix_tenant_credentials_created_at", "tenant_credentials", ["created_at"])


def downgrade() -> None:
    op.drop_table("tenant_credentials")
    op.drop_table("allocation_shortfalls")
    op.drop_table("order_line_items")
    op.drop_table("orders")
    op.drop_table("batches")
    op.drop_table("products")
