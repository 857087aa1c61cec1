"""Order ledger models: Order, Consumption (order line item) and AllocationShortfall."""

from __future__ import annotations

from datetime import date
from typing import Optional

from sqlalchemy import CheckConstraint, Date, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from batchtrace.db.base import Base, CreatedAtMixin


class Order(Base, CreatedAtMixin):
    """One external sale. ``external_order_id`` is the idempotency key."""

    __tablename__ = "orders"

    id: Mapped[int] = mapped_column(primary_key=True)
    external_order_id: Mapped[str] = mapped_column(
        String(100), unique=True, nullable=False, index=True
    )
    customer_label: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    order_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    tenant: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Relationships
    consumptions: Mapped[list["Consumption"]] = relationship(
        "Consumption", back_populates="order", order_by="Consumption.id"
    )
    shortfalls: Mapped[list["AllocationShortfall"]] = relationship(
        "AllocationShortfall", back_populates="order", order_by="AllocationShortfall.id"
    )


class Consumption(Base):
    """Immutable fact: an order drew ``quantity`` units of a product from a batch.

    ``product_id`` is denormalized from the batch for query convenience and
    always equals ``batch.product_id``.
    """

    __tablename__ = "order_line_items"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_line_item_quantity_positive"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    order_id: Mapped[int] = mapped_column(
        ForeignKey("orders.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    product_id: Mapped[int] = mapped_column(
        ForeignKey("products.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    batch_id: Mapped[int] = mapped_column(
        ForeignKey("batches.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    # Relationships
    order: Mapped["Order"] = relationship("Order", back_populates="consumptions")
    product: Mapped["Product"] = relationship("Product")
    batch: Mapped["Batch"] = relationship("Batch", back_populates="consumptions")


class AllocationShortfall(Base, CreatedAtMixin):
    """Units of an order line that could not be matched to any batch (backorder)."""

    __tablename__ = "allocation_shortfalls"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_shortfall_quantity_positive"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    order_id: Mapped[int] = mapped_column(
        ForeignKey("orders.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    product_id: Mapped[int] = mapped_column(
        ForeignKey("products.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    # Relationships
    order: Mapped["Order"] = relationship("Order", back_populates="shortfalls")
    product: Mapped["Product"] = relationship("Product")


# Forward references
from batchtrace.models.product import Product
from batchtrace.models.batch import Batch
