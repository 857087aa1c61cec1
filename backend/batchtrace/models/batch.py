"""Batch (lot) model."""

from __future__ import annotations

from datetime import date
from typing import Optional

from sqlalchemy import Boolean, CheckConstraint, Date, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from batchtrace.db.base import Base, CreatedAtMixin


class Batch(Base, CreatedAtMixin):
    """A dated quantity of one product, depleted as orders consume it."""

    __tablename__ = "batches"
    __table_args__ = (
        CheckConstraint("remaining_quantity >= 0", name="ck_batch_remaining_non_negative"),
        CheckConstraint(
            "remaining_quantity <= initial_quantity", name="ck_batch_remaining_within_initial"
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    product_id: Mapped[int] = mapped_column(
        ForeignKey("products.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    batch_number: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    expiry_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True, index=True)
    initial_quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    remaining_quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    is_synthesized: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default="0", nullable=False
    )

    # Relationships
    product: Mapped["Product"] = relationship("Product", back_populates="batches")
    consumptions: Mapped[list["Consumption"]] = relationship(
        "Consumption", back_populates="batch"
    )

    def is_expired(self, today: Optional[date] = None) -> bool:
        if self.expiry_date is None:
            return False
        return self.expiry_date < (today or date.today())

    def days_until_expiry(self, today: Optional[date] = None) -> Optional[int]:
        if self.expiry_date is None:
            return None
        return (self.expiry_date - (today or date.today())).days


# Forward references
from batchtrace.models.product import Product
from batchtrace.models.order import Consumption
