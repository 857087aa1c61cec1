"""Product model."""

from __future__ import annotations

from typing import Optional

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from batchtrace.db.base import Base, CreatedAtMixin


class Product(Base, CreatedAtMixin):
    """Internal identity for a catalog item, keyed by the platform's product id."""

    __tablename__ = "products"

    id: Mapped[int] = mapped_column(primary_key=True)
    external_product_id: Mapped[str] = mapped_column(
        String(64), unique=True, nullable=False, index=True
    )
    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    sku: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)

    # Relationships
    batches: Mapped[list["Batch"]] = relationship("Batch", back_populates="product")

    @property
    def display_name(self) -> str:
        return self.name or self.sku or self.external_product_id


# Forward references
from batchtrace.models.batch import Batch
