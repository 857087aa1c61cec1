"""Batch Store: durable lots and their remaining quantities.

Stock is only ever reduced through ``decrement_batch``, a single conditional
UPDATE, so two transactions competing for a batch's last units can never both
succeed in driving it below zero.
"""

import logging
from datetime import date
from typing import List, Optional

from sqlalchemy import exists, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from batchtrace.core.exceptions import (
    BatchHasConsumptions,
    BatchLocked,
    DuplicateBatchNumber,
    InsufficientStock,
    InvalidInput,
    UnknownBatch,
    UnknownProduct,
)
from batchtrace.models.batch import Batch
from batchtrace.models.order import Consumption
from batchtrace.models.product import Product

logger = logging.getLogger(__name__)


def fefo_order():
    """Expiry ascending with undated batches last, then oldest created first."""
    return (
        Batch.expiry_date.is_(None),
        Batch.expiry_date.asc(),
        Batch.created_at.asc(),
        Batch.id.asc(),
    )


class BatchStore:
    """Batch persistence. Methods flush but never commit."""

    def __init__(self, db: Session):
        self.db = db

    # ==================== READS ====================

    def get_batch(self, batch_id: int) -> Batch:
        batch = self.db.get(Batch, batch_id)
        if batch is None:
            raise UnknownBatch(batch_id)
        return batch

    def get_by_number(self, batch_number: str) -> Optional[Batch]:
        return self.db.execute(
            select(Batch).where(Batch.batch_number == batch_number)
        ).scalar_one_or_none()

    def list_fulfillable_batches(self, product_id: int) -> List[Batch]:
        """Batches of a product with stock left, in FEFO order. Empty list when none."""
        return list(
            self.db.execute(
                select(Batch)
                .where(Batch.product_id == product_id, Batch.remaining_quantity > 0)
                .order_by(*fefo_order())
            ).scalars().all()
        )

    def list_batches(
        self,
        product_id: Optional[int] = None,
        include_empty: bool = False,
    ) -> List[Batch]:
        query = select(Batch)
        if product_id is not None:
            query = query.where(Batch.product_id == product_id)
        if not include_empty:
            query = query.where(Batch.remaining_quantity > 0)
        return list(self.db.execute(query.order_by(*fefo_order())).scalars().all())

    def has_consumptions(self, batch_id: int) -> bool:
        return bool(
            self.db.execute(
                select(exists().where(Consumption.batch_id == batch_id))
            ).scalar()
        )

    # ==================== WRITES ====================

    def create_batch(
        self,
        product_id: int,
        batch_number: str,
        expiry_date: Optional[date],
        quantity: int,
        synthesized: bool = False,
    ) -> Batch:
        batch_number = (batch_number or "").strip()
        if not batch_number:
            raise InvalidInput("batch_number is required")
        if quantity is None or quantity <= 0:
            raise InvalidInput(f"Batch quantity must be positive, got {quantity}")
        if self.db.get(Product, product_id) is None:
            raise UnknownProduct(product_id)
        if self.get_by_number(batch_number) is not None:
            raise DuplicateBatchNumber(batch_number)

        batch = Batch(
            product_id=product_id,
            batch_number=batch_number,
            expiry_date=expiry_date,
            initial_quantity=quantity,
            remaining_quantity=quantity,
            is_synthesized=synthesized,
        )
        try:
            with self.db.begin_nested():
                self.db.add(batch)
        except IntegrityError:
            # Lost a race on the unique batch number
            raise DuplicateBatchNumber(batch_number)

        logger.info(
            f"Created batch {batch_number} for product {product_id}: "
            f"qty={quantity}, expiry={expiry_date}, synthesized={synthesized}"
        )
        return batch

    def decrement_batch(self, batch_id: int, amount: int) -> int:
        """Atomically take ``amount`` units from a batch and return what remains.

        Raises InsufficientStock (with the currently available quantity) when
        the batch holds fewer than ``amount`` units at the time of the update.
        """
        if amount is None or amount <= 0:
            raise InvalidInput(f"Decrement amount must be positive, got {amount}")

        result = self.db.execute(
            update(Batch)
            .where(Batch.id == batch_id, Batch.remaining_quantity >= amount)
            .values(remaining_quantity=Batch.remaining_quantity - amount)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            available = self.db.execute(
                select(Batch.remaining_quantity).where(Batch.id == batch_id)
            ).scalar_one_or_none()
            if available is None:
                raise UnknownBatch(batch_id)
            raise InsufficientStock(batch_id, amount, available)

        batch = self.db.get(Batch, batch_id)
        self.db.refresh(batch, attribute_names=["remaining_quantity"])
        return batch.remaining_quantity

    def update_batch(
        self,
        batch_id: int,
        expiry_date: Optional[date] = None,
        quantity: Optional[int] = None,
        clear_expiry: bool = False,
    ) -> Batch:
        """Administrative correction of expiry and/or quantity.

        Refused once any order has consumed from the batch, so recorded
        consumption always stays within the batch's quantity.
        """
        batch = self.get_batch(batch_id)
        if self.has_consumptions(batch_id):
            raise BatchLocked(batch.batch_number)
        if quantity is not None and quantity < 0:
            raise InvalidInput(f"Batch quantity cannot be negative, got {quantity}")

        if clear_expiry:
            batch.expiry_date = None
        elif expiry_date is not None:
            batch.expiry_date = expiry_date
        if quantity is not None:
            batch.initial_quantity = quantity
            batch.remaining_quantity = quantity

        self.db.flush()
        logger.info(
            f"Corrected batch {batch.batch_number}: expiry={batch.expiry_date}, "
            f"qty={batch.remaining_quantity}"
        )
        return batch

    def delete_batch(self, batch_id: int) -> None:
        batch = self.get_batch(batch_id)
        if self.has_consumptions(batch_id):
            raise BatchHasConsumptions(batch.batch_number)
        self.db.delete(batch)
        self.db.flush()
        logger.info(f"Deleted batch {batch.batch_number}")
