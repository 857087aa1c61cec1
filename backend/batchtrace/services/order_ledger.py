"""Order Ledger: orders, their batch consumptions and recorded shortfalls."""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from batchtrace.core.exceptions import InvalidInput, UnknownOrder
from batchtrace.models.batch import Batch
from batchtrace.models.order import AllocationShortfall, Consumption, Order
from batchtrace.models.product import Product

logger = logging.getLogger(__name__)


@dataclass
class AllocationRecord:
    external_product_id: str
    product_name: str
    batch_id: int
    batch_number: str
    quantity: int
    synthesized: bool = False


@dataclass
class ShortfallRecord:
    external_product_id: str
    quantity: int


@dataclass
class OrderOutcome:
    """Result of processing an order; identical for first and repeated deliveries."""

    order_id: int
    external_order_id: str
    customer_label: Optional[str]
    order_date: date
    allocations: List[AllocationRecord] = field(default_factory=list)
    shortfalls: List[ShortfallRecord] = field(default_factory=list)
    duplicate: bool = False

    @property
    def allocated_quantity(self) -> int:
        return sum(a.quantity for a in self.allocations)


class OrderLedger:
    """Order persistence. Methods flush but never commit."""

    def __init__(self, db: Session):
        self.db = db

    def get_order(self, external_order_id: str) -> Optional[Order]:
        return self.db.execute(
            select(Order).where(Order.external_order_id == external_order_id)
        ).scalar_one_or_none()

    def require_order(self, external_order_id: str) -> Order:
        order = self.get_order(external_order_id)
        if order is None:
            raise UnknownOrder(external_order_id)
        return order

    def record_order(
        self,
        external_order_id: str,
        customer_label: Optional[str],
        order_date: date,
        consumptions: Tuple[Tuple[Batch, int], ...] = (),
        tenant: Optional[str] = None,
    ) -> Tuple[Order, bool]:
        """Insert an order, or return the existing one for the same external id.

        Returns ``(order, created)``. ``created`` is False when the order was
        already recorded, including when a concurrent transaction inserted it
        between our read and our insert; in that case nothing is written.
        """
        if not external_order_id:
            raise InvalidInput("external_order_id is required")
        if order_date is None:
            raise InvalidInput("order_date is required")

        existing = self.get_order(external_order_id)
        if existing is not None:
            return existing, False

        order = Order(
            external_order_id=external_order_id,
            customer_label=customer_label,
            order_date=order_date,
            tenant=tenant,
        )
        try:
            with self.db.begin_nested():
                self.db.add(order)
        except IntegrityError:
            existing = self.get_order(external_order_id)
            if existing is None:
                raise
            logger.info(f"Order {external_order_id} was recorded concurrently")
            return existing, False

        for batch, quantity in consumptions:
            self.add_consumption(order, batch, quantity)
        return order, True

    def add_consumption(self, order: Order, batch: Batch, quantity: int) -> Consumption:
        if quantity <= 0:
            raise InvalidInput(f"Consumption quantity must be positive, got {quantity}")
        consumption = Consumption(
            order_id=order.id,
            product_id=batch.product_id,
            batch_id=batch.id,
            quantity=quantity,
        )
        self.db.add(consumption)
        self.db.flush()
        return consumption

    def add_shortfall(self, order: Order, product: Product, quantity: int) -> AllocationShortfall:
        shortfall = AllocationShortfall(order_id=order.id, product_id=product.id, quantity=quantity)
        self.db.add(shortfall)
        self.db.flush()
        return shortfall

    def outcome_for(self, order: Order, duplicate: bool = False) -> OrderOutcome:
        """Rebuild the allocation outcome from what is persisted for ``order``."""
        rows = self.db.execute(
            select(Consumption, Batch, Product)
            .join(Batch, Consumption.batch_id == Batch.id)
            .join(Product, Consumption.product_id == Product.id)
            .where(Consumption.order_id == order.id)
            .order_by(Consumption.id)
        ).all()
        shortfall_rows = self.db.execute(
            select(AllocationShortfall, Product)
            .join(Product, AllocationShortfall.product_id == Product.id)
            .where(AllocationShortfall.order_id == order.id)
            .order_by(AllocationShortfall.id)
        ).all()

        return OrderOutcome(
            order_id=order.id,
            external_order_id=order.external_order_id,
            customer_label=order.customer_label,
            order_date=order.order_date,
            duplicate=duplicate,
            allocations=[
                AllocationRecord(
                    external_product_id=product.external_product_id,
                    product_name=product.display_name,
                    batch_id=batch.id,
                    batch_number=batch.batch_number,
                    quantity=consumption.quantity,
                    synthesized=batch.is_synthesized,
                )
                for consumption, batch, product in rows
            ],
            shortfalls=[
                ShortfallRecord(
                    external_product_id=product.external_product_id,
                    quantity=shortfall.quantity,
                )
                for shortfall, product in shortfall_rows
            ],
        )
