"""Traceability lookup: which orders received units of a given batch."""

from dataclasses import dataclass
from datetime import date
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from batchtrace.models.batch import Batch
from batchtrace.models.order import Consumption, Order
from batchtrace.models.product import Product


@dataclass
class TraceabilityFact:
    order_id: str
    customer: Optional[str]
    date: date
    product_name: str
    quantity: int


class TraceabilityService:
    def __init__(self, db: Session):
        self.db = db

    def find_orders_by_batch_number(self, batch_number: str) -> List[TraceabilityFact]:
        """One fact per consumption of the batch, most recent order date first.

        An unknown batch number and a batch nobody ordered from both give an
        empty list.
        """
        product_name = func.coalesce(Product.name, Product.sku, Product.external_product_id)
        rows = self.db.execute(
            select(
                Order.external_order_id,
                Order.customer_label,
                Order.order_date,
                product_name.label("product_name"),
                Consumption.quantity,
            )
            .select_from(Consumption)
            .join(Order, Consumption.order_id == Order.id)
            .join(Batch, Consumption.batch_id == Batch.id)
            .join(Product, Consumption.product_id == Product.id)
            .where(Batch.batch_number == batch_number)
            .order_by(Order.order_date.desc(), Order.id.desc(), Consumption.id.asc())
        ).all()

        return [
            TraceabilityFact(
                order_id=row.external_order_id,
                customer=row.customer_label,
                date=row.order_date,
                product_name=row.product_name,
                quantity=row.quantity,
            )
            for row in rows
        ]
