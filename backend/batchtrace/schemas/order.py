"""Order submission, allocation outcome and traceability schemas."""

from __future__ import annotations

import datetime
from datetime import date
from typing import List, Optional

from pydantic import BaseModel, Field


class OrderLineItemIn(BaseModel):
    """One order line in the canonical shape."""

    external_product_id: str = Field(min_length=1, max_length=64)
    name: Optional[str] = Field(default=None, max_length=255)
    sku: Optional[str] = Field(default=None, max_length=100)
    # Zero-quantity lines are accepted here and dropped before allocation
    quantity: int


class OrderCreate(BaseModel):
    """Direct order submission."""

    external_order_id: str = Field(min_length=1, max_length=100)
    customer_label: Optional[str] = Field(default=None, max_length=255)
    order_date: date
    line_items: List[OrderLineItemIn] = Field(min_length=1)


class AllocationResponse(BaseModel):
    external_product_id: str
    product_name: str
    batch_id: int
    batch_number: str
    quantity: int
    synthesized: bool = False


class ShortfallResponse(BaseModel):
    external_product_id: str
    quantity: int


class OrderOutcomeResponse(BaseModel):
    order_id: int
    external_order_id: str
    customer_label: Optional[str] = None
    order_date: date
    duplicate: bool = False
    allocations: List[AllocationResponse]
    shortfalls: List[ShortfallResponse] = []


class TraceabilityEntry(BaseModel):
    order_id: str
    customer: Optional[str] = None
    date: datetime.date
    product_name: str
    quantity: int


class TraceabilityResponse(BaseModel):
    batch_number: str
    total_quantity: int
    order_count: int
    orders: List[TraceabilityEntry]
