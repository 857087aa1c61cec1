"""Batch schemas."""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field, model_validator


class BatchCreate(BaseModel):
    """Manual batch registration (goods received)."""

    product_id: int
    batch_number: str = Field(min_length=1, max_length=100)
    expiry_date: Optional[date] = None
    quantity: int = Field(gt=0)


class BatchUpdate(BaseModel):
    """Administrative correction; only allowed before any order consumed the batch."""

    expiry_date: Optional[date] = None
    quantity: Optional[int] = Field(default=None, ge=0)
    clear_expiry: bool = False

    @model_validator(mode="after")
    def check_something_to_update(self) -> "BatchUpdate":
        if self.expiry_date is None and self.quantity is None and not self.clear_expiry:
            raise ValueError("Provide expiry_date, quantity or clear_expiry")
        if self.clear_expiry and self.expiry_date is not None:
            raise ValueError("clear_expiry cannot be combined with expiry_date")
        return self


class BatchResponse(BaseModel):
    """Batch response schema with expiry status."""

    id: int
    product_id: int
    product_name: str = ""
    batch_number: str
    expiry_date: Optional[date] = None
    initial_quantity: int
    remaining_quantity: int
    is_synthesized: bool
    days_until_expiry: Optional[int] = None
    is_expired: bool = False
    created_at: datetime
