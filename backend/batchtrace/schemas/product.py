"""Product schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class ProductEnsure(BaseModel):
    """Resolve-or-create request keyed by the platform product id."""

    external_product_id: str = Field(min_length=1, max_length=64)
    name: Optional[str] = Field(default=None, max_length=255)
    sku: Optional[str] = Field(default=None, max_length=100)


class ProductResponse(BaseModel):
    """Product response schema."""

    id: int
    external_product_id: str
    name: Optional[str] = None
    sku: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}
