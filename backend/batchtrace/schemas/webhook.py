"""Shopify order webhook payload.

Only the fields the order mapping reads are declared; everything else in the
platform payload is ignored.
"""

from __future__ import annotations

from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict


class ShopifyCustomer(BaseModel):
    model_config = ConfigDict(extra="ignore")

    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None


class ShopifyLineItem(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: Optional[Union[int, str]] = None
    product_id: Optional[Union[int, str]] = None
    variant_id: Optional[Union[int, str]] = None
    title: Optional[str] = None
    name: Optional[str] = None
    sku: Optional[str] = None
    quantity: Optional[int] = None


class ShopifyOrderPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: Optional[Union[int, str]] = None
    name: Optional[str] = None
    email: Optional[str] = None
    created_at: Optional[str] = None
    processed_at: Optional[str] = None
    customer: Optional[ShopifyCustomer] = None
    line_items: List[ShopifyLineItem] = []
