"""Pydantic request/response schemas."""

from batchtrace.schemas.product import ProductEnsure, ProductResponse
from batchtrace.schemas.batch import BatchCreate, BatchUpdate, BatchResponse
from batchtrace.schemas.order import (
    OrderLineItemIn,
    OrderCreate,
    AllocationResponse,
    ShortfallResponse,
    OrderOutcomeResponse,
    TraceabilityEntry,
    TraceabilityResponse,
)
from batchtrace.schemas.webhook import ShopifyOrderPayload
