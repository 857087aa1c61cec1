"""SQLAlchemy models."""

from batchtrace.models.product import Product
from batchtrace.models.batch import Batch
from batchtrace.models.order import Order, Consumption, AllocationShortfall
from batchtrace.models.tenant import TenantCredential

__all__ = [
    "Product",
    "Batch",
    "Order",
    "Consumption",
    "AllocationShortfall",
    "TenantCredential",
]
