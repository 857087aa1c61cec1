"""API routes."""

from fastapi import APIRouter

from batchtrace.api.routes import batches, orders, products, webhooks

api_router = APIRouter()

api_router.include_router(products.router, prefix="/products", tags=["products"])
api_router.include_router(batches.router, prefix="/batches", tags=["batches"])
api_router.include_router(orders.router, prefix="/orders", tags=["orders", "traceability"])
api_router.include_router(webhooks.router, prefix="/webhooks", tags=["webhooks"])
