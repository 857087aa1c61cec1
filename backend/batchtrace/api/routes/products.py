"""Product routes."""

from fastapi import APIRouter, Query, Request

from batchtrace.api.routes.formatting import format_batch_response
from batchtrace.core.rate_limit import limiter
from batchtrace.core.responses import list_response, paginated_response
from batchtrace.core.tenancy import CurrentTenant
from batchtrace.db.session import DbSession
from batchtrace.schemas.product import ProductEnsure, ProductResponse
from batchtrace.services.batch_store import BatchStore
from batchtrace.services.product_registry import ProductRegistry

router = APIRouter()


@router.get("/")
@limiter.limit("60/minute")
def list_products(
    request: Request,
    db: DbSession,
    tenant: CurrentTenant,
    skip: int = Query(0, ge=0, description="Number of items to skip"),
    limit: int = Query(50, ge=1, le=500, description="Maximum items to return"),
):
    """List registered products with pagination."""
    items, total = ProductRegistry(db).list_products(skip, limit)
    return paginated_response(
        [ProductResponse.model_validate(p).model_dump() for p in items], total, skip, limit
    )


@router.post("/", response_model=ProductResponse)
@limiter.limit("30/minute")
def ensure_product(request: Request, data: ProductEnsure, db: DbSession, tenant: CurrentTenant):
    """Resolve a platform product id to a product, registering it if new."""
    product = ProductRegistry(db).ensure_product(data.external_product_id, data.name, data.sku)
    db.commit()
    db.refresh(product)
    return product


@router.get("/{product_id}", response_model=ProductResponse)
@limiter.limit("60/minute")
def get_product(request: Request, product_id: int, db: DbSession, tenant: CurrentTenant):
    return ProductRegistry(db).get(product_id)


@router.get("/{product_id}/batches")
@limiter.limit("60/minute")
def list_fulfillable_batches(
    request: Request, product_id: int, db: DbSession, tenant: CurrentTenant
):
    """Batches with stock left, in the order allocation would draw from them."""
    ProductRegistry(db).get(product_id)
    batches = BatchStore(db).list_fulfillable_batches(product_id)
    return list_response([format_batch_response(b) for b in batches])
