"""
Batch API endpoints.
Register received lots, inspect remaining stock, correct or remove unused batches.
"""
from typing import Optional

from fastapi import APIRouter, Query, Request, Response, status

from batchtrace.api.routes.formatting import format_batch_response
from batchtrace.core.rate_limit import limiter
from batchtrace.core.responses import list_response
from batchtrace.core.tenancy import CurrentTenant
from batchtrace.db.session import DbSession
from batchtrace.schemas.batch import BatchCreate, BatchResponse, BatchUpdate
from batchtrace.services.batch_store import BatchStore

router = APIRouter()


@router.post("/", response_model=BatchResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
def create_batch(
    request: Request,
    data: BatchCreate,
    db: DbSession,
    tenant: CurrentTenant,
):
    """Register a new batch for a product"""
    batch = BatchStore(db).create_batch(
        data.product_id, data.batch_number, data.expiry_date, data.quantity
    )
    db.commit()
    db.refresh(batch)
    return format_batch_response(batch)


@router.get("/")
@limiter.limit("60/minute")
def list_batches(
    request: Request,
    db: DbSession,
    tenant: CurrentTenant,
    product_id: Optional[int] = Query(None, description="Filter by product"),
    include_empty: bool = Query(False, description="Include fully consumed batches"),
):
    """List batches in FEFO order"""
    batches = BatchStore(db).list_batches(product_id=product_id, include_empty=include_empty)
    return list_response([format_batch_response(b) for b in batches])


@router.get("/{batch_id}", response_model=BatchResponse)
@limiter.limit("60/minute")
def get_batch(request: Request, batch_id: int, db: DbSession, tenant: CurrentTenant):
    return format_batch_response(BatchStore(db).get_batch(batch_id))


@router.patch("/{batch_id}", response_model=BatchResponse)
@limiter.limit("30/minute")
def update_batch(
    request: Request,
    batch_id: int,
    data: BatchUpdate,
    db: DbSession,
    tenant: CurrentTenant,
):
    """Correct expiry or quantity of a batch no order has drawn from"""
    batch = BatchStore(db).update_batch(
        batch_id,
        expiry_date=data.expiry_date,
        quantity=data.quantity,
        clear_expiry=data.clear_expiry,
    )
    db.commit()
    db.refresh(batch)
    return format_batch_response(batch)


@router.delete("/{batch_id}", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit("30/minute")
def delete_batch(request: Request, batch_id: int, db: DbSession, tenant: CurrentTenant):
    BatchStore(db).delete_batch(batch_id)
    db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
