"""Order submission, order lookup and batch traceability routes."""

from fastapi import APIRouter, HTTPException, Request, Response, status
from fastapi.concurrency import run_in_threadpool

from batchtrace.api.deps import AllocationEngineDep
from batchtrace.core.rate_limit import limiter
from batchtrace.core.tenancy import CurrentTenant
from batchtrace.db.session import DbSession
from batchtrace.schemas.order import OrderCreate, OrderOutcomeResponse, TraceabilityResponse
from batchtrace.services.allocation_engine import LineItem, normalize_line_items
from batchtrace.services.order_ledger import OrderLedger
from batchtrace.services.traceability_service import TraceabilityService

router = APIRouter()


@router.post("/", response_model=OrderOutcomeResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("60/minute")
async def submit_order(
    request: Request,
    response: Response,
    data: OrderCreate,
    engine: AllocationEngineDep,
    tenant: CurrentTenant,
):
    """Allocate an order to batches.

    Returns 201 the first time an external order id is processed and 200 with
    the stored outcome (``duplicate: true``) for every repeat submission.
    """
    line_items = normalize_line_items(
        LineItem(
            external_product_id=item.external_product_id,
            quantity=item.quantity,
            name=item.name,
            sku=item.sku,
        )
        for item in data.line_items
    )
    outcome = await run_in_threadpool(
        engine.process_order,
        tenant.tenant,
        data.external_order_id,
        data.customer_label,
        data.order_date,
        line_items,
    )
    if outcome.duplicate:
        response.status_code = status.HTTP_200_OK
    return OrderOutcomeResponse.model_validate(outcome, from_attributes=True)


@router.get("/batch/{batch_number}", response_model=TraceabilityResponse)
@limiter.limit("60/minute")
def find_orders_by_batch(
    request: Request,
    batch_number: str,
    db: DbSession,
    tenant: CurrentTenant,
):
    """Every order that received units of a batch, most recent first."""
    facts = TraceabilityService(db).find_orders_by_batch_number(batch_number)
    if not facts:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No orders found for batch {batch_number}",
        )
    return {
        "batch_number": batch_number,
        "total_quantity": sum(f.quantity for f in facts),
        "order_count": len({f.order_id for f in facts}),
        "orders": [
            {
                "order_id": f.order_id,
                "customer": f.customer,
                "date": f.date,
                "product_name": f.product_name,
                "quantity": f.quantity,
            }
            for f in facts
        ],
    }


@router.get("/{external_order_id}", response_model=OrderOutcomeResponse)
@limiter.limit("60/minute")
def get_order(request: Request, external_order_id: str, db: DbSession, tenant: CurrentTenant):
    ledger = OrderLedger(db)
    order = ledger.require_order(external_order_id)
    return OrderOutcomeResponse.model_validate(ledger.outcome_for(order), from_attributes=True)
