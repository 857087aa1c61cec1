"""Commerce platform webhooks.

Shopify retries any delivery that is not acknowledged with a 2xx, so once a
delivery is authenticated it is always acknowledged. Failures are logged,
counted and raised as operator alerts instead of being reported back.
"""

import logging

from fastapi import APIRouter, Header, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from pydantic import ValidationError

from batchtrace.api.deps import AllocationEngineDep
from batchtrace.core.alerting import alert_manager
from batchtrace.core.exceptions import BatchTraceError, InvalidInput
from batchtrace.core.metrics import metrics
from batchtrace.core.rate_limit import webhook_limiter
from batchtrace.core.security import verify_webhook_signature
from batchtrace.schemas.webhook import ShopifyOrderPayload
from batchtrace.services.webhook_mapping import map_shopify_order

logger = logging.getLogger(__name__)

router = APIRouter()

HANDLED_TOPICS = {"orders/create", "orders/paid"}


def _acknowledge_failure(shop: str, topic: str, error_code: str, message: str, **context) -> dict:
    metrics.increment("webhook_failures_total")
    alert_manager.alert(
        "critical",
        "Order webhook not processed",
        f"{topic} from {shop}: {message}",
        source="webhook",
        shop=shop,
        topic=topic,
        error=error_code,
        **context,
    )
    return {"received": True, "processed": False, "error": error_code}


@router.post("/shopify/orders")
@webhook_limiter.limit("120/minute")
async def shopify_order_webhook(
    request: Request,
    engine: AllocationEngineDep,
    hmac_signature: str = Header(None, alias="X-Shopify-Hmac-Sha256"),
    shop_domain: str = Header(None, alias="X-Shopify-Shop-Domain"),
    topic: str = Header("orders/create", alias="X-Shopify-Topic"),
    webhook_id: str = Header(None, alias="X-Shopify-Webhook-Id"),
):
    """Handle Shopify order webhooks.

    This endpoint does NOT require a bearer token. Shopify signs the raw body
    and we verify it with ``SHOPIFY_API_SECRET``; the shop domain header is
    the tenant.
    """
    body = await request.body()

    if not verify_webhook_signature(body, hmac_signature):
        logger.warning(f"Rejected webhook with invalid signature from {shop_domain or 'unknown shop'}")
        raise HTTPException(status_code=401, detail="Invalid webhook signature")
    if not shop_domain:
        raise HTTPException(status_code=400, detail="Missing X-Shopify-Shop-Domain header")

    shop = shop_domain.lower()
    if topic not in HANDLED_TOPICS:
        logger.info(f"Ignoring webhook topic {topic} from {shop}")
        return {"received": True, "processed": False, "topic": topic}

    try:
        payload = ShopifyOrderPayload.model_validate_json(body)
        mapped = map_shopify_order(payload)
    except ValidationError as e:
        logger.error(f"Malformed {topic} payload from {shop}: {e}")
        return _acknowledge_failure(shop, topic, "invalid_payload", str(e), webhook_id=webhook_id)
    except InvalidInput as e:
        logger.error(f"Unusable {topic} payload from {shop}: {e.message}")
        return _acknowledge_failure(shop, topic, e.code, e.message, webhook_id=webhook_id)

    try:
        outcome = await run_in_threadpool(
            engine.process_order,
            shop,
            mapped.external_order_id,
            mapped.customer_label,
            mapped.order_date,
            mapped.line_items,
        )
    except BatchTraceError as e:
        logger.error(f"Order {mapped.external_order_id} from {shop} not processed: {e.message}")
        return _acknowledge_failure(
            shop, topic, e.code, e.message,
            order=mapped.external_order_id, webhook_id=webhook_id,
        )
    except Exception as e:
        logger.error(
            f"Unexpected error processing order {mapped.external_order_id} from {shop}",
            exc_info=True,
        )
        return _acknowledge_failure(
            shop, topic, "internal_error", f"{type(e).__name__}: {e}",
            order=mapped.external_order_id, webhook_id=webhook_id,
        )

    return {
        "received": True,
        "processed": True,
        "duplicate": outcome.duplicate,
        "order_id": outcome.order_id,
        "external_order_id": outcome.external_order_id,
        "allocated_quantity": outcome.allocated_quantity,
        "skipped_lines": mapped.skipped_lines,
    }
