"""Maps Shopify order webhook payloads onto the canonical order shape."""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import List, Optional

from batchtrace.core.exceptions import InvalidInput
from batchtrace.schemas.webhook import ShopifyOrderPayload
from batchtrace.services.allocation_engine import LineItem, normalize_line_items

logger = logging.getLogger(__name__)


@dataclass
class MappedOrder:
    external_order_id: str
    customer_label: Optional[str]
    order_date: date
    line_items: List[LineItem] = field(default_factory=list)
    skipped_lines: int = 0


def parse_order_date(value: Optional[str]) -> date:
    """Calendar date of an ISO-8601 timestamp, in the timestamp's own offset."""
    if not value:
        raise InvalidInput("Order payload has no created_at timestamp")
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        pass
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        raise InvalidInput(f"Unparseable order timestamp: {value}")


def customer_label_for(payload: ShopifyOrderPayload) -> Optional[str]:
    customer = payload.customer
    if customer is not None:
        full_name = " ".join(
            part.strip() for part in (customer.first_name, customer.last_name) if part and part.strip()
        )
        if full_name:
            return full_name
        if customer.email:
            return customer.email
    return payload.email or None


def map_shopify_order(payload: ShopifyOrderPayload) -> MappedOrder:
    """Canonical order for a webhook payload.

    Lines without a product (custom items, tips) and zero-quantity lines are
    skipped. Raises InvalidInput when the payload has no id, no usable date,
    or no allocatable line.
    """
    if payload.id is None or str(payload.id).strip() == "":
        raise InvalidInput("Order payload has no id")

    candidates = []
    skipped = 0
    for line in payload.line_items:
        if line.product_id is None or str(line.product_id).strip() == "":
            skipped += 1
            logger.info(f"Order {payload.id}: skipping line {line.id} without product_id")
            continue
        candidates.append(
            LineItem(
                external_product_id=str(line.product_id),
                quantity=line.quantity or 0,
                name=line.title or line.name,
                sku=line.sku or None,
            )
        )

    line_items = normalize_line_items(candidates)
    skipped += len(candidates) - len(line_items)

    return MappedOrder(
        external_order_id=str(payload.id),
        customer_label=customer_label_for(payload),
        order_date=parse_order_date(payload.created_at or payload.processed_at),
        line_items=line_items,
        skipped_lines=skipped,
    )
