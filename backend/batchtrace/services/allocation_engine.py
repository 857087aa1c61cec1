"""Allocation engine: turns an incoming order into batch consumptions.

For every order line the engine resolves (or registers) the product, draws
units from its batches in FEFO order, and when stock runs out either creates
a synthesized batch from product metadata hints or records the remainder as a
shortfall. Everything an order writes lands in a single transaction, and an
order's external id is processed at most once no matter how often it is
delivered.
"""

import logging
import re
import time
from collections import OrderedDict
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Iterable, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from batchtrace.core.alerting import alert_manager
from batchtrace.core.config import settings
from batchtrace.core.exceptions import (
    AllocationFailed,
    BatchTraceError,
    InsufficientStock,
    InvalidInput,
    MetadataResolverUnavailable,
    OrderRejected,
    UnknownBatch,
)
from batchtrace.core.metrics import metrics
from batchtrace.models.batch import Batch
from batchtrace.models.order import Order
from batchtrace.models.product import Product
from batchtrace.services.batch_store import BatchStore
from batchtrace.services.metadata_resolver import (
    MetadataResolver,
    NullMetadataResolver,
    ProductHints,
)
from batchtrace.services.order_ledger import OrderLedger, OrderOutcome
from batchtrace.services.product_registry import ProductRegistry

logger = logging.getLogger(__name__)

SHORTFALL_POLICIES = ("backorder", "reject")
_TOKEN_MAX_LENGTH = 40


@dataclass(frozen=True)
class LineItem:
    """One order line in the canonical shape."""

    external_product_id: str
    quantity: int
    name: Optional[str] = None
    sku: Optional[str] = None


def normalize_line_items(items: Iterable[LineItem]) -> List[LineItem]:
    """Drop lines with a non-positive quantity.

    Commerce platforms send zero-quantity lines for removed or fully refunded
    items. Raises InvalidInput if nothing allocatable is left.
    """
    kept = [item for item in items if item.quantity is not None and item.quantity > 0]
    if not kept:
        raise InvalidInput("Order has no line items with a positive quantity")
    return kept


def _batch_token(product: Product) -> str:
    raw = product.sku or f"P{product.external_product_id}"
    token = re.sub(r"[^A-Za-z0-9]+", "-", raw).strip("-").upper()
    return (token or f"P{product.id}")[:_TOKEN_MAX_LENGTH]


class AllocationEngine:
    """Processes orders against the batch store.

    Construct one per request/session. Defaults for the tunables come from
    settings; tests pass them explicitly.
    """

    def __init__(
        self,
        db: Session,
        resolver: Optional[MetadataResolver] = None,
        *,
        synthesize_on_shortfall: Optional[bool] = None,
        shortfall_policy: Optional[str] = None,
        max_attempts: Optional[int] = None,
        retry_backoff: Optional[float] = None,
        clock: Optional[Callable[[], datetime]] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.db = db
        self.resolver = resolver or NullMetadataResolver()
        self.products = ProductRegistry(db)
        self.batches = BatchStore(db)
        self.ledger = OrderLedger(db)

        self.synthesize_on_shortfall = (
            settings.allocation_synthesize_on_shortfall
            if synthesize_on_shortfall is None
            else synthesize_on_shortfall
        )
        self.shortfall_policy = shortfall_policy or settings.allocation_shortfall_policy
        if self.shortfall_policy not in SHORTFALL_POLICIES:
            raise ValueError(f"Unknown shortfall policy: {self.shortfall_policy}")
        self.max_attempts = max_attempts or settings.allocation_max_attempts
        self.retry_backoff = (
            retry_backoff if retry_backoff is not None else settings.allocation_retry_backoff_seconds
        )
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._sleep = sleep
        # Alerts and counters that must only fire once the transaction commits
        self._pending: List[Tuple[str, tuple, dict]] = []

    # ==================== PUBLIC API ====================

    def process_order(
        self,
        tenant: str,
        external_order_id: str,
        customer_label: Optional[str],
        order_date: date,
        line_items: List[LineItem],
    ) -> OrderOutcome:
        """Allocate an order and commit it, or return the stored outcome if already processed.

        Either every consumption, synthesized batch and shortfall of the order
        is committed together with the order row, or nothing is.
        """
        external_order_id = (external_order_id or "").strip()
        self._validate(tenant, external_order_id, order_date, line_items)

        last_error: Optional[Exception] = None
        for attempt in range(1, self.max_attempts + 1):
            self._pending = []
            try:
                outcome = self._process_once(
                    tenant, external_order_id, customer_label, order_date, line_items
                )
                self.db.commit()
            except BatchTraceError:
                self.db.rollback()
                raise
            except IntegrityError as e:
                # Another delivery of this order committed first; the next
                # attempt finds it and returns the stored outcome
                self.db.rollback()
                last_error = e
                metrics.increment("allocation_retries_total")
                logger.warning(
                    f"Order {external_order_id}: integrity conflict on attempt "
                    f"{attempt}/{self.max_attempts}: {e.orig}"
                )
                continue
            except OperationalError as e:
                self.db.rollback()
                last_error = e
                metrics.increment("allocation_retries_total")
                logger.warning(
                    f"Order {external_order_id}: database unavailable on attempt "
                    f"{attempt}/{self.max_attempts}: {e.orig}"
                )
                if attempt < self.max_attempts and self.retry_backoff > 0:
                    self._sleep(self.retry_backoff * attempt)
                continue
            except Exception:
                self.db.rollback()
                logger.error(f"Order {external_order_id}: allocation aborted", exc_info=True)
                raise

            self._flush_pending()
            if outcome.duplicate:
                metrics.increment("orders_duplicate_total")
                logger.info(f"Order {external_order_id} already processed; returning stored outcome")
            else:
                metrics.increment("orders_processed_total")
                logger.info(
                    f"Order {external_order_id} processed: "
                    f"{len(outcome.allocations)} consumptions, "
                    f"{sum(s.quantity for s in outcome.shortfalls)} units short"
                )
            return outcome

        alert_manager.alert(
            "critical",
            "Order allocation failed",
            f"Order {external_order_id} could not be persisted after {self.max_attempts} attempts",
            source="allocation",
            tenant=tenant,
            error=str(last_error),
        )
        raise AllocationFailed(
            f"Order {external_order_id} could not be persisted after {self.max_attempts} attempts"
        ) from last_error

    # ==================== ONE ATTEMPT ====================

    def _validate(
        self,
        tenant: str,
        external_order_id: str,
        order_date: date,
        line_items: List[LineItem],
    ) -> None:
        if not tenant:
            raise InvalidInput("tenant is required")
        if not external_order_id:
            raise InvalidInput("external_order_id is required")
        if not isinstance(order_date, date):
            raise InvalidInput("order_date is required")
        if not line_items:
            raise InvalidInput("Order has no line items")
        for item in line_items:
            if not (item.external_product_id or "").strip():
                raise InvalidInput("Every line item needs an external_product_id")
            if item.quantity is None or item.quantity <= 0:
                raise InvalidInput(
                    f"Line item for product {item.external_product_id} has "
                    f"non-positive quantity {item.quantity}"
                )

    def _process_once(
        self,
        tenant: str,
        external_order_id: str,
        customer_label: Optional[str],
        order_date: date,
        line_items: List[LineItem],
    ) -> OrderOutcome:
        order, created = self.ledger.record_order(
            external_order_id, customer_label, order_date, tenant=tenant
        )
        if not created:
            return self.ledger.outcome_for(order, duplicate=True)

        shortfalls: "OrderedDict[str, Tuple[Product, int]]" = OrderedDict()
        for item in line_items:
            product, missing = self._allocate_line(tenant, order, item)
            if missing:
                key = product.external_product_id
                previous = shortfalls.get(key, (product, 0))[1]
                shortfalls[key] = (product, previous + missing)

        if shortfalls:
            self._handle_shortfalls(order, shortfalls)

        return self.ledger.outcome_for(order)

    def _allocate_line(self, tenant: str, order: Order, item: LineItem) -> Tuple[Product, int]:
        """Draw one line's units; returns the product and the units left unallocated."""
        product = self.products.ensure_product(item.external_product_id, item.name, item.sku)
        outstanding = item.quantity

        for batch in self.batches.list_fulfillable_batches(product.id):
            if outstanding == 0:
                break
            outstanding -= self._draw(order, batch, outstanding)

        if outstanding > 0 and self.synthesize_on_shortfall:
            batch = self._synthesize_batch(tenant, product, order.order_date, outstanding)
            outstanding -= self._draw(order, batch, outstanding)

        return product, outstanding

    def _draw(self, order: Order, batch: Batch, wanted: int) -> int:
        """Take up to ``wanted`` units from ``batch``; returns the units taken.

        The candidate list is a snapshot. When another transaction has drawn
        from the batch since, the decrement fails and we retry against the
        quantity that is actually left. A batch deleted since then counts as
        empty.
        """
        available = batch.remaining_quantity
        while available > 0:
            take = min(wanted, available)
            try:
                self.batches.decrement_batch(batch.id, take)
            except InsufficientStock as e:
                logger.info(
                    f"Batch {batch.batch_number} changed under order "
                    f"{order.external_order_id}: wanted {take}, {e.available} left"
                )
                available = e.available or 0
                continue
            except UnknownBatch:
                logger.info(
                    f"Batch {batch.batch_number} was removed under order "
                    f"{order.external_order_id}; moving on"
                )
                return 0
            self.ledger.add_consumption(order, batch, take)
            return take
        return 0

    # ==================== SHORTFALL HANDLING ====================

    def _resolve_hints(self, tenant: str, product: Product) -> ProductHints:
        try:
            return self.resolver.resolve_product_hints(tenant, product.external_product_id)
        except MetadataResolverUnavailable as e:
            logger.warning(
                f"Metadata lookup for product {product.external_product_id} failed: {e.message}"
            )
            self._pending.append(("metric", ("metadata_lookup_failures_total", 1), {}))
            self._pending.append((
                "alert",
                ("warning", "Product metadata unavailable",
                 f"Synthesizing batch for product {product.external_product_id} without hints: {e.message}"),
                {"source": "metadata", "tenant": tenant, "resolver": self.resolver.name},
            ))
            return ProductHints()

    def _next_batch_number(self, product: Product) -> str:
        stamp = self._clock().strftime("%Y%m%d%H%M%S%f")
        base = f"{settings.synthesized_batch_prefix}-{_batch_token(product)}-{stamp}"
        candidate = base
        suffix = 1
        while self.batches.get_by_number(candidate) is not None:
            suffix += 1
            candidate = f"{base}-{suffix}"
        return candidate

    def _synthesize_batch(
        self, tenant: str, product: Product, order_date: date, outstanding: int
    ) -> Batch:
        hints = self._resolve_hints(tenant, product)
        quantity = max(hints.default_batch_quantity or 0, outstanding)
        expiry = (
            order_date + timedelta(days=hints.shelf_life_days)
            if hints.shelf_life_days
            else None
        )
        batch = self.batches.create_batch(
            product.id,
            self._next_batch_number(product),
            expiry,
            quantity,
            synthesized=True,
        )
        self._pending.append(("metric", ("batches_synthesized_total", 1), {}))
        logger.info(
            f"Synthesized batch {batch.batch_number} for product "
            f"{product.external_product_id}: qty={quantity}, expiry={expiry}, "
            f"hints={'none' if hints.is_empty else hints}"
        )
        return batch

    def _handle_shortfalls(
        self, order: Order, shortfalls: "OrderedDict[str, Tuple[Product, int]]"
    ) -> None:
        if self.shortfall_policy == "reject":
            raise OrderRejected(
                order.external_order_id,
                {key: quantity for key, (_, quantity) in shortfalls.items()},
            )

        for key, (product, quantity) in shortfalls.items():
            self.ledger.add_shortfall(order, product, quantity)
            logger.warning(
                f"Order {order.external_order_id}: {quantity} units of product {key} "
                f"could not be allocated and were backordered"
            )
            self._pending.append(("metric", ("allocation_shortfall_units_total", quantity), {}))
            self._pending.append((
                "alert",
                ("warning", "Allocation shortfall",
                 f"Order {order.external_order_id} is short {quantity} units of product {key}"),
                {"source": "allocation", "order": order.external_order_id, "product": key},
            ))

    def _flush_pending(self) -> None:
        for kind, args, kwargs in self._pending:
            if kind == "metric":
                metrics.increment(*args)
            else:
                alert_manager.alert(*args, **kwargs)
        self._pending = []
