"""Domain exceptions.

Every error the core raises derives from ``BatchTraceError`` and carries the
HTTP status and machine-readable code the API boundary reports. Routes do not
catch these; the handler registered in ``batchtrace.main`` converts them.
"""

from typing import Optional


class BatchTraceError(Exception):
    """Base class for all domain errors."""

    status_code = 400
    code = "BATCHTRACE_ERROR"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}


class InvalidInput(BatchTraceError):
    """Missing required field or non-positive quantity."""

    status_code = 422
    code = "INVALID_INPUT"


class UnknownProduct(BatchTraceError):
    status_code = 404
    code = "UNKNOWN_PRODUCT"

    def __init__(self, product_id: int):
        self.product_id = product_id
        super().__init__(f"Product {product_id} not found")


class UnknownBatch(BatchTraceError):
    status_code = 404
    code = "UNKNOWN_BATCH"

    def __init__(self, batch_id: int):
        self.batch_id = batch_id
        super().__init__(f"Batch {batch_id} not found")


class UnknownOrder(BatchTraceError):
    status_code = 404
    code = "UNKNOWN_ORDER"

    def __init__(self, external_order_id: str):
        self.external_order_id = external_order_id
        super().__init__(f"Order {external_order_id} not found")


class DuplicateBatchNumber(BatchTraceError):
    status_code = 409
    code = "DUPLICATE_BATCH_NUMBER"

    def __init__(self, batch_number: str):
        self.batch_number = batch_number
        super().__init__(f"A batch with number {batch_number} already exists")


class BatchHasConsumptions(BatchTraceError):
    """Raised when deleting a batch that orders have already drawn from."""

    status_code = 409
    code = "BATCH_HAS_CONSUMPTIONS"

    def __init__(self, batch_number: str):
        self.batch_number = batch_number
        super().__init__(
            f"Batch {batch_number} has been consumed by orders and cannot be deleted"
        )


class BatchLocked(BatchTraceError):
    """Raised when correcting a batch that orders have already drawn from."""

    status_code = 409
    code = "BATCH_LOCKED"

    def __init__(self, batch_number: str):
        self.batch_number = batch_number
        super().__init__(
            f"Batch {batch_number} has been consumed by orders and can no longer be corrected"
        )


class InsufficientStock(BatchTraceError):
    """A compare-and-decrement found less remaining stock than requested.

    Handled inside the allocation engine; never surfaced to order callers.
    """

    status_code = 409
    code = "INSUFFICIENT_STOCK"

    def __init__(self, batch_id: int, requested: int, available: Optional[int] = None):
        self.batch_id = batch_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient stock in batch {batch_id}: need {requested}, have {available}"
        )


class MetadataResolverUnavailable(BatchTraceError):
    """The remote product metadata service could not be reached or refused us."""

    status_code = 503
    code = "METADATA_RESOLVER_UNAVAILABLE"


class OrderRejected(BatchTraceError):
    """Strict shortfall policy: the order could not be fully allocated."""

    status_code = 409
    code = "ORDER_REJECTED"

    def __init__(self, external_order_id: str, shortfalls: dict):
        self.external_order_id = external_order_id
        self.shortfalls = shortfalls
        detail = ", ".join(f"{pid}: {qty}" for pid, qty in shortfalls.items())
        super().__init__(f"Order {external_order_id} has unallocated quantity ({detail})")


class AllocationFailed(BatchTraceError):
    """Transient persistence failure after all retry attempts."""

    status_code = 503
    code = "ALLOCATION_FAILED"
