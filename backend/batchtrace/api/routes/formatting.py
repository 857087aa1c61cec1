"""Response shaping shared by the batch and product routes."""

from datetime import date
from typing import Optional

from batchtrace.models.batch import Batch


def format_batch_response(batch: Batch, today: Optional[date] = None) -> dict:
    """Batch with its expiry status relative to ``today``."""
    today = today or date.today()
    return {
        "id": batch.id,
        "product_id": batch.product_id,
        "product_name": batch.product.display_name if batch.product else "",
        "batch_number": batch.batch_number,
        "expiry_date": batch.expiry_date,
        "initial_quantity": batch.initial_quantity,
        "remaining_quantity": batch.remaining_quantity,
        "is_synthesized": batch.is_synthesized,
        "days_until_expiry": batch.days_until_expiry(today),
        "is_expired": batch.is_expired(today),
        "created_at": batch.created_at,
    }
