"""Product Registry: maps platform product ids to internal products."""

import logging
from typing import List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from batchtrace.core.exceptions import InvalidInput, UnknownProduct
from batchtrace.models.product import Product

logger = logging.getLogger(__name__)


class ProductRegistry:
    """Resolve-or-create access to products.

    Methods flush but never commit; the caller owns the transaction.
    """

    def __init__(self, db: Session):
        self.db = db

    def get(self, product_id: int) -> Product:
        product = self.db.get(Product, product_id)
        if product is None:
            raise UnknownProduct(product_id)
        return product

    def find_by_external_id(self, external_product_id: str) -> Optional[Product]:
        return self.db.execute(
            select(Product).where(Product.external_product_id == external_product_id)
        ).scalar_one_or_none()

    def list_products(self, skip: int = 0, limit: int = 50) -> Tuple[List[Product], int]:
        total = self.db.execute(select(func.count(Product.id))).scalar_one()
        items = self.db.execute(
            select(Product).order_by(Product.id).offset(skip).limit(limit)
        ).scalars().all()
        return list(items), total

    def ensure_product(
        self,
        external_product_id: str,
        name: Optional[str] = None,
        sku: Optional[str] = None,
    ) -> Product:
        """Return the product for ``external_product_id``, creating it on first reference.

        The insert runs inside a savepoint. If a concurrent transaction created
        the same product first, the unique constraint rejects ours and the
        committed row is re-read, so callers always converge on one product.
        """
        external_product_id = (external_product_id or "").strip()
        if not external_product_id:
            raise InvalidInput("external_product_id is required")
        name = (name or "").strip() or None
        sku = (sku or "").strip() or None

        product = self.find_by_external_id(external_product_id)
        if product is not None:
            self._backfill(product, name, sku)
            return product

        product = Product(external_product_id=external_product_id, name=name, sku=sku)
        try:
            with self.db.begin_nested():
                self.db.add(product)
        except IntegrityError:
            logger.info(
                f"Product {external_product_id} created concurrently; re-reading committed row"
            )
            product = self.find_by_external_id(external_product_id)
            if product is None:
                raise
            return product

        logger.info(f"Registered product {external_product_id} (id={product.id}, sku={sku})")
        return product

    def _backfill(self, product: Product, name: Optional[str], sku: Optional[str]) -> None:
        """Fill in display data the first reference did not carry."""
        changed = False
        if name and not product.name:
            product.name = name
            changed = True
        if sku and not product.sku:
            product.sku = sku
            changed = True
        if changed:
            self.db.flush()
