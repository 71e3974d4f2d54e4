# Overview: Inventory ledger; the only code path that mutates product stock.

# backend/retail_pos/services/inventory_service.py

"""
Inventory Ledger Invariants (authoritative)

- Product.stock_quantity is never negative.
- The stock check and the decrement are ONE statement:
    UPDATE products SET stock_quantity = stock_quantity - :qty
    WHERE id = :id AND stock_quantity >= :qty
  Two terminals selling the last unit cannot both succeed; the second
  UPDATE matches zero rows.
- Ledger calls participate in the caller's session/transaction and never
  commit on their own. The sale engine owns the transaction scope.
"""

from __future__ import annotations

import logging

from sqlalchemy import update
from sqlalchemy.orm import Session

from ..errors import InsufficientStock, InvalidInput, NotFound
from ..models import Product
from ..validation import MAX_QUANTITY

logger = logging.getLogger(__name__)


def _require_positive(quantity: int) -> None:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise InvalidInput("quantity must be a positive integer", details={"quantity": quantity})
    if quantity > MAX_QUANTITY:
        raise InvalidInput(f"quantity exceeds maximum of {MAX_QUANTITY}", details={"quantity": quantity})


class InventoryLedger:
    """Atomic stock counters over the products table."""

    def __init__(self, session: Session):
        self.session = session

    def decrement_stock(self, product_id: int, quantity: int) -> None:
        """
        Compare-and-decrement. Raises InsufficientStock (with the shortfall)
        or NotFound; on success exactly ``quantity`` units were taken.
        """
        _require_positive(quantity)

        stmt = (
            update(Product)
            .where(
                Product.id == product_id,
                Product.stock_quantity >= quantity,
            )
            .values(stock_quantity=Product.stock_quantity - quantity)
            .execution_options(synchronize_session=False)
        )
        result = self.session.execute(stmt)
        if result.rowcount == 1:
            logger.debug("Decremented product %s by %s", product_id, quantity)
            return

        available = self._current_stock(product_id)
        if available is None:
            raise NotFound("Product not found", details={"product_id": product_id})
        raise InsufficientStock(product_id, quantity, available)

    def increment_stock(self, product_id: int, quantity: int) -> None:
        _require_positive(quantity)

        stmt = (
            update(Product)
            .where(Product.id == product_id)
            .values(stock_quantity=Product.stock_quantity + quantity)
            .execution_options(synchronize_session=False)
        )
        result = self.session.execute(stmt)
        if result.rowcount != 1:
            raise NotFound("Product not found", details={"product_id": product_id})
        logger.debug("Incremented product %s by %s", product_id, quantity)

    def get_stock(self, product_id: int) -> int:
        available = self._current_stock(product_id)
        if available is None:
            raise NotFound("Product not found", details={"product_id": product_id})
        return available

    def list_low_stock(self) -> list[Product]:
        """Active products at or below their low-stock threshold, emptiest first."""
        return (
            self.session.query(Product)
            .filter(
                Product.is_active.is_(True),
                Product.stock_quantity <= Product.low_stock_threshold,
            )
            .order_by(Product.stock_quantity.asc(), Product.id.asc())
            .all()
        )

    def _current_stock(self, product_id: int) -> int | None:
        value = (
            self.session.query(Product.stock_quantity)
            .filter(Product.id == product_id)
            .scalar()
        )
        return int(value) if value is not None else None
