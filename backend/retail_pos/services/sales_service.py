"""
Sales Service - the sale transaction engine.

Records sales, moves stock through the inventory ledger and answers sale
queries. Every write runs in one transaction scope (services/concurrency.py):
the sale header, its lines and the stock changes become durable together or
not at all.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.orm import Session, joinedload

from ..errors import InvalidInput, NotFound
from ..models import Customer, Product, Sale, SaleLine, Store
from ..models.sales import INITIAL_PAYMENT_STATUSES, PAYMENT_METHODS
from ..validation import (
    MAX_AMOUNT_CENTS,
    MAX_QUANTITY,
    SaleCreateRequest,
    SaleFilters,
    SaleUpdateRequest,
)
from retail_pos.time_utils import utcnow
from .concurrency import is_sqlite, lock_for_update, write_scope
from .inventory_service import InventoryLedger
from .notification_service import SALE_EVENTS, NotificationDispatcher, freeze_snapshot
from .sequence_service import next_sale_number

logger = logging.getLogger(__name__)


# Legal payment-status moves. Re-setting the current status is a no-op.
ALLOWED_STATUS_TRANSITIONS: dict[str, frozenset[str]] = {
    "pending": frozenset({"completed", "cancelled"}),
    "completed": frozenset({"refunded", "partially_refunded"}),
    "cancelled": frozenset(),
    "refunded": frozenset(),
    "partially_refunded": frozenset(),
}


def check_status_transition(current: str, target: str) -> None:
    if target == current:
        return
    if target not in ALLOWED_STATUS_TRANSITIONS.get(current, frozenset()):
        raise InvalidInput(
            f"Cannot change payment status from {current} to {target}",
            details={
                "from": current,
                "to": target,
                "allowed": sorted(ALLOWED_STATUS_TRANSITIONS.get(current, ())),
            },
        )


@dataclass(frozen=True)
class SalePage:
    sales: list[Sale]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return (self.total + self.limit - 1) // self.limit

    def to_dict(self) -> dict:
        return {
            "sales": [sale.to_dict(include_customer=True) for sale in self.sales],
            "total": self.total,
            "page": self.page,
            "limit": self.limit,
            "total_pages": self.total_pages,
        }


class SalesEngine:
    """
    Orchestrates sale writes and reads over an injected SQLAlchemy session.

    The session (and its engine/pool) is owned by the caller; the engine
    holds no state between calls.
    """

    def __init__(
        self,
        session: Session,
        *,
        ledger: InventoryLedger | None = None,
        dispatcher: NotificationDispatcher | None = None,
    ):
        self.session = session
        self.ledger = ledger or InventoryLedger(session)
        self.dispatcher = dispatcher

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create(self, request: SaleCreateRequest) -> Sale:
        """
        Record a sale and take its stock.

        Validation that needs no database runs first. Customer, store and
        product checks, price snapshots, the header/line inserts and every
        stock decrement then run inside one write scope.
        """
        self._validate_create(request)

        with write_scope(self.session, operation="create_sale", customer_id=request.customer_id):
            customer = self.session.get(Customer, request.customer_id)
            if customer is None or not customer.is_active:
                raise NotFound("Customer not found", details={"customer_id": request.customer_id})

            if request.store_id is not None and self.session.get(Store, request.store_id) is None:
                raise NotFound("Store not found", details={"store_id": request.store_id})

            products = self._load_products({item.product_id for item in request.items})

            lines = []
            for position, item in enumerate(request.items):
                product = products.get(item.product_id)
                if product is None or not product.is_active:
                    raise NotFound("Product not found", details={"product_id": item.product_id})

                # Snapshot: later price changes on the product never reach this line
                unit_price = item.unit_price_cents
                if unit_price is None:
                    unit_price = product.unit_price_cents

                lines.append(
                    SaleLine(
                        position=position,
                        product_id=item.product_id,
                        quantity=item.quantity,
                        unit_price_cents=unit_price,
                        line_total_cents=item.quantity * unit_price,
                    )
                )

            subtotal = sum(line.line_total_cents for line in lines)
            total = subtotal - request.discount_cents + request.tax_cents
            if subtotal > MAX_AMOUNT_CENTS or total > MAX_AMOUNT_CENTS:
                raise InvalidInput(
                    f"Sale total exceeds maximum of {MAX_AMOUNT_CENTS}",
                    details={"subtotal_cents": subtotal, "total_cents": total},
                )
            if total < 0:
                raise InvalidInput(
                    "Discount exceeds sale total",
                    details={
                        "subtotal_cents": subtotal,
                        "discount_cents": request.discount_cents,
                        "tax_cents": request.tax_cents,
                    },
                )

            sale = Sale(
                sale_number=next_sale_number(self.session),
                customer_id=customer.id,
                store_id=request.store_id,
                subtotal_cents=subtotal,
                discount_cents=request.discount_cents,
                tax_cents=request.tax_cents,
                total_cents=total,
                payment_method=request.payment_method,
                payment_status=request.payment_status,
                notes=request.notes,
                lines=lines,
            )
            self.session.add(sale)
            self.session.flush()
            sale_id = sale.id

            for line in lines:
                self.ledger.decrement_stock(line.product_id, line.quantity)

        created = self._read_back(sale_id)
        logger.info("Sale %s committed (id=%s, total_cents=%s)", created.sale_number, sale_id, created.total_cents)
        self._notify(created)
        return created

    def update(self, sale_id: int, request: SaleUpdateRequest) -> Sale:
        """Change payment_status and/or notes. Items, totals and stock are untouched."""
        if request.payment_status is None and request.notes is None:
            raise InvalidInput("Nothing to update: provide payment_status and/or notes")

        with write_scope(self.session, operation="update_sale", sale_id=sale_id):
            sale = self._lock_sale(sale_id)
            if sale is None or not sale.is_active:
                raise NotFound("Sale not found", details={"sale_id": sale_id})

            previous_status = sale.payment_status
            if request.payment_status is not None:
                check_status_transition(previous_status, request.payment_status)
                sale.payment_status = request.payment_status
            if request.notes is not None:
                sale.notes = request.notes
            sale.updated_at = utcnow()

        updated = self._read_back(sale_id)
        if updated.payment_status != previous_status:
            logger.info("Sale %s payment status %s -> %s", updated.sale_number, previous_status, updated.payment_status)
            self._notify(updated)
        return updated

    def delete(self, sale_id: int) -> None:
        """
        Reverse a sale: restore every line's stock, then soft-delete the header.

        All restores happen in one scope; if any fails, none is applied. A
        sale with no lines is reversed trivially. An already reversed sale
        is NotFound, so stock is never restored twice.
        """
        with write_scope(self.session, operation="delete_sale", sale_id=sale_id):
            sale = self._lock_sale(sale_id)
            if sale is None or not sale.is_active:
                raise NotFound("Sale not found", details={"sale_id": sale_id})

            lines = (
                self.session.query(SaleLine)
                .filter(SaleLine.sale_id == sale.id)
                .order_by(SaleLine.position)
                .all()
            )
            for line in lines:
                self.ledger.increment_stock(line.product_id, line.quantity)

            now = utcnow()
            sale.is_active = False
            sale.reversed_at = now
            sale.updated_at = now

        logger.info("Sale id=%s reversed, %s line(s) restored", sale_id, len(lines))

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def find_by_id(self, sale_id: int, *, include_inactive: bool = False) -> Sale:
        sale = (
            self._sale_query()
            .filter(Sale.id == sale_id)
            .first()
        )
        if sale is None or (not include_inactive and not sale.is_active):
            raise NotFound("Sale not found", details={"sale_id": sale_id})
        return sale

    def find_by_number(self, sale_number: int, *, include_inactive: bool = False) -> Sale:
        sale = (
            self._sale_query()
            .filter(Sale.sale_number == sale_number)
            .first()
        )
        if sale is None or (not include_inactive and not sale.is_active):
            raise NotFound("Sale not found", details={"sale_number": sale_number})
        return sale

    def find_all(
        self,
        *,
        page: int = 1,
        limit: int = 20,
        start: datetime | None = None,
        end: datetime | None = None,
        filters: SaleFilters | None = None,
    ) -> SalePage:
        """
        One page of active sales, newest first.

        The count and the page come from the same filtered query object, so
        ``total`` always describes exactly the rows being paged.
        """
        if page < 1 or limit < 1:
            raise InvalidInput("page and limit must be positive", details={"page": page, "limit": limit})
        if start is not None and end is not None and start > end:
            raise InvalidInput("start must not be after end")

        filtered = self.session.query(Sale).filter(Sale.is_active.is_(True))
        if start is not None:
            filtered = filtered.filter(Sale.created_at >= start)
        if end is not None:
            filtered = filtered.filter(Sale.created_at <= end)
        if filters is not None:
            if filters.store_id is not None:
                filtered = filtered.filter(Sale.store_id == filters.store_id)
            if filters.customer_id is not None:
                filtered = filtered.filter(Sale.customer_id == filters.customer_id)
            if filters.payment_status is not None:
                filtered = filtered.filter(Sale.payment_status == filters.payment_status)
            if filters.payment_method is not None:
                filtered = filtered.filter(Sale.payment_method == filters.payment_method)

        total = filtered.count()
        sales = (
            filtered.options(joinedload(Sale.customer))
            .order_by(Sale.created_at.desc(), Sale.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return SalePage(sales=sales, total=total, page=page, limit=limit)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _validate_create(self, request: SaleCreateRequest) -> None:
        if not request.items:
            raise InvalidInput("At least one item required")
        for index, item in enumerate(request.items):
            if item.quantity <= 0:
                raise InvalidInput(
                    f"items[{index}].quantity must be greater than zero",
                    details={"product_id": item.product_id, "quantity": item.quantity},
                )
            if item.quantity > MAX_QUANTITY:
                raise InvalidInput(
                    f"items[{index}].quantity exceeds maximum of {MAX_QUANTITY}",
                    details={"product_id": item.product_id, "quantity": item.quantity},
                )
            if item.unit_price_cents is not None and item.unit_price_cents < 0:
                raise InvalidInput(f"items[{index}].unit_price_cents cannot be negative")
            if item.unit_price_cents is not None and item.unit_price_cents > MAX_AMOUNT_CENTS:
                raise InvalidInput(f"items[{index}].unit_price_cents exceeds maximum of {MAX_AMOUNT_CENTS}")
        if request.discount_cents < 0 or request.tax_cents < 0:
            raise InvalidInput("discount_cents and tax_cents cannot be negative")
        if request.discount_cents > MAX_AMOUNT_CENTS or request.tax_cents > MAX_AMOUNT_CENTS:
            raise InvalidInput(f"discount_cents and tax_cents cannot exceed {MAX_AMOUNT_CENTS}")
        if request.payment_method not in PAYMENT_METHODS:
            raise InvalidInput("Unsupported payment method", details={"payment_method": request.payment_method})
        if request.payment_status not in INITIAL_PAYMENT_STATUSES:
            raise InvalidInput(
                "A new sale must start as pending or completed",
                details={"payment_status": request.payment_status},
            )

    def _load_products(self, product_ids: set[int]) -> dict[int, Product]:
        # Fixed lock order keeps two sales over the same products from deadlocking
        query = self.session.query(Product).filter(Product.id.in_(product_ids)).order_by(Product.id)
        if not is_sqlite(self.session):
            query = lock_for_update(query)
        return {product.id: product for product in query.all()}

    def _lock_sale(self, sale_id: int) -> Sale | None:
        return lock_for_update(self.session.query(Sale).filter(Sale.id == sale_id)).first()

    def _sale_query(self):
        return self.session.query(Sale).options(joinedload(Sale.customer))

    def _read_back(self, sale_id: int) -> Sale:
        # populate_existing forces a fresh load of durable state over the identity map
        return (
            self._sale_query()
            .populate_existing()
            .filter(Sale.id == sale_id)
            .one()
        )

    def _notify(self, sale: Sale) -> None:
        event = SALE_EVENTS.get(sale.payment_status)
        if event is None or self.dispatcher is None:
            return
        self.dispatcher.dispatch(event, freeze_snapshot(sale.to_dict(include_customer=True)))


__all__ = [
    "ALLOWED_STATUS_TRANSITIONS",
    "SalePage",
    "SalesEngine",
    "check_status_transition",
]
