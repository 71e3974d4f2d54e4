from __future__ import annotations

from ..extensions import db
from retail_pos.time_utils import to_utc_z, utcnow


PAYMENT_METHODS = ("cash", "card", "upi", "emi", "bank_transfer", "cheque")

PAYMENT_STATUSES = ("pending", "completed", "cancelled", "refunded", "partially_refunded")

# Statuses a caller may request when the sale is created
INITIAL_PAYMENT_STATUSES = ("pending", "completed")

SALE_NUMBER_START = 1000


class Sale(db.Model):
    """
    Sale header: one row per committed transaction.

    Totals are computed by the engine from the lines at creation and never
    change afterwards. Only payment_status and notes are mutable. Deleting a
    sale is a reversal: stock is restored and the header is soft-deleted
    (is_active=False, reversed_at set).
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.UniqueConstraint("sale_number", name="uq_sales_sale_number"),
        db.CheckConstraint("total_cents >= 0", name="total_non_negative"),
        db.CheckConstraint("discount_cents >= 0", name="discount_non_negative"),
        db.CheckConstraint("tax_cents >= 0", name="tax_non_negative"),
        # Listing and statistics filter on is_active + created_at
        db.Index("ix_sales_active_created", "is_active", "created_at"),
        db.Index("ix_sales_store_created", "store_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable number printed on receipts (1000, 1001, ...)
    sale_number = db.Column(db.Integer, nullable=False)

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=True)

    # All amounts in cents
    subtotal_cents = db.Column(db.Integer, nullable=False)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    tax_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False)

    payment_method = db.Column(db.String(16), nullable=False)
    payment_status = db.Column(db.String(24), nullable=False, default="pending", index=True)

    notes = db.Column(db.Text, nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    reversed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    customer = db.relationship("Customer", backref=db.backref("sales", lazy=True))
    store = db.relationship("Store", backref=db.backref("sales", lazy=True))
    lines = db.relationship(
        "SaleLine",
        back_populates="sale",
        order_by="SaleLine.position",
        lazy="selectin",
    )

    def to_dict(self, *, include_customer: bool = False) -> dict:
        data = {
            "id": self.id,
            "sale_number": self.sale_number,
            "customer_id": self.customer_id,
            "store_id": self.store_id,
            "items": [line.to_dict() for line in self.lines],
            "subtotal_cents": self.subtotal_cents,
            "discount_cents": self.discount_cents,
            "tax_cents": self.tax_cents,
            "total_cents": self.total_cents,
            "payment_method": self.payment_method,
            "payment_status": self.payment_status,
            "notes": self.notes,
            "is_active": self.is_active,
            "reversed_at": to_utc_z(self.reversed_at) if self.reversed_at else None,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_customer and self.customer is not None:
            data["customer"] = self.customer.summary()
        return data


class SaleLine(db.Model):
    """Individual line items on a sale. Immutable once the sale commits."""
    __tablename__ = "sale_lines"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="quantity_positive"),
        db.UniqueConstraint("sale_id", "position", name="uq_sale_lines_sale_position"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    # Request order within the sale (0-based)
    position = db.Column(db.Integer, nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    # Price snapshot at sale time; never re-derived from the product
    unit_price_cents = db.Column(db.Integer, nullable=False)
    line_total_cents = db.Column(db.Integer, nullable=False)

    sale = db.relationship("Sale", back_populates="lines")
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "line_total_cents": self.line_total_cents,
        }


class SaleSequence(db.Model):
    """
    Single-row counter backing Sale.sale_number.

    Incremented with an UPDATE inside the create scope, so the row lock
    serializes number allocation with the rest of the sale.
    """
    __tablename__ = "sale_sequences"

    name = db.Column(db.String(32), primary_key=True)
    next_number = db.Column(db.Integer, nullable=False, default=SALE_NUMBER_START)
