"""
Error kinds raised by the sale transaction engine.

The engine communicates only structured kinds; mapping a kind to an HTTP
status is the route layer's job (see routes/sales.py).
"""

from __future__ import annotations


class SaleEngineError(Exception):
    """Base class for engine errors. Carries a stable ``kind`` and a details dict."""

    kind = "SaleEngineError"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": self.kind, "message": self.message, "details": self.details}


class InvalidInput(SaleEngineError):
    """Malformed or empty request. Caller error, not retried."""

    kind = "InvalidInput"


class NotFound(SaleEngineError):
    """Referenced customer, store, product or sale does not exist (or is inactive)."""

    kind = "NotFound"


class InsufficientStock(SaleEngineError):
    """Requested quantity exceeds what the ledger holds. Details carry the shortfall."""

    kind = "InsufficientStock"

    def __init__(self, product_id: int, requested: int, available: int):
        super().__init__(
            f"Insufficient stock for product {product_id}",
            details={
                "product_id": product_id,
                "requested_quantity": requested,
                "available_quantity": available,
                "shortfall": requested - available,
            },
        )


class TransactionFailed(SaleEngineError):
    """Storage fault inside a transaction scope. The scope was rolled back; safe to retry as a new attempt."""

    kind = "TransactionFailed"


__all__ = [
    "SaleEngineError",
    "InvalidInput",
    "NotFound",
    "InsufficientStock",
    "TransactionFailed",
]
