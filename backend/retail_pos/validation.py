"""
Request validation at the HTTP boundary.

Loose JSON payloads are turned into frozen request types before they reach
the engine. Anything malformed raises InvalidInput; nothing here touches
the database.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from .errors import InvalidInput
from .models.sales import INITIAL_PAYMENT_STATUSES, PAYMENT_METHODS, PAYMENT_STATUSES


# Maximum amount: $9,999,999.99 (999,999,999 cents)
MAX_AMOUNT_CENTS = 999_999_999

MAX_NOTES_LENGTH = 2000

# Per-line unit ceiling; keeps quantity * price inside the integer columns
MAX_QUANTITY = 100_000

CREATE_FIELDS = {
    "customer_id",
    "store_id",
    "items",
    "discount_cents",
    "tax_cents",
    "payment_method",
    "payment_status",
    "notes",
}
LINE_FIELDS = {"product_id", "quantity", "unit_price_cents"}
UPDATE_FIELDS = {"payment_status", "notes"}


@dataclass(frozen=True)
class SaleLineRequest:
    product_id: int
    quantity: int
    # None means "use the product's current price"
    unit_price_cents: int | None = None


@dataclass(frozen=True)
class SaleCreateRequest:
    customer_id: int
    items: tuple[SaleLineRequest, ...]
    payment_method: str
    store_id: int | None = None
    discount_cents: int = 0
    tax_cents: int = 0
    payment_status: str = "pending"
    notes: str | None = None


@dataclass(frozen=True)
class SaleUpdateRequest:
    payment_status: str | None = None
    notes: str | None = None


@dataclass(frozen=True)
class SaleFilters:
    store_id: int | None = None
    customer_id: int | None = None
    payment_status: str | None = None
    payment_method: str | None = None


def coerce_int(name: str, value: Any) -> int:
    """Strict integer coercion: rejects bools, floats and scientific notation."""
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise InvalidInput(f"{name} must be an integer")
        # Reject scientific notation (e.g., "1e15", "1E10")
        if "e" in stripped.lower():
            raise InvalidInput(f"{name} must be a plain integer (scientific notation not allowed)")
        if "." in stripped:
            raise InvalidInput(f"{name} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise InvalidInput(f"{name} must be an integer") from None
    if isinstance(value, float):
        raise InvalidInput(f"{name} must be an integer, not a decimal")
    raise InvalidInput(f"{name} must be an integer")


def _positive_id(name: str, value: Any) -> int:
    parsed = coerce_int(name, value)
    if parsed <= 0:
        raise InvalidInput(f"{name} must be a positive integer")
    return parsed


def _amount(name: str, value: Any) -> int:
    parsed = coerce_int(name, value)
    if parsed < 0:
        raise InvalidInput(f"{name} cannot be negative")
    if parsed > MAX_AMOUNT_CENTS:
        raise InvalidInput(f"{name} exceeds maximum of {MAX_AMOUNT_CENTS}")
    return parsed


def _choice(name: str, value: Any, allowed: tuple[str, ...]) -> str:
    if not isinstance(value, str) or value not in allowed:
        raise InvalidInput(
            f"{name} must be one of: {', '.join(allowed)}",
            details={"allowed": list(allowed)},
        )
    return value


def _notes(value: Any) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise InvalidInput("notes must be a string")
    text = value.strip()
    if len(text) > MAX_NOTES_LENGTH:
        raise InvalidInput(f"notes exceeds {MAX_NOTES_LENGTH} characters")
    return text


def _reject_unknown(payload: Mapping[str, Any], allowed: set[str], where: str) -> None:
    unknown = sorted(set(payload) - allowed)
    if unknown:
        raise InvalidInput(
            f"Unknown fields in {where}: {', '.join(unknown)}",
            details={"unknown_fields": unknown},
        )


def parse_sale_line(index: int, raw: Any) -> SaleLineRequest:
    if not isinstance(raw, Mapping):
        raise InvalidInput(f"items[{index}] must be an object")
    _reject_unknown(raw, LINE_FIELDS, f"items[{index}]")

    if "product_id" not in raw or "quantity" not in raw:
        raise InvalidInput(f"items[{index}] requires product_id and quantity")

    quantity = coerce_int(f"items[{index}].quantity", raw["quantity"])
    if quantity <= 0:
        raise InvalidInput(f"items[{index}].quantity must be greater than zero")
    if quantity > MAX_QUANTITY:
        raise InvalidInput(f"items[{index}].quantity exceeds maximum of {MAX_QUANTITY}")

    unit_price = raw.get("unit_price_cents")
    return SaleLineRequest(
        product_id=_positive_id(f"items[{index}].product_id", raw["product_id"]),
        quantity=quantity,
        unit_price_cents=_amount(f"items[{index}].unit_price_cents", unit_price) if unit_price is not None else None,
    )


def parse_sale_create(payload: Any) -> SaleCreateRequest:
    if not isinstance(payload, Mapping):
        raise InvalidInput("Request body must be a JSON object")
    _reject_unknown(payload, CREATE_FIELDS, "sale")

    if payload.get("customer_id") is None:
        raise InvalidInput("customer_id required")

    items = payload.get("items")
    if not isinstance(items, list) or not items:
        raise InvalidInput("At least one item required")

    store_id = payload.get("store_id")
    return SaleCreateRequest(
        customer_id=_positive_id("customer_id", payload["customer_id"]),
        store_id=_positive_id("store_id", store_id) if store_id is not None else None,
        items=tuple(parse_sale_line(i, raw) for i, raw in enumerate(items)),
        discount_cents=_amount("discount_cents", payload.get("discount_cents", 0)),
        tax_cents=_amount("tax_cents", payload.get("tax_cents", 0)),
        payment_method=_choice("payment_method", payload.get("payment_method"), PAYMENT_METHODS),
        payment_status=_choice(
            "payment_status", payload.get("payment_status", "pending"), INITIAL_PAYMENT_STATUSES
        ),
        notes=_notes(payload.get("notes")),
    )


def parse_sale_update(payload: Any) -> SaleUpdateRequest:
    if not isinstance(payload, Mapping):
        raise InvalidInput("Request body must be a JSON object")
    _reject_unknown(payload, UPDATE_FIELDS, "sale update")

    status = payload.get("payment_status")
    request = SaleUpdateRequest(
        payment_status=_choice("payment_status", status, PAYMENT_STATUSES) if status is not None else None,
        notes=_notes(payload.get("notes")),
    )
    if request.payment_status is None and request.notes is None:
        raise InvalidInput("Nothing to update: provide payment_status and/or notes")
    return request


def parse_sale_filters(args: Mapping[str, Any]) -> SaleFilters:
    store_id = args.get("store_id")
    customer_id = args.get("customer_id")
    status = args.get("payment_status")
    method = args.get("payment_method")
    return SaleFilters(
        store_id=_positive_id("store_id", store_id) if store_id else None,
        customer_id=_positive_id("customer_id", customer_id) if customer_id else None,
        payment_status=_choice("payment_status", status, PAYMENT_STATUSES) if status else None,
        payment_method=_choice("payment_method", method, PAYMENT_METHODS) if method else None,
    )


def parse_bounded_int(
    args: Mapping[str, Any],
    name: str,
    *,
    default: int,
    minimum: int = 1,
    maximum: int | None = None,
) -> int:
    raw = args.get(name)
    if raw is None or raw == "":
        return default
    value = coerce_int(name, raw)
    if value < minimum:
        raise InvalidInput(f"{name} must be at least {minimum}")
    if maximum is not None and value > maximum:
        raise InvalidInput(f"{name} must be at most {maximum}")
    return value
