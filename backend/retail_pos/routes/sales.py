# Overview: Flask API routes for sales; parses input and returns JSON responses.

# backend/retail_pos/routes/sales.py
"""Sales API routes. Marshals requests into the sale engine and maps error kinds to status codes."""

from flask import Blueprint, current_app, jsonify, request

from ..errors import InsufficientStock, InvalidInput, NotFound, SaleEngineError, TransactionFailed
from ..extensions import db
from ..services.notification_service import get_dispatcher
from ..services.reporting_service import SalesStatistics
from ..services.sales_service import SalesEngine
from ..time_utils import month_bounds, parse_range_bound
from ..validation import (
    parse_bounded_int,
    parse_sale_create,
    parse_sale_filters,
    parse_sale_update,
)


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


ERROR_STATUS = {
    InvalidInput: 400,
    NotFound: 404,
    InsufficientStock: 409,
    TransactionFailed: 503,
}


def error_response(exc: SaleEngineError):
    status = next((code for kind, code in ERROR_STATUS.items() if isinstance(exc, kind)), 500)
    return jsonify(exc.to_dict()), status


def _engine() -> SalesEngine:
    return SalesEngine(db.session, dispatcher=get_dispatcher())


def _date_range() -> tuple:
    try:
        start = parse_range_bound(request.args.get("start"))
        end = parse_range_bound(request.args.get("end"), end=True)
    except ValueError:
        raise InvalidInput("start and end must be ISO-8601 dates") from None
    return start, end


def _include_inactive() -> bool:
    return request.args.get("include_inactive", "false").lower() == "true"


@sales_bp.post("/")
def create_sale_route():
    """
    Record a sale and decrement stock.

    Body: customer_id, items[{product_id, quantity, unit_price_cents?}],
    payment_method, and optionally store_id, discount_cents, tax_cents,
    payment_status (pending|completed), notes.
    """
    try:
        sale_request = parse_sale_create(request.get_json(silent=True))
        sale = _engine().create(sale_request)
        return jsonify({"sale": sale.to_dict(include_customer=True)}), 201

    except SaleEngineError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/")
def list_sales_route():
    """
    Page through active sales, newest first.

    Query: page, limit, start, end, store_id, customer_id, payment_status, payment_method
    """
    try:
        page = parse_bounded_int(request.args, "page", default=1)
        limit = parse_bounded_int(
            request.args,
            "limit",
            default=current_app.config["SALES_PAGE_SIZE_DEFAULT"],
            maximum=current_app.config["SALES_PAGE_SIZE_MAX"],
        )
        start, end = _date_range()
        result = _engine().find_all(
            page=page,
            limit=limit,
            start=start,
            end=end,
            filters=parse_sale_filters(request.args),
        )
        return jsonify(result.to_dict()), 200

    except SaleEngineError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list sales")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/stats")
def sales_stats_route():
    """Count, revenue and average over an optional inclusive range (all active sales by default)."""
    try:
        start, end = _date_range()
        stats = SalesStatistics(db.session).get_stats(start, end)
        return jsonify(stats.to_dict()), 200

    except SaleEngineError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to compute sales stats")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/stats/summary")
def sales_summary_route():
    """
    Store-scoped statistics including units sold.

    Without start/end the current calendar month is used.
    """
    try:
        start, end = _date_range()
        if start is None and end is None:
            start, end = month_bounds()
        store_id = parse_sale_filters({"store_id": request.args.get("store_id")}).store_id
        stats = SalesStatistics(db.session).get_sales_stats(start, end, store_id)
        return jsonify(stats.to_dict()), 200

    except SaleEngineError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to compute sales summary")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/daily")
def daily_sales_route():
    try:
        days = parse_bounded_int(request.args, "days", default=7, maximum=366)
        rows = SalesStatistics(db.session).get_daily_sales(days)
        return jsonify({"days": days, "daily": [row.to_dict() for row in rows]}), 200

    except SaleEngineError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to compute daily sales")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/<int:sale_id>")
def get_sale_route(sale_id: int):
    """Sale with lines and customer summary. ?include_inactive=true also returns reversed sales."""
    try:
        sale = _engine().find_by_id(sale_id, include_inactive=_include_inactive())
        return jsonify({"sale": sale.to_dict(include_customer=True)}), 200

    except SaleEngineError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to get sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/number/<int:sale_number>")
def get_sale_by_number_route(sale_number: int):
    """Sale by receipt number. ?include_inactive=true also returns reversed sales."""
    try:
        sale = _engine().find_by_number(sale_number, include_inactive=_include_inactive())
        return jsonify({"sale": sale.to_dict(include_customer=True)}), 200

    except SaleEngineError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to get sale by number")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.patch("/<int:sale_id>")
def update_sale_route(sale_id: int):
    """Update payment_status and/or notes."""
    try:
        update_request = parse_sale_update(request.get_json(silent=True))
        sale = _engine().update(sale_id, update_request)
        return jsonify({"sale": sale.to_dict(include_customer=True)}), 200

    except SaleEngineError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.delete("/<int:sale_id>")
def delete_sale_route(sale_id: int):
    """Reverse a sale: restore its stock and soft-delete it."""
    try:
        _engine().delete(sale_id)
        return jsonify({"deleted": True, "id": sale_id}), 200

    except SaleEngineError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete sale")
        return jsonify({"error": "Internal server error"}), 500
