# Overview: Flask API routes for read-only inventory views.

from flask import Blueprint, jsonify

from ..errors import SaleEngineError
from ..extensions import db
from ..services.inventory_service import InventoryLedger
from .sales import error_response


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.get("/low-stock")
def low_stock_route():
    """Active products at or below their low-stock threshold."""
    products = InventoryLedger(db.session).list_low_stock()
    return jsonify({"products": [p.to_dict() for p in products], "count": len(products)}), 200


@inventory_bp.get("/<int:product_id>/stock")
def product_stock_route(product_id: int):
    try:
        stock = InventoryLedger(db.session).get_stock(product_id)
        return jsonify({"product_id": product_id, "stock_quantity": stock}), 200
    except SaleEngineError as e:
        return error_response(e)
