# Overview: Flask API routes for sales and returns; parses input and returns JSON responses.

from flask import Blueprint, current_app, jsonify, request

from ..errors import InventoryError
from ..validation import json_object_body
from ..services import sales_service


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.get("")
def list_sales_route():
    status = request.args.get("status")
    sales = sales_service.list_sales(status=status)
    return jsonify([s.to_dict() for s in sales]), 200


@sales_bp.post("")
def create_sale_route():
    """
    Create a sale and issue its stock.

    Body: {customer_name, customer_phone, customer_address,
           items: [{product_id, store_id, quantity, unit_price}]}

    Returns:
        201 sale with items; 409 when stock is insufficient
    """
    try:
        data = json_object_body()
        sale = sales_service.create_sale(
            data.get("customer_name"),
            data.get("customer_phone"),
            data.get("customer_address"),
            data.get("items"),
        )
        return jsonify(sale.to_dict()), 201
    except InventoryError as exc:
        return jsonify(exc.to_dict()), exc.http_status
    except Exception:
        current_app.logger.exception("Failed to create sale")
        return jsonify({"error": "Failed to create sale"}), 500


@sales_bp.get("/<int:sale_id>")
def get_sale_route(sale_id: int):
    try:
        sale = sales_service.get_sale(sale_id)
        return jsonify(sale.to_dict()), 200
    except InventoryError as exc:
        return jsonify(exc.to_dict()), exc.http_status


@sales_bp.post("/<int:sale_id>/return")
def return_sale_items_route(sale_id: int):
    """
    Body: {returns: [{item_id, quantity}]}

    Returns:
        updated sale with items
    """
    try:
        data = json_object_body()
        sale = sales_service.return_items(sale_id, data.get("returns"))
        return jsonify(sale.to_dict()), 200
    except InventoryError as exc:
        return jsonify(exc.to_dict()), exc.http_status
    except Exception:
        current_app.logger.exception("Failed to return items on sale %s", sale_id)
        return jsonify({"error": "Failed to return items"}), 500


@sales_bp.patch("/<int:sale_id>/status")
def update_sale_status_route(sale_id: int):
    try:
        data = json_object_body()
        sale = sales_service.update_status(sale_id, data.get("status"))
        return jsonify(sale.to_dict(include_items=False)), 200
    except InventoryError as exc:
        return jsonify(exc.to_dict()), exc.http_status
    except Exception:
        current_app.logger.exception("Failed to update sale %s status", sale_id)
        return jsonify({"error": "Failed to update sale status"}), 500
