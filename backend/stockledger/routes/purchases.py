# Overview: Flask API routes for purchase orders and receiving; parses input and returns JSON responses.

"""
Purchase Routes

Receiving is the only path by which purchases add stock. Status changes
through PATCH /status are administrative overrides.
"""

from flask import Blueprint, current_app, jsonify, request

from ..errors import InventoryError
from ..validation import json_object_body
from ..services import purchase_service


purchases_bp = Blueprint("purchases", __name__, url_prefix="/api/purchases")


@purchases_bp.get("")
def list_purchases_route():
    status = request.args.get("status")
    purchases = purchase_service.list_purchases(status=status)
    return jsonify([p.to_dict() for p in purchases]), 200


@purchases_bp.post("")
def create_purchase_route():
    """
    Create a purchase order.

    Body: {supplier_name, bc_number?, items: [{product_id, store_id, quantity, unit_price}]}

    Returns:
        201 {purchase_id, purchase}
    """
    try:
        data = json_object_body()
        purchase = purchase_service.create_purchase(
            data.get("supplier_name"),
            data.get("items"),
            bc_number=data.get("bc_number"),
        )
        return jsonify({"purchase_id": purchase.id, "purchase": purchase.to_dict()}), 201
    except InventoryError as exc:
        return jsonify(exc.to_dict()), exc.http_status
    except Exception:
        current_app.logger.exception("Failed to create purchase")
        return jsonify({"error": "Failed to create purchase"}), 500


@purchases_bp.get("/<int:purchase_id>")
def get_purchase_route(purchase_id: int):
    try:
        purchase = purchase_service.get_purchase(purchase_id)
        return jsonify(purchase.to_dict()), 200
    except InventoryError as exc:
        return jsonify(exc.to_dict()), exc.http_status


@purchases_bp.delete("/<int:purchase_id>")
def delete_purchase_route(purchase_id: int):
    try:
        purchase_service.delete_purchase(purchase_id)
        return jsonify({"message": "Purchase deleted"}), 200
    except InventoryError as exc:
        return jsonify(exc.to_dict()), exc.http_status
    except Exception:
        current_app.logger.exception("Failed to delete purchase %s", purchase_id)
        return jsonify({"error": "Failed to delete purchase"}), 500


@purchases_bp.put("/<int:purchase_id>/receive")
def receive_purchase_route(purchase_id: int):
    """
    Receive purchase lines.

    Body: {items: [{purchase_item_id, quantity_received}]}

    Returns:
        {status, purchase}
    """
    try:
        data = json_object_body()
        purchase = purchase_service.receive_items(purchase_id, data.get("items"))
        return jsonify({"status": purchase.status, "purchase": purchase.to_dict()}), 200
    except InventoryError as exc:
        return jsonify(exc.to_dict()), exc.http_status
    except Exception:
        current_app.logger.exception("Failed to receive purchase %s", purchase_id)
        return jsonify({"error": "Failed to receive purchase"}), 500


@purchases_bp.patch("/<int:purchase_id>/status")
def update_purchase_status_route(purchase_id: int):
    try:
        data = json_object_body()
        purchase = purchase_service.update_status(purchase_id, data.get("status"))
        return jsonify(purchase.to_dict(include_items=False)), 200
    except InventoryError as exc:
        return jsonify(exc.to_dict()), exc.http_status
    except Exception:
        current_app.logger.exception("Failed to update purchase %s status", purchase_id)
        return jsonify({"error": "Failed to update purchase status"}), 500


@purchases_bp.put("/<int:purchase_id>/receipt")
def set_receipt_route(purchase_id: int):
    """Record the location of an uploaded receipt. Upload itself happens elsewhere."""
    try:
        data = json_object_body()
        purchase = purchase_service.set_receipt_url(purchase_id, data.get("receipt_url"))
        return jsonify(purchase.to_dict(include_items=False)), 200
    except InventoryError as exc:
        return jsonify(exc.to_dict()), exc.http_status
    except Exception:
        current_app.logger.exception("Failed to set receipt for purchase %s", purchase_id)
        return jsonify({"error": "Failed to set receipt"}), 500
