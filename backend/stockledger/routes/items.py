# Overview: Flask API routes for item master data; parses input and returns JSON responses.

from flask import Blueprint, current_app, jsonify, request

from ..errors import InventoryError
from ..validation import json_object_body
from ..services import catalog_service


items_bp = Blueprint("items", __name__, url_prefix="/api/items")


@items_bp.get("")
def list_items_route():
    include_archived = request.args.get("include_archived", "false").lower() == "true"
    items = catalog_service.list_items(include_archived=include_archived)
    return jsonify([item.to_dict() for item in items]), 200


@items_bp.post("")
def create_item_route():
    try:
        data = json_object_body()
        item = catalog_service.create_item(
            name=data.get("name"),
            category=data.get("category"),
            purchase_price=data.get("purchase_price"),
            sale_price=data.get("sale_price"),
            initial_stock=data.get("initial_stock", 0),
            store_id=data.get("store_id"),
        )
        return jsonify(item.to_dict()), 201
    except InventoryError as exc:
        return jsonify(exc.to_dict()), exc.http_status
    except Exception:
        current_app.logger.exception("Failed to create item")
        return jsonify({"error": "Failed to create item"}), 500


@items_bp.get("/<int:item_id>")
def get_item_route(item_id: int):
    try:
        return jsonify(catalog_service.get_item(item_id).to_dict()), 200
    except InventoryError as exc:
        return jsonify(exc.to_dict()), exc.http_status


@items_bp.put("/<int:item_id>")
def update_item_route(item_id: int):
    try:
        data = json_object_body()
        item = catalog_service.update_item(
            item_id,
            name=data.get("name"),
            category=data.get("category"),
            purchase_price=data.get("purchase_price"),
            sale_price=data.get("sale_price"),
        )
        return jsonify(item.to_dict()), 200
    except InventoryError as exc:
        return jsonify(exc.to_dict()), exc.http_status
    except Exception:
        current_app.logger.exception("Failed to update item %s", item_id)
        return jsonify({"error": "Failed to update item"}), 500


@items_bp.delete("/<int:item_id>")
def archive_item_route(item_id: int):
    try:
        catalog_service.archive_item(item_id)
        return jsonify({"message": "Item archived"}), 200
    except InventoryError as exc:
        return jsonify(exc.to_dict()), exc.http_status
    except Exception:
        current_app.logger.exception("Failed to archive item %s", item_id)
        return jsonify({"error": "Failed to archive item"}), 500
