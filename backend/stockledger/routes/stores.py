# Overview: Flask API routes for stores operations; parses input and returns JSON responses.

from flask import Blueprint, current_app, jsonify

from ..errors import InventoryError
from ..validation import json_object_body
from ..services import catalog_service


stores_bp = Blueprint("stores", __name__, url_prefix="/api/stores")


@stores_bp.get("")
def list_stores():
    stores = catalog_service.list_stores()
    return jsonify([store.to_dict() for store in stores]), 200


@stores_bp.post("")
def create_store():
    try:
        data = json_object_body()
        store = catalog_service.create_store(name=data.get("name"), zone=data.get("zone"))
        return jsonify(store.to_dict()), 201
    except InventoryError as exc:
        return jsonify(exc.to_dict()), exc.http_status
    except Exception:
        current_app.logger.exception("Failed to create store")
        return jsonify({"error": "Failed to create store"}), 500


@stores_bp.get("/<int:store_id>")
def get_store(store_id: int):
    try:
        return jsonify(catalog_service.get_store(store_id).to_dict()), 200
    except InventoryError as exc:
        return jsonify(exc.to_dict()), exc.http_status


@stores_bp.put("/<int:store_id>")
def update_store(store_id: int):
    try:
        data = json_object_body()
        store = catalog_service.update_store(
            store_id,
            name=data.get("name"),
            zone=data.get("zone"),
        )
        return jsonify(store.to_dict()), 200
    except InventoryError as exc:
        return jsonify(exc.to_dict()), exc.http_status
    except Exception:
        current_app.logger.exception("Failed to update store %s", store_id)
        return jsonify({"error": "Failed to update store"}), 500


@stores_bp.delete("/<int:store_id>")
def delete_store(store_id: int):
    try:
        catalog_service.delete_store(store_id)
        return jsonify({"message": "Store deleted"}), 200
    except InventoryError as exc:
        return jsonify(exc.to_dict()), exc.http_status
    except Exception:
        current_app.logger.exception("Failed to delete store %s", store_id)
        return jsonify({"error": "Failed to delete store"}), 500
