# Overview: Flask API routes for stock queries, count adjustments and transfers; parses input and returns JSON responses.

from flask import Blueprint, current_app, jsonify, request

from ..errors import InventoryError
from ..validation import json_object_body
from ..services import inventory_service, ledger_service, stock_service
from stockledger.time_utils import parse_iso_datetime


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.get("/<int:store_id>")
def store_inventory_route(store_id: int):
    """
    Current stock for every product at a store.

    Products with a net quantity of exactly zero are omitted.

    Returns:
        [{product_id, name, current_stock}] ordered by name
    """
    try:
        return jsonify(stock_service.store_inventory(store_id)), 200
    except InventoryError as exc:
        return jsonify(exc.to_dict()), exc.http_status
    except Exception:
        current_app.logger.exception("Failed to load inventory for store %s", store_id)
        return jsonify({"error": "Failed to load inventory"}), 500


@inventory_bp.get("/<int:store_id>/products/<int:product_id>")
def product_stock_route(store_id: int, product_id: int):
    try:
        return jsonify(stock_service.product_stock(product_id, store_id)), 200
    except InventoryError as exc:
        return jsonify(exc.to_dict()), exc.http_status
    except Exception:
        current_app.logger.exception("Failed to load stock for product %s", product_id)
        return jsonify({"error": "Failed to load stock"}), 500


@inventory_bp.get("/movements")
def list_movements_route():
    """
    Movement history, newest first.

    Query parameters:
    - product_id, store_id: optional filters
    - type: IN, OUT, ADJUST, TRANSFER_IN, TRANSFER_OUT
    - reference: exact correlation reference (e.g. SALE-12)
    - from_date / to_date: ISO-8601 bounds on the movement date
    - limit: maximum rows (default MOVEMENT_LIST_LIMIT, capped at 1000)
    """
    product_id = request.args.get("product_id", type=int)
    store_id = request.args.get("store_id", type=int)
    movement_type = request.args.get("type")
    reference = request.args.get("reference")
    limit = request.args.get("limit", current_app.config["MOVEMENT_LIST_LIMIT"], type=int)

    # Clamp limit
    if limit < 1:
        limit = 1
    if limit > 1000:
        limit = 1000

    try:
        since = parse_iso_datetime(request.args.get("from_date"))
        until = parse_iso_datetime(request.args.get("to_date"))
    except ValueError:
        return jsonify({"error": "Invalid date format"}), 400

    try:
        movements = ledger_service.list_movements(
            product_id=product_id,
            store_id=store_id,
            movement_type=movement_type.upper() if movement_type else None,
            reference=reference,
            since=since,
            until=until,
            limit=limit,
        )
        return jsonify([m.to_dict() for m in movements]), 200
    except InventoryError as exc:
        return jsonify(exc.to_dict()), exc.http_status
    except Exception:
        current_app.logger.exception("Failed to list movements")
        return jsonify({"error": "Failed to list movements"}), 500


@inventory_bp.post("/adjust/batch")
def adjust_batch_route():
    """
    Apply physical counts.

    Body: {"adjustments": [{product_id, store_id, counted_qty, inventory_reference}]}
    """
    try:
        data = json_object_body()
        results = inventory_service.adjust_batch(data.get("adjustments"))
        return jsonify({"message": "Inventory adjusted", "adjustments": results}), 200
    except InventoryError as exc:
        return jsonify(exc.to_dict()), exc.http_status
    except Exception:
        current_app.logger.exception("Failed to apply inventory adjustments")
        return jsonify({"error": "Failed to apply inventory adjustments"}), 500


@inventory_bp.post("/transfer")
def transfer_route():
    """
    Move stock between stores.

    Body: {"transfers": [{product_id, from_store_id, to_store_id, quantity}]}
    """
    try:
        data = json_object_body()
        results = inventory_service.transfer_stock(data.get("transfers"))
        return jsonify({"message": "Transfer completed", "transfers": results}), 200
    except InventoryError as exc:
        return jsonify(exc.to_dict()), exc.http_status
    except Exception:
        current_app.logger.exception("Failed to transfer stock")
        return jsonify({"error": "Failed to transfer stock"}), 500
