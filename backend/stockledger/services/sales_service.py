# Overview: Service-layer operations for sales and returns; encapsulates business logic.

"""
Sales Workflow

Invariants (authoritative):
- A sale is rejected wholesale when any (product, store) lacks stock; no
  sale row, line or movement is written.
- Stock is checked twice: an aggregated pre-check for a complete error
  report, then again per movement under the balance lock before commit.
- Each line appends exactly one OUT movement tagged SALE-{id}.
- Returns decrement the sale line and append IN movements tagged RETURN-{id}.
- total_amount is the creation-time snapshot; returns do not change it.
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..errors import InsufficientStockError, NotFoundError, ValidationError
from ..models import Item, Store, Sale, SaleItem
from ..models.stock import MOVEMENT_IN, MOVEMENT_OUT
from .concurrency import lock_for_update, run_in_transaction
from .ledger_service import append_movement
from .stock_service import current_stock
from ..validation import (
    coerce_id,
    coerce_non_negative,
    coerce_positive,
    require_list,
    require_text,
)

STATUS_COMPLETED = "completed"


def sale_reference(sale_id: int) -> str:
    return f"SALE-{sale_id}"


def return_reference(sale_id: int) -> str:
    return f"RETURN-{sale_id}"


def _parse_lines(lines) -> list[dict]:
    lines = require_list(lines, "items")
    parsed = []
    for index, line in enumerate(lines):
        parsed.append({
            "product_id": coerce_id(line.get("product_id"), f"items[{index}].product_id"),
            "store_id": coerce_id(line.get("store_id"), f"items[{index}].store_id"),
            "quantity": coerce_positive(line.get("quantity"), f"items[{index}].quantity"),
            "unit_price": coerce_non_negative(line.get("unit_price", 0), f"items[{index}].unit_price"),
        })
    return parsed


def _validate_on_hand(lines: list[dict]) -> None:
    """
    Pre-check requested quantities against current stock.

    Lines for the same (product, store) are summed so a sale cannot pass the
    check line by line and still oversell in total.
    """
    requested: dict[tuple[int, int], float] = {}
    for line in lines:
        key = (line["product_id"], line["store_id"])
        requested[key] = requested.get(key, 0.0) + line["quantity"]

    for (product_id, store_id), qty in requested.items():
        if db.session.get(Item, product_id) is None:
            raise ValidationError(
                f"Product {product_id} does not exist", details={"product_id": product_id}
            )
        if db.session.get(Store, store_id) is None:
            raise ValidationError(
                f"Store {store_id} does not exist", details={"store_id": store_id}
            )
        available = current_stock(product_id, store_id)
        if available < qty:
            raise InsufficientStockError(
                product_id=product_id,
                store_id=store_id,
                available=available,
                requested=qty,
            )


def create_sale(customer_name, customer_phone, customer_address, lines) -> Sale:
    customer = {
        "customer_name": customer_name,
        "customer_phone": customer_phone,
        "customer_address": customer_address,
    }
    customer_name = require_text(customer, "customer_name")
    customer_phone = require_text(customer, "customer_phone")
    customer_address = require_text(customer, "customer_address")
    parsed = _parse_lines(lines)

    def _op():
        _validate_on_hand(parsed)

        sale = Sale(
            customer_name=customer_name,
            customer_phone=customer_phone,
            customer_address=customer_address,
            status=STATUS_COMPLETED,
            total_amount=sum(line["quantity"] * line["unit_price"] for line in parsed),
        )
        db.session.add(sale)
        db.session.flush()

        reference = sale_reference(sale.id)
        for line in parsed:
            db.session.add(SaleItem(sale_id=sale.id, **line))
            # Re-checked under the balance lock; raises before commit if a
            # concurrent sale consumed the stock after the pre-check.
            append_movement(
                product_id=line["product_id"],
                store_id=line["store_id"],
                movement_type=MOVEMENT_OUT,
                quantity=line["quantity"],
                reference=reference,
            )
        db.session.flush()
        return sale

    sale = run_in_transaction(_op)
    current_app.logger.info(
        "Sale %s created for %s with %d line(s)", sale.id, customer_name, len(parsed)
    )
    return sale


def get_sale(sale_id: int) -> Sale:
    sale = db.session.get(Sale, sale_id)
    if not sale:
        raise NotFoundError(f"Sale {sale_id} not found")
    return sale


def list_sales(status: str | None = None) -> list[Sale]:
    q = db.session.query(Sale)
    if status:
        q = q.filter(Sale.status == status)
    return q.order_by(Sale.date.desc(), Sale.id.desc()).all()


def _parse_returns(returns) -> list[dict]:
    returns = require_list(returns, "returns")
    parsed = []
    for index, entry in enumerate(returns):
        # sale_item_id is accepted as an alias of item_id
        raw_id = entry.get("item_id", entry.get("sale_item_id"))
        parsed.append({
            "item_id": coerce_id(raw_id, f"returns[{index}].item_id"),
            "quantity": coerce_positive(entry.get("quantity"), f"returns[{index}].quantity"),
        })
    return parsed


def return_items(sale_id: int, returns) -> Sale:
    """
    Return quantities from sale lines back to stock.

    Entries naming a line that is not part of this sale are skipped. The
    limit is the line's current quantity, so earlier returns count against it.
    """
    parsed = _parse_returns(returns)

    def _op():
        sale = lock_for_update(
            db.session.query(Sale).filter_by(id=sale_id)
        ).populate_existing().first()
        if not sale:
            raise NotFoundError(f"Sale {sale_id} not found")

        reference = return_reference(sale.id)
        applied = 0
        for entry in parsed:
            line = lock_for_update(
                db.session.query(SaleItem).filter_by(id=entry["item_id"], sale_id=sale.id)
            ).populate_existing().first()
            if not line:
                current_app.logger.info(
                    "Return on sale %s skipped unknown line %s", sale.id, entry["item_id"]
                )
                continue

            qty = entry["quantity"]
            if qty > line.quantity:
                raise ValidationError(
                    f"Cannot return {qty:g} of sale item {line.id}: only {line.quantity:g} remaining",
                    details={
                        "item_id": line.id,
                        "remaining": line.quantity,
                        "requested": qty,
                    },
                )

            line.quantity = line.quantity - qty
            append_movement(
                product_id=line.product_id,
                store_id=line.store_id,
                movement_type=MOVEMENT_IN,
                quantity=qty,
                reference=reference,
            )
            applied += 1

        db.session.flush()
        return sale, applied

    sale, applied = run_in_transaction(_op)
    current_app.logger.info("Returned %d line(s) on sale %s", applied, sale.id)
    return sale


def update_status(sale_id: int, status) -> Sale:
    """Administrative override; the value is stored as given."""
    status = require_text({"status": status}, "status")

    def _op():
        sale = lock_for_update(db.session.query(Sale).filter_by(id=sale_id)).first()
        if not sale:
            raise NotFoundError(f"Sale {sale_id} not found")
        previous = sale.status
        sale.status = status
        return sale, previous

    sale, previous = run_in_transaction(_op)
    current_app.logger.warning("Sale %s status overridden: %s -> %s", sale.id, previous, status)
    return sale
