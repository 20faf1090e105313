# Overview: Service-layer operations for purchase orders and receiving; encapsulates business logic.

"""
Purchase Workflow

LIFECYCLE:
1. pending: created, nothing received
2. partial: at least one receipt applied, some line still open
3. received: every line fully received

Invariants (authoritative):
- A purchase and its lines are written together or not at all.
- received_quantity never decreases and never exceeds quantity.
- Each receipt appends exactly one IN movement tagged RECEPTION-PURCHASE-{id}.
- A receipt batch is one transaction: any failing receipt aborts the whole batch.
- update_status is an administrative override and bypasses derivation.
- delete_purchase leaves stock movements from earlier receipts in place.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..errors import NotFoundError, OverReceiptError, ValidationError
from ..models import Item, Store, Purchase, PurchaseItem
from ..models.stock import MOVEMENT_IN
from .concurrency import lock_for_update, run_in_transaction
from .ledger_service import append_movement
from ..validation import (
    coerce_id,
    coerce_non_negative,
    coerce_positive,
    optional_text,
    require_list,
)

STATUS_PENDING = "pending"
STATUS_PARTIAL = "partial"
STATUS_RECEIVED = "received"
PURCHASE_STATUSES = (STATUS_PENDING, STATUS_PARTIAL, STATUS_RECEIVED)


def reception_reference(purchase_id: int) -> str:
    return f"RECEPTION-PURCHASE-{purchase_id}"


def derive_purchase_status(lines: list[PurchaseItem]) -> str:
    """received when every line is complete, otherwise partial."""
    if lines and all(line.is_fully_received for line in lines):
        return STATUS_RECEIVED
    return STATUS_PARTIAL


def _parse_lines(lines) -> list[dict]:
    lines = require_list(lines, "items")
    parsed = []
    for index, line in enumerate(lines):
        parsed.append({
            "product_id": coerce_id(line.get("product_id"), f"items[{index}].product_id"),
            "store_id": coerce_id(line.get("store_id"), f"items[{index}].store_id"),
            "quantity": coerce_positive(line.get("quantity"), f"items[{index}].quantity"),
            "unit_price": coerce_non_negative(line.get("unit_price"), f"items[{index}].unit_price"),
        })
    return parsed


def create_purchase(supplier_name, lines, bc_number=None) -> Purchase:
    """
    Create a pending purchase with its lines.

    total_amount = sum(quantity * unit_price), fixed at creation.
    """
    supplier_name = optional_text({"supplier_name": supplier_name}, "supplier_name")
    if not supplier_name:
        raise ValidationError("supplier_name is required")
    parsed = _parse_lines(lines)
    bc_number = optional_text({"bc_number": bc_number}, "bc_number")

    def _op():
        purchase = Purchase(
            supplier_name=supplier_name,
            bc_number=bc_number,
            status=STATUS_PENDING,
            total_amount=sum(line["quantity"] * line["unit_price"] for line in parsed),
        )
        db.session.add(purchase)
        db.session.flush()

        for line in parsed:
            _ensure_line_references(line)
            db.session.add(PurchaseItem(
                purchase_id=purchase.id,
                received_quantity=0,
                **line,
            ))
        db.session.flush()
        return purchase

    purchase = run_in_transaction(_op)
    current_app.logger.info(
        "Purchase %s created for %s with %d line(s)",
        purchase.id, supplier_name, len(parsed),
    )
    return purchase


def _ensure_line_references(line: dict) -> None:
    if db.session.get(Item, line["product_id"]) is None:
        raise ValidationError(
            f"Product {line['product_id']} does not exist",
            details={"product_id": line["product_id"]},
        )
    if db.session.get(Store, line["store_id"]) is None:
        raise ValidationError(
            f"Store {line['store_id']} does not exist",
            details={"store_id": line["store_id"]},
        )


def get_purchase(purchase_id: int) -> Purchase:
    purchase = db.session.get(Purchase, purchase_id)
    if not purchase:
        raise NotFoundError(f"Purchase {purchase_id} not found")
    return purchase


def list_purchases(status: str | None = None) -> list[Purchase]:
    q = db.session.query(Purchase)
    if status:
        q = q.filter(Purchase.status == status)
    return q.order_by(Purchase.date.desc(), Purchase.id.desc()).all()


def _parse_receipts(receipts) -> list[dict]:
    receipts = require_list(receipts, "items")
    parsed = []
    for index, receipt in enumerate(receipts):
        parsed.append({
            "purchase_item_id": coerce_id(
                receipt.get("purchase_item_id"), f"items[{index}].purchase_item_id"
            ),
            "quantity_received": coerce_positive(
                receipt.get("quantity_received"), f"items[{index}].quantity_received"
            ),
        })
    return parsed


def receive_items(purchase_id: int, receipts) -> Purchase:
    """
    Apply a batch of receipts and re-derive the purchase status.

    Several receipts for the same line accumulate; the over-receipt check
    runs against the running total.
    """
    parsed = _parse_receipts(receipts)

    def _op():
        purchase = lock_for_update(
            db.session.query(Purchase).filter_by(id=purchase_id)
        ).populate_existing().first()
        if not purchase:
            raise NotFoundError(f"Purchase {purchase_id} not found")

        reference = reception_reference(purchase.id)
        for receipt in parsed:
            line = lock_for_update(
                db.session.query(PurchaseItem).filter_by(
                    id=receipt["purchase_item_id"], purchase_id=purchase.id
                )
            ).populate_existing().first()
            if not line:
                raise NotFoundError(
                    f"Purchase item {receipt['purchase_item_id']} not found on purchase {purchase.id}",
                    details={"purchase_item_id": receipt["purchase_item_id"]},
                )

            qty = receipt["quantity_received"]
            if line.received_quantity + qty > line.quantity:
                raise OverReceiptError(
                    f"Cannot receive {qty:g} for purchase item {line.id}: "
                    f"{line.received_quantity:g} of {line.quantity:g} already received",
                    details={
                        "purchase_item_id": line.id,
                        "ordered": line.quantity,
                        "received": line.received_quantity,
                        "requested": qty,
                    },
                )

            line.received_quantity = line.received_quantity + qty
            append_movement(
                product_id=line.product_id,
                store_id=line.store_id,
                movement_type=MOVEMENT_IN,
                quantity=qty,
                reference=reference,
            )

        purchase.status = derive_purchase_status(purchase.items)
        db.session.flush()
        return purchase

    purchase = run_in_transaction(_op)
    current_app.logger.info(
        "Received %d line(s) on purchase %s; status=%s",
        len(parsed), purchase.id, purchase.status,
    )
    return purchase


def update_status(purchase_id: int, status) -> Purchase:
    """Administrative override. Does not check received quantities."""
    status = (str(status).strip().lower() if status is not None else "")
    if status not in PURCHASE_STATUSES:
        raise ValidationError(
            f"Invalid status. Must be one of: {', '.join(PURCHASE_STATUSES)}"
        )

    def _op():
        purchase = lock_for_update(db.session.query(Purchase).filter_by(id=purchase_id)).first()
        if not purchase:
            raise NotFoundError(f"Purchase {purchase_id} not found")
        previous = purchase.status
        purchase.status = status
        return purchase, previous

    purchase, previous = run_in_transaction(_op)
    current_app.logger.warning(
        "Purchase %s status overridden: %s -> %s", purchase.id, previous, status
    )
    return purchase


def set_receipt_url(purchase_id: int, receipt_url) -> Purchase:
    receipt_url = optional_text({"receipt_url": receipt_url}, "receipt_url")

    def _op():
        purchase = lock_for_update(db.session.query(Purchase).filter_by(id=purchase_id)).first()
        if not purchase:
            raise NotFoundError(f"Purchase {purchase_id} not found")
        purchase.receipt_url = receipt_url
        return purchase

    return run_in_transaction(_op)


def delete_purchase(purchase_id: int) -> None:
    """
    Remove a purchase and its lines.

    Stock already received stays on hand; the IN movements are not reversed.
    """
    def _op():
        purchase = lock_for_update(db.session.query(Purchase).filter_by(id=purchase_id)).first()
        if not purchase:
            raise NotFoundError(f"Purchase {purchase_id} not found")
        received = db.session.query(
            func.coalesce(func.sum(PurchaseItem.received_quantity), 0)
        ).filter(PurchaseItem.purchase_id == purchase.id).scalar()
        db.session.delete(purchase)
        return float(received or 0)

    received = run_in_transaction(_op)
    if received > 0:
        current_app.logger.warning(
            "Purchase %s deleted after receiving %g unit(s); stock movements %s kept",
            purchase_id, received, reception_reference(purchase_id),
        )
    else:
        current_app.logger.info("Purchase %s deleted", purchase_id)
