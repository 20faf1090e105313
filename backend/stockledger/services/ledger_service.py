# Overview: Movement log; the only writer of stock_movements and stock_balances.

from __future__ import annotations

from datetime import datetime

from ..extensions import db
from ..errors import InsufficientStockError, ValidationError
from ..models import Item, Store, StockMovement, StockBalance
from ..models.stock import MOVEMENT_ADJUST, MOVEMENT_TYPES, signed_quantity
from ..validation import coerce_number
from .concurrency import lock_for_update

"""
Movement Log Invariants (authoritative)

- append_movement is the single write path for stock. Workflows call it
  inside their own run_in_transaction unit; it never commits.
- Each append locks the (product, store) balance row, applies the signed
  delta, and inserts the movement in the same flush.
- A decreasing movement that would leave the balance below zero raises
  InsufficientStockError; nothing is written.
- No update/delete API exists. ORM listeners reject both.
"""


def ensure_references(product_id: int, store_id: int) -> None:
    if db.session.get(Item, product_id) is None:
        raise ValidationError(
            f"Product {product_id} does not exist",
            details={"product_id": product_id},
        )
    if db.session.get(Store, store_id) is None:
        raise ValidationError(
            f"Store {store_id} does not exist",
            details={"store_id": store_id},
        )


def claim_balance(product_id: int, store_id: int) -> StockBalance:
    """
    Load (or create) the balance row for (product, store) under lock.

    populate_existing() refreshes an instance already in the identity map so
    the caller always checks against the committed quantity.
    """
    query = db.session.query(StockBalance).filter_by(product_id=product_id, store_id=store_id)
    balance = lock_for_update(query).populate_existing().first()
    if balance is None:
        balance = StockBalance(product_id=product_id, store_id=store_id, quantity=0)
        db.session.add(balance)
        db.session.flush()
    return balance


def append_movement(
    *,
    product_id: int,
    store_id: int,
    movement_type: str,
    quantity,
    reference: str | None = None,
    note: str | None = None,
) -> StockMovement:
    """
    Append one movement and update the materialized balance.

    quantity must be > 0, except for ADJUST where it is a signed non-zero delta.
    """
    if movement_type not in MOVEMENT_TYPES:
        raise ValidationError(
            f"Invalid movement type {movement_type!r}. Must be one of: {', '.join(MOVEMENT_TYPES)}"
        )

    quantity = coerce_number(quantity, "quantity")
    if movement_type == MOVEMENT_ADJUST:
        if quantity == 0:
            raise ValidationError("quantity must be non-zero for ADJUST")
    elif quantity <= 0:
        raise ValidationError(f"quantity must be > 0 for {movement_type}")

    ensure_references(product_id, store_id)

    balance = claim_balance(product_id, store_id)
    delta = signed_quantity(movement_type, quantity)
    new_quantity = balance.quantity + delta
    if delta < 0 and new_quantity < 0:
        raise InsufficientStockError(
            product_id=product_id,
            store_id=store_id,
            available=balance.quantity,
            requested=-delta,
        )

    movement = StockMovement(
        product_id=product_id,
        store_id=store_id,
        type=movement_type,
        quantity=quantity,
        reference=reference,
        note=note,
    )
    balance.quantity = new_quantity
    db.session.add(movement)
    db.session.flush()  # version check on the balance happens here
    return movement


def list_movements(
    *,
    product_id: int | None = None,
    store_id: int | None = None,
    movement_type: str | None = None,
    reference: str | None = None,
    since: datetime | None = None,
    until: datetime | None = None,
    limit: int = 200,
) -> list[StockMovement]:
    """Movement history, newest first."""
    if movement_type is not None and movement_type not in MOVEMENT_TYPES:
        raise ValidationError(f"Invalid movement type {movement_type!r}")

    q = db.session.query(StockMovement)
    if product_id is not None:
        q = q.filter(StockMovement.product_id == product_id)
    if store_id is not None:
        q = q.filter(StockMovement.store_id == store_id)
    if movement_type is not None:
        q = q.filter(StockMovement.type == movement_type)
    if reference is not None:
        q = q.filter(StockMovement.reference == reference)
    if since is not None:
        q = q.filter(StockMovement.date >= since)
    if until is not None:
        q = q.filter(StockMovement.date <= until)

    return q.order_by(StockMovement.date.desc(), StockMovement.id.desc()).limit(limit).all()
