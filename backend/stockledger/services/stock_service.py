# Overview: Read-side stock aggregation over the movement log.

from __future__ import annotations

from sqlalchemy import func

from ..extensions import db
from ..errors import NotFoundError
from ..models import Item, Store, StockMovement, StockBalance
from ..models.stock import signed_quantity_expr


def current_stock(product_id: int, store_id: int) -> float:
    """
    On-hand quantity for one (product, store), summed live from movements.

    SUM(IN, ADJUST, TRANSFER_IN) - SUM(OUT, TRANSFER_OUT); 0 when no movements exist.
    """
    total = db.session.query(
        func.coalesce(func.sum(signed_quantity_expr()), 0)
    ).filter(
        StockMovement.product_id == product_id,
        StockMovement.store_id == store_id,
    ).scalar()
    return float(total or 0)


def product_stock(product_id: int, store_id: int) -> dict:
    if db.session.get(Item, product_id) is None:
        raise NotFoundError(f"Product {product_id} not found")
    if db.session.get(Store, store_id) is None:
        raise NotFoundError(f"Store {store_id} not found")
    return {
        "product_id": product_id,
        "store_id": store_id,
        "current_stock": current_stock(product_id, store_id),
    }


def store_inventory(store_id: int) -> list[dict]:
    """
    Per-product stock for a store, ordered by product name.

    Products whose movements net to exactly zero are left out.
    """
    if db.session.get(Store, store_id) is None:
        raise NotFoundError(f"Store {store_id} not found")

    stock_total = func.sum(signed_quantity_expr())
    rows = (
        db.session.query(
            Item.id.label("product_id"),
            Item.name.label("name"),
            stock_total.label("current_stock"),
        )
        .join(StockMovement, StockMovement.product_id == Item.id)
        .filter(StockMovement.store_id == store_id)
        .group_by(Item.id, Item.name)
        .having(stock_total != 0)
        .order_by(Item.name.asc(), Item.id.asc())
        .all()
    )

    return [
        {
            "product_id": row.product_id,
            "name": row.name,
            "current_stock": float(row.current_stock),
        }
        for row in rows
    ]


def rebuild_balances() -> list[dict]:
    """
    Recompute every StockBalance from the movement log.

    Returns the rows that drifted, as {product_id, store_id, previous, current}.
    Caller commits.
    """
    totals = (
        db.session.query(
            StockMovement.product_id,
            StockMovement.store_id,
            func.sum(signed_quantity_expr()).label("total"),
        )
        .group_by(StockMovement.product_id, StockMovement.store_id)
        .all()
    )
    expected = {(row.product_id, row.store_id): float(row.total or 0) for row in totals}

    corrected = []
    balances = {
        (b.product_id, b.store_id): b
        for b in db.session.query(StockBalance).all()
    }

    for key, balance in balances.items():
        target = expected.pop(key, 0.0)
        if balance.quantity != target:
            corrected.append({
                "product_id": key[0],
                "store_id": key[1],
                "previous": balance.quantity,
                "current": target,
            })
            balance.quantity = target

    # Movements with no balance row at all
    for (product_id, store_id), target in expected.items():
        db.session.add(StockBalance(product_id=product_id, store_id=store_id, quantity=target))
        corrected.append({
            "product_id": product_id,
            "store_id": store_id,
            "previous": None,
            "current": target,
        })

    db.session.flush()
    return corrected
