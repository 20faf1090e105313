from __future__ import annotations

from sqlalchemy import case, event

from ..extensions import db
from ..errors import AppendOnlyViolationError
from stockledger.time_utils import to_utc_z

"""
Stock Ledger Invariants (authoritative)

- StockMovement rows are append-only: never updated, never deleted.
  Corrections are compensating movements (ADJUST, or IN for returns).
- quantity is a positive magnitude for IN, OUT, TRANSFER_IN, TRANSFER_OUT;
  direction is implied by type.
- ADJUST is the one exception: quantity is a signed, non-zero delta and is
  always additive.
- On-hand = SUM(IN, ADJUST, TRANSFER_IN) - SUM(OUT, TRANSFER_OUT).
- StockBalance mirrors that sum per (product, store). It is the row writers
  lock and version-check; it is never read as a source of truth by callers.
"""

MOVEMENT_IN = "IN"
MOVEMENT_OUT = "OUT"
MOVEMENT_ADJUST = "ADJUST"
MOVEMENT_TRANSFER_IN = "TRANSFER_IN"
MOVEMENT_TRANSFER_OUT = "TRANSFER_OUT"

ADDITIVE_TYPES = (MOVEMENT_IN, MOVEMENT_ADJUST, MOVEMENT_TRANSFER_IN)
SUBTRACTIVE_TYPES = (MOVEMENT_OUT, MOVEMENT_TRANSFER_OUT)
MOVEMENT_TYPES = ADDITIVE_TYPES + SUBTRACTIVE_TYPES


def signed_quantity(movement_type: str, quantity: float) -> float:
    """Effect of one movement on on-hand quantity."""
    if movement_type in SUBTRACTIVE_TYPES:
        return -quantity
    if movement_type in ADDITIVE_TYPES:
        return quantity
    raise ValueError(f"unknown movement type {movement_type!r}")


class StockMovement(db.Model):
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.Index("ix_stock_movements_store_product", "store_id", "product_id"),
        db.Index("ix_stock_movements_reference", "reference"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    product_id = db.Column(db.Integer, db.ForeignKey("items.id"), nullable=False, index=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)

    type = db.Column(db.String(16), nullable=False, index=True)

    # Positive magnitude, except ADJUST which carries a signed delta
    quantity = db.Column(db.Float, nullable=False)

    # Free-text correlation id (SALE-12, RECEPTION-PURCHASE-3, TRANS-..., RETURN-12)
    reference = db.Column(db.String(64), nullable=True)
    note = db.Column(db.String(255), nullable=True)

    date = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        index=True,
    )

    product = db.relationship("Item")
    store = db.relationship("Store")

    @property
    def signed_quantity(self) -> float:
        return signed_quantity(self.type, self.quantity)

    def __repr__(self) -> str:
        return (
            f"<StockMovement id={self.id} type={self.type} product_id={self.product_id} "
            f"store_id={self.store_id} quantity={self.quantity}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "store_id": self.store_id,
            "type": self.type,
            "quantity": self.quantity,
            "reference": self.reference,
            "note": self.note,
            "date": to_utc_z(self.date),
        }


def signed_quantity_expr():
    """SQL expression matching signed_quantity(), for aggregation queries."""
    return case(
        (StockMovement.type.in_(ADDITIVE_TYPES), StockMovement.quantity),
        (StockMovement.type.in_(SUBTRACTIVE_TYPES), -StockMovement.quantity),
        else_=0,
    )


class StockBalance(db.Model):
    """
    Materialized on-hand quantity per (product, store).

    Updated in the same transaction as every movement insert. version_id
    turns a concurrent write into StaleDataError, which the retry loop in
    services.concurrency catches and replays.
    """
    __tablename__ = "stock_balances"
    __table_args__ = (
        db.UniqueConstraint("product_id", "store_id", name="uq_stock_balances_product_store"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("items.id"), nullable=False, index=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)

    quantity = db.Column(db.Float, nullable=False, default=0)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "store_id": self.store_id,
            "quantity": self.quantity,
            "version_id": self.version_id,
            "updated_at": to_utc_z(self.updated_at),
        }


@event.listens_for(StockMovement, "before_update")
def _prevent_movement_update(mapper, connection, target):
    raise AppendOnlyViolationError(
        f"Stock movements are append-only; cannot modify movement {target.id}"
    )


@event.listens_for(StockMovement, "before_delete")
def _prevent_movement_delete(mapper, connection, target):
    raise AppendOnlyViolationError(
        f"Stock movements are append-only; cannot delete movement {target.id}"
    )
