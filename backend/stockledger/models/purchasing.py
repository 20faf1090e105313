from __future__ import annotations

from ..extensions import db
from stockledger.time_utils import to_utc_z


class Purchase(db.Model):
    """
    Purchase order.

    total_amount is a snapshot taken at creation and never recomputed.
    status is derived from line receipts (pending -> partial -> received)
    except when an administrator overrides it.
    """
    __tablename__ = "purchases"
    __table_args__ = (
        db.Index("ix_purchases_status_date", "status", "date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    supplier_name = db.Column(db.String(255), nullable=False)
    total_amount = db.Column(db.Float, nullable=False, default=0)

    # pending, partial, received
    status = db.Column(db.String(16), nullable=False, default="pending", index=True)

    date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    # Supplier order number (bon de commande) and uploaded receipt location
    bc_number = db.Column(db.String(64), nullable=True)
    receipt_url = db.Column(db.String(512), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    items = db.relationship(
        "PurchaseItem",
        backref="purchase",
        lazy=True,
        order_by="PurchaseItem.id",
        cascade="all, delete-orphan",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Purchase id={self.id} supplier={self.supplier_name!r} status={self.status}>"

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "supplier_name": self.supplier_name,
            "total_amount": self.total_amount,
            "status": self.status,
            "date": to_utc_z(self.date),
            "bc_number": self.bc_number,
            "receipt_url": self.receipt_url,
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class PurchaseItem(db.Model):
    """Ordered line. received_quantity only grows and never exceeds quantity."""
    __tablename__ = "purchase_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_purchase_items_quantity_positive"),
        db.CheckConstraint(
            "received_quantity >= 0 AND received_quantity <= quantity",
            name="ck_purchase_items_received_bounds",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    purchase_id = db.Column(db.Integer, db.ForeignKey("purchases.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("items.id"), nullable=False, index=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)

    quantity = db.Column(db.Float, nullable=False)
    unit_price = db.Column(db.Float, nullable=False)
    received_quantity = db.Column(db.Float, nullable=False, default=0)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    product = db.relationship("Item")
    store = db.relationship("Store")
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_fully_received(self) -> bool:
        return self.received_quantity >= self.quantity

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "purchase_id": self.purchase_id,
            "product_id": self.product_id,
            "name": self.product.name if self.product else None,
            "store_id": self.store_id,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
            "received_quantity": self.received_quantity,
        }
