from __future__ import annotations

from ..extensions import db
from stockledger.time_utils import to_utc_z


class Sale(db.Model):
    """
    Customer sale.

    Created in one step together with its OUT movements; there is no
    draft stage. total_amount is the creation-time snapshot and is not
    reduced by later returns.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_status_date", "status", "date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_name = db.Column(db.String(255), nullable=False)
    customer_phone = db.Column(db.String(64), nullable=False)
    customer_address = db.Column(db.String(255), nullable=False)

    total_amount = db.Column(db.Float, nullable=False, default=0)

    # Free text; "completed" on creation
    status = db.Column(db.String(32), nullable=False, default="completed", index=True)

    date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    version_id = db.Column(db.Integer, nullable=False, default=1)

    items = db.relationship(
        "SaleItem",
        backref="sale",
        lazy=True,
        order_by="SaleItem.id",
        cascade="all, delete-orphan",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Sale id={self.id} customer={self.customer_name!r} status={self.status}>"

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "customer_address": self.customer_address,
            "total_amount": self.total_amount,
            "status": self.status,
            "date": to_utc_z(self.date),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class SaleItem(db.Model):
    """Sold line. quantity only decreases, through returns."""
    __tablename__ = "sale_items"
    __table_args__ = (
        db.CheckConstraint("quantity >= 0", name="ck_sale_items_quantity_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("items.id"), nullable=False, index=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)

    quantity = db.Column(db.Float, nullable=False)
    unit_price = db.Column(db.Float, nullable=False)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    product = db.relationship("Item")
    store = db.relationship("Store")
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "name": self.product.name if self.product else None,
            "store_id": self.store_id,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
        }
