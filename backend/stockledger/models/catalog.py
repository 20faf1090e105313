from __future__ import annotations

from ..extensions import db
from stockledger.time_utils import to_utc_z


class Item(db.Model):
    """
    Product master data.

    Items are referenced by id from every stock movement and order line.
    Duplicate detection is on (name, category), trimmed and case-folded;
    it is enforced in catalog_service rather than by a DB constraint.
    """
    __tablename__ = "items"
    __table_args__ = (
        db.Index("ix_items_name", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(120), nullable=False)

    purchase_price = db.Column(db.Float, nullable=False)
    sale_price = db.Column(db.Float, nullable=True)

    # Soft delete marker; archived items stay referenced by history
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Item id={self.id} name={self.name!r} category={self.category!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "purchase_price": self.purchase_price,
            "sale_price": self.sale_price,
            "deleted_at": to_utc_z(self.deleted_at) if self.deleted_at else None,
            "created_at": to_utc_z(self.created_at),
        }


class Store(db.Model):
    """
    Store / warehouse holding stock.

    Codes are system-generated (ST-001, ST-002, ...). A store cannot be
    deleted while purchase lines, sale lines or movements reference it.
    """
    __tablename__ = "stores"
    __table_args__ = (
        db.UniqueConstraint("code", name="uq_stores_code"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(16), nullable=False)
    name = db.Column(db.String(120), nullable=False)

    # Zone labels, stored as a JSON list
    zone = db.Column(db.JSON, nullable=False, default=list)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Store id={self.id} code={self.code!r} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "zone": list(self.zone or []),
            "created_at": to_utc_z(self.created_at),
        }
