# Overview: Master data for items and stores; seeds initial stock through the movement log.

from __future__ import annotations

from sqlalchemy import func

from ..extensions import db
from ..errors import ConflictError, NotFoundError, ValidationError
from ..models import Item, Store, StockBalance, StockMovement, PurchaseItem, SaleItem
from ..models.stock import MOVEMENT_IN
from .concurrency import lock_for_update, run_in_transaction
from .ledger_service import append_movement
from stockledger.time_utils import utcnow
from ..validation import coerce_id, coerce_non_negative

STORE_CODE_PREFIX = "ST-"
INITIAL_STOCK_REFERENCE = "INITIAL_STOCK"


def _normalized(column):
    return func.lower(func.trim(column))


def _clean_name(value, field: str = "name") -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"{field} is required")
    return str(value).strip()


def _clean_zones(zone) -> list[str]:
    if not isinstance(zone, list):
        return []
    return [str(z).strip() for z in zone if str(z).strip()]


# ---------------------------------------------------------------------------
# Items
# ---------------------------------------------------------------------------

def _find_duplicate_item(name: str, category: str, exclude_id: int | None = None) -> Item | None:
    q = db.session.query(Item).filter(
        _normalized(Item.name) == name.strip().lower(),
        _normalized(Item.category) == category.strip().lower(),
        Item.deleted_at.is_(None),
    )
    if exclude_id is not None:
        q = q.filter(Item.id != exclude_id)
    return q.first()


def create_item(
    *,
    name,
    category,
    purchase_price,
    sale_price=None,
    initial_stock=0,
    store_id=None,
) -> Item:
    """
    Create an item, optionally seeding stock with an INITIAL_STOCK movement.
    """
    name = _clean_name(name)
    category = _clean_name(category, "category")
    purchase_price = coerce_non_negative(purchase_price, "purchase_price")
    if sale_price is not None:
        sale_price = coerce_non_negative(sale_price, "sale_price")
    initial_stock = coerce_non_negative(initial_stock or 0, "initial_stock")
    if store_id is not None:
        store_id = coerce_id(store_id, "store_id")

    def _op():
        if _find_duplicate_item(name, category):
            raise ConflictError("An item with this name and category already exists")

        item = Item(
            name=name,
            category=category,
            purchase_price=purchase_price,
            sale_price=sale_price,
        )
        db.session.add(item)
        db.session.flush()

        if initial_stock > 0 and store_id is not None:
            append_movement(
                product_id=item.id,
                store_id=store_id,
                movement_type=MOVEMENT_IN,
                quantity=initial_stock,
                reference=INITIAL_STOCK_REFERENCE,
            )
        return item

    return run_in_transaction(_op)


def update_item(item_id: int, *, name, category, purchase_price, sale_price=None) -> Item:
    name = _clean_name(name)
    category = _clean_name(category, "category")
    purchase_price = coerce_non_negative(purchase_price, "purchase_price")
    if sale_price is not None:
        sale_price = coerce_non_negative(sale_price, "sale_price")

    def _op():
        item = lock_for_update(db.session.query(Item).filter_by(id=item_id)).first()
        if not item or item.deleted_at is not None:
            raise NotFoundError(f"Item {item_id} not found")

        if _find_duplicate_item(name, category, exclude_id=item_id):
            raise ConflictError("Another item with this name and category already exists")

        item.name = name
        item.category = category
        item.purchase_price = purchase_price
        item.sale_price = sale_price
        return item

    return run_in_transaction(_op)


def archive_item(item_id: int) -> Item:
    """Soft delete. Movements and order lines keep pointing at the row."""
    def _op():
        item = lock_for_update(db.session.query(Item).filter_by(id=item_id)).first()
        if not item or item.deleted_at is not None:
            raise NotFoundError(f"Item {item_id} not found")
        item.deleted_at = utcnow()
        return item

    return run_in_transaction(_op)


def get_item(item_id: int) -> Item:
    item = db.session.get(Item, item_id)
    if not item:
        raise NotFoundError(f"Item {item_id} not found")
    return item


def list_items(include_archived: bool = False) -> list[Item]:
    q = db.session.query(Item)
    if not include_archived:
        q = q.filter(Item.deleted_at.is_(None))
    return q.order_by(Item.name.asc(), Item.id.asc()).all()


# ---------------------------------------------------------------------------
# Stores
# ---------------------------------------------------------------------------

def _find_duplicate_store(name: str, exclude_id: int | None = None) -> Store | None:
    q = db.session.query(Store).filter(_normalized(Store.name) == name.strip().lower())
    if exclude_id is not None:
        q = q.filter(Store.id != exclude_id)
    return q.first()


def next_store_code() -> str:
    """ST-001, ST-002, ... continuing from the most recently created store."""
    last = db.session.query(Store).order_by(Store.id.desc()).first()
    if last is None or not last.code or not last.code.startswith(STORE_CODE_PREFIX):
        return f"{STORE_CODE_PREFIX}001"
    try:
        number = int(last.code[len(STORE_CODE_PREFIX):]) + 1
    except ValueError:
        number = db.session.query(Store).count() + 1
    return f"{STORE_CODE_PREFIX}{number:03d}"


def create_store(*, name, zone=None) -> Store:
    name = _clean_name(name)
    zones = _clean_zones(zone)

    def _op():
        if _find_duplicate_store(name):
            raise ConflictError("A store with this name already exists")

        store = Store(code=next_store_code(), name=name, zone=zones)
        db.session.add(store)
        db.session.flush()
        return store

    return run_in_transaction(_op)


def update_store(store_id: int, *, name, zone=None) -> Store:
    name = _clean_name(name)
    zones = _clean_zones(zone)

    def _op():
        store = lock_for_update(db.session.query(Store).filter_by(id=store_id)).first()
        if not store:
            raise NotFoundError(f"Store {store_id} not found")

        if _find_duplicate_store(name, exclude_id=store_id):
            raise ConflictError("Another store with this name already exists")

        store.name = name
        store.zone = zones
        return store

    return run_in_transaction(_op)


def delete_store(store_id: int) -> None:
    """
    Delete a store that nothing references.

    Purchase lines are the documented guard; sale lines, movements and
    non-empty balance rows would otherwise trip the foreign keys.
    """
    def _op():
        store = lock_for_update(db.session.query(Store).filter_by(id=store_id)).first()
        if not store:
            raise NotFoundError(f"Store {store_id} not found")

        if db.session.query(PurchaseItem.id).filter_by(store_id=store_id).first():
            raise ConflictError(
                "Store is referenced by purchase lines and cannot be deleted",
                details={"store_id": store_id},
            )
        if db.session.query(SaleItem.id).filter_by(store_id=store_id).first():
            raise ConflictError(
                "Store is referenced by sale lines and cannot be deleted",
                details={"store_id": store_id},
            )
        if db.session.query(StockMovement.id).filter_by(store_id=store_id).first():
            raise ConflictError(
                "Store has stock history and cannot be deleted",
                details={"store_id": store_id},
            )

        # With no movements every balance row left is an empty lock row from a
        # matching count; a non-zero one means drift and blocks the delete.
        balances = db.session.query(StockBalance).filter_by(store_id=store_id).all()
        if any(b.quantity != 0 for b in balances):
            raise ConflictError(
                "Store has stock balances and cannot be deleted",
                details={"store_id": store_id},
            )
        for balance in balances:
            db.session.delete(balance)
        db.session.flush()

        db.session.delete(store)

    run_in_transaction(_op)


def get_store(store_id: int) -> Store:
    store = db.session.get(Store, store_id)
    if not store:
        raise NotFoundError(f"Store {store_id} not found")
    return store


def list_stores() -> list[Store]:
    return db.session.query(Store).order_by(Store.name.asc()).all()
