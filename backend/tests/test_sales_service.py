"""
Sales workflow tests: stock pre-check, OUT movements, returns, status override.
"""

import pytest

from stockledger.errors import InsufficientStockError, NotFoundError, ValidationError
from stockledger.models import Sale, SaleItem, StockMovement
from stockledger.models.stock import MOVEMENT_IN, MOVEMENT_OUT
from stockledger.services import sales_service
from stockledger.services.stock_service import current_stock

from conftest import movements_for


CUSTOMER = ("Jane Doe", "+1 555 0100", "1 Main Street")


def _sell(lines):
    return sales_service.create_sale(*CUSTOMER, lines)


def test_create_sale_writes_out_movements(db_session, widget, gadget, store, stock_in):
    stock_in(widget.id, store.id, 10)
    stock_in(gadget.id, store.id, 5)

    sale = _sell([
        {"product_id": widget.id, "store_id": store.id, "quantity": 3, "unit_price": 15},
        {"product_id": gadget.id, "store_id": store.id, "quantity": 2, "unit_price": 7.5},
    ])

    assert sale.status == "completed"
    assert sale.total_amount == 3 * 15 + 2 * 7.5
    assert [line.quantity for line in sale.items] == [3, 2]
    assert current_stock(widget.id, store.id) == 7
    assert current_stock(gadget.id, store.id) == 3

    movements = movements_for(f"SALE-{sale.id}")
    assert [(m.type, m.product_id, m.quantity) for m in movements] == [
        (MOVEMENT_OUT, widget.id, 3),
        (MOVEMENT_OUT, gadget.id, 2),
    ]


def test_insufficient_stock_rejects_whole_sale(db_session, widget, gadget, store, stock_in):
    stock_in(widget.id, store.id, 10)
    stock_in(gadget.id, store.id, 1)

    with pytest.raises(InsufficientStockError) as excinfo:
        _sell([
            {"product_id": widget.id, "store_id": store.id, "quantity": 3, "unit_price": 15},
            {"product_id": gadget.id, "store_id": store.id, "quantity": 2, "unit_price": 7.5},
        ])

    err = excinfo.value
    assert (err.product_id, err.store_id, err.available, err.requested) == (gadget.id, store.id, 1, 2)
    assert db_session.query(Sale).count() == 0
    assert db_session.query(SaleItem).count() == 0
    assert db_session.query(StockMovement).filter_by(type=MOVEMENT_OUT).count() == 0
    assert current_stock(widget.id, store.id) == 10


def test_lines_for_same_product_are_checked_together(db_session, widget, store, stock_in):
    stock_in(widget.id, store.id, 5)

    with pytest.raises(InsufficientStockError) as excinfo:
        _sell([
            {"product_id": widget.id, "store_id": store.id, "quantity": 3, "unit_price": 1},
            {"product_id": widget.id, "store_id": store.id, "quantity": 3, "unit_price": 1},
        ])
    assert excinfo.value.requested == 6
    assert current_stock(widget.id, store.id) == 5


def test_stock_at_other_store_does_not_count(db_session, widget, store, branch, stock_in):
    stock_in(widget.id, branch.id, 10)

    with pytest.raises(InsufficientStockError):
        _sell([{"product_id": widget.id, "store_id": store.id, "quantity": 1, "unit_price": 1}])


@pytest.mark.parametrize("customer", [
    ("", "+1", "Street"),
    ("Jane", None, "Street"),
    ("Jane", "+1", "   "),
])
def test_customer_fields_required(db_session, widget, store, customer):
    with pytest.raises(ValidationError):
        sales_service.create_sale(*customer, [
            {"product_id": widget.id, "store_id": store.id, "quantity": 1, "unit_price": 1},
        ])


@pytest.mark.parametrize("lines", [
    [],
    None,
    [{"product_id": 1, "store_id": 1, "quantity": 0}],
    [{"product_id": 1, "quantity": 1}],
])
def test_sale_lines_validation(db_session, lines):
    with pytest.raises(ValidationError):
        _sell(lines)


def test_sale_with_unknown_product_is_validation_error(db_session, store):
    with pytest.raises(ValidationError):
        _sell([{"product_id": 9999, "store_id": store.id, "quantity": 1, "unit_price": 1}])


def test_return_items_restocks_and_reduces_line(db_session, widget, store, stock_in):
    stock_in(widget.id, store.id, 10)
    sale = _sell([{"product_id": widget.id, "store_id": store.id, "quantity": 4, "unit_price": 15}])
    line_id = sale.items[0].id

    sale = sales_service.return_items(sale.id, [{"item_id": line_id, "quantity": 1.5}])

    assert sale.items[0].quantity == 2.5
    assert sale.total_amount == 60
    assert current_stock(widget.id, store.id) == 7.5
    movements = movements_for(f"RETURN-{sale.id}")
    assert [(m.type, m.quantity) for m in movements] == [(MOVEMENT_IN, 1.5)]


def test_return_limit_uses_current_line_quantity(db_session, widget, store, stock_in):
    stock_in(widget.id, store.id, 10)
    sale = _sell([{"product_id": widget.id, "store_id": store.id, "quantity": 4, "unit_price": 1}])
    line_id = sale.items[0].id

    sales_service.return_items(sale.id, [{"item_id": line_id, "quantity": 3}])
    with pytest.raises(ValidationError):
        sales_service.return_items(sale.id, [{"item_id": line_id, "quantity": 2}])

    db_session.expire_all()
    assert db_session.get(SaleItem, line_id).quantity == 1
    assert current_stock(widget.id, store.id) == 9


def test_return_skips_lines_from_other_sales(db_session, widget, store, stock_in):
    stock_in(widget.id, store.id, 10)
    sale = _sell([{"product_id": widget.id, "store_id": store.id, "quantity": 2, "unit_price": 1}])
    other = _sell([{"product_id": widget.id, "store_id": store.id, "quantity": 2, "unit_price": 1}])

    sale = sales_service.return_items(sale.id, [
        {"item_id": other.items[0].id, "quantity": 1},
        {"item_id": sale.items[0].id, "quantity": 1},
    ])

    assert sale.items[0].quantity == 1
    assert db_session.get(SaleItem, other.items[0].id).quantity == 2
    assert current_stock(widget.id, store.id) == 7


def test_return_validation(db_session, widget, store, stock_in):
    stock_in(widget.id, store.id, 10)
    sale = _sell([{"product_id": widget.id, "store_id": store.id, "quantity": 2, "unit_price": 1}])

    with pytest.raises(ValidationError):
        sales_service.return_items(sale.id, [])
    with pytest.raises(ValidationError):
        sales_service.return_items(sale.id, [{"item_id": sale.items[0].id, "quantity": 0}])
    with pytest.raises(NotFoundError):
        sales_service.return_items(9999, [{"item_id": 1, "quantity": 1}])


def test_update_status_is_free_text_override(db_session, widget, store, stock_in):
    stock_in(widget.id, store.id, 10)
    sale = _sell([{"product_id": widget.id, "store_id": store.id, "quantity": 2, "unit_price": 1}])

    sale = sales_service.update_status(sale.id, "refunded")
    assert sale.status == "refunded"
    assert current_stock(widget.id, store.id) == 8

    with pytest.raises(ValidationError):
        sales_service.update_status(sale.id, " ")
    with pytest.raises(NotFoundError):
        sales_service.update_status(9999, "completed")


def test_sale_reads(db_session, widget, store, stock_in):
    stock_in(widget.id, store.id, 10)
    sale = _sell([{"product_id": widget.id, "store_id": store.id, "quantity": 2, "unit_price": 3}])

    data = sales_service.get_sale(sale.id).to_dict()
    assert data["customer_name"] == "Jane Doe"
    assert data["items"][0]["name"] == "Widget"
    assert data["items"][0]["unit_price"] == 3
    assert [s.id for s in sales_service.list_sales()] == [sale.id]
    with pytest.raises(NotFoundError):
        sales_service.get_sale(9999)
