from decimal import Decimal

import pytest

from till.core.errors import InsufficientStock, InvalidAmount
from till.services import consignment_service


@pytest.fixture()
def supplier(db, store):
    return consignment_service.create_supplier(db, store.id, "Doces da Vila", pix_key="vila@pix")


def _product(db, store, supplier, name, qty, cost="2.00", price="3.50"):
    return consignment_service.create_product(
        db, store.id, supplier.id, name, Decimal(cost), Decimal(price), initial_qty=qty
    )


def test_sale_moves_stock_to_sold(db, store, supplier):
    product = _product(db, store, supplier, "Brigadeiro", 10)
    consignment_service.record_sale(db, store.id, [{"product_id": product.id, "qty": 4}])
    db.refresh(product)
    assert product.current_stock == 6
    assert product.sold_qty == 4


def test_insufficient_stock_leaves_stock_untouched(db, store, supplier):
    product = _product(db, store, supplier, "Brigadeiro", 3)
    with pytest.raises(InsufficientStock):
        consignment_service.record_sale(db, store.id, [{"product_id": product.id, "qty": 5}])
    db.refresh(product)
    assert product.current_stock == 3
    assert product.sold_qty == 0


def test_sale_is_all_or_nothing(db, store, supplier):
    plenty = _product(db, store, supplier, "Bala", 10)
    scarce = _product(db, store, supplier, "Pe de moleque", 3)
    with pytest.raises(InsufficientStock):
        consignment_service.record_sale(
            db,
            store.id,
            [{"product_id": plenty.id, "qty": 2}, {"product_id": scarce.id, "qty": 5}],
        )
    db.refresh(plenty)
    assert plenty.current_stock == 10
    assert plenty.sold_qty == 0


def test_repeated_items_are_merged_before_the_stock_check(db, store, supplier):
    product = _product(db, store, supplier, "Bala", 3)
    with pytest.raises(InsufficientStock):
        consignment_service.record_sale(
            db,
            store.id,
            [{"product_id": product.id, "qty": 2}, {"product_id": product.id, "qty": 2}],
        )


@pytest.mark.parametrize("items", [[], [{"product_id": 1, "qty": 0}], [{"product_id": 1, "qty": -1}]])
def test_invalid_quantities(db, store, supplier, items):
    _product(db, store, supplier, "Bala", 3)
    with pytest.raises(InvalidAmount):
        consignment_service.record_sale(db, store.id, items)


def test_settlement_amount_and_settle_scope(db, store, supplier):
    other = consignment_service.create_supplier(db, store.id, "Mel do Sitio")
    a = _product(db, store, supplier, "Brigadeiro", 10, cost="2.00")
    b = _product(db, store, supplier, "Beijinho", 10, cost="1.50")
    c = _product(db, store, other, "Mel", 10, cost="12.00")
    consignment_service.record_sale(
        db,
        store.id,
        [
            {"product_id": a.id, "qty": 3},
            {"product_id": b.id, "qty": 2},
            {"product_id": c.id, "qty": 1},
        ],
    )

    assert consignment_service.settlement_amount(db, store.id, supplier.id) == Decimal("9.00")

    changed = consignment_service.settle(db, store.id, supplier.id)
    assert changed == 2
    for product in (a, b, c):
        db.refresh(product)
    assert a.sold_qty == 0
    assert b.sold_qty == 0
    assert c.sold_qty == 1
    assert a.current_stock == 7
    assert consignment_service.settlement_amount(db, store.id, supplier.id) == Decimal("0.00")


def test_supplier_summary(db, store, supplier):
    product = _product(db, store, supplier, "Brigadeiro", 10, cost="2.00", price="3.50")
    consignment_service.record_sale(db, store.id, [{"product_id": product.id, "qty": 2}])

    [summary] = consignment_service.list_suppliers(db, store.id)
    assert summary["total_debt"] == Decimal("4.00")
    assert summary["total_stock_value"] == Decimal("28.00")
    assert summary["product_count"] == 1


def test_manual_adjustment(db, store, supplier):
    product = _product(db, store, supplier, "Brigadeiro", 10)
    product = consignment_service.adjust_product(db, store.id, product.id, {"current_stock": 12, "active": False})
    assert product.current_stock == 12
    assert product.active is False
    with pytest.raises(InvalidAmount):
        consignment_service.adjust_product(db, store.id, product.id, {"sold_qty": -1})


def test_sale_checks_the_supplier_before_moving_stock(db, store, supplier):
    other = consignment_service.create_supplier(db, store.id, "Mel do Sitio")
    own = _product(db, store, supplier, "Brigadeiro", 10)
    foreign = _product(db, store, other, "Mel", 10)

    with pytest.raises(InvalidAmount):
        consignment_service.record_sale(
            db,
            store.id,
            [{"product_id": own.id, "qty": 1}, {"product_id": foreign.id, "qty": 1}],
            supplier_id=supplier.id,
        )
    db.refresh(own)
    assert own.current_stock == 10
    with pytest.raises(InvalidAmount):
        consignment_service.sale_value(db, store.id, [{"product_id": foreign.id, "qty": 1}], supplier_id=supplier.id)
