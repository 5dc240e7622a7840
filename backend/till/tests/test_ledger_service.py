from datetime import date, timedelta
from decimal import Decimal

import pytest

from till.core.errors import InsufficientStock, InvalidAmount, InvalidState
from till.models.closing import ClosingRecord
from till.models.customer import CustomerDebt, DebtStatus
from till.models.delivery_sale import DeliveryPlatformSale
from till.services import closing_service, consignment_service, credit_service, ledger_service


TODAY = date(2024, 3, 5)


@pytest.fixture()
def customer(db, store):
    return credit_service.create_customer(db, store.id, "Maria")


@pytest.fixture()
def supplier(db, store):
    return consignment_service.create_supplier(db, store.id, "Doces da Vila")


def _append(db, store, category, amount=None, **kwargs):
    kwargs.setdefault("today", TODAY)
    return ledger_service.append(db, store.id, category, amount=amount, **kwargs)


def test_append_and_list(db, store):
    result = _append(db, store, "expense", Decimal("20.00"), description="  cafe ")
    entry = result["entry"]
    assert entry.business_day == TODAY
    assert entry.description == "cafe"
    assert entry.closed is False
    assert result["credit_quote"] is None
    assert [e.id for e in ledger_service.list_open_for_day(db, store.id, TODAY)] == [entry.id]
    assert ledger_service.list_open_for_day(db, store.id, TODAY - timedelta(days=1)) == []


@pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-1")])
def test_amount_must_be_positive(db, store, amount):
    with pytest.raises(InvalidAmount):
        _append(db, store, "expense", amount)


def test_link_rules(db, store, customer, supplier):
    with pytest.raises(InvalidAmount):
        _append(db, store, "store_credit", Decimal("10"))
    with pytest.raises(InvalidAmount):
        _append(db, store, "expense", Decimal("10"), linked_customer_id=customer.id)
    with pytest.raises(InvalidAmount):
        _append(db, store, "expense", Decimal("10"), linked_supplier_id=supplier.id)
    with pytest.raises(InvalidAmount):
        _append(db, store, "consignment_settlement", Decimal("10"))


def test_store_credit_creates_debt_and_warns_over_limit(db, store, customer):
    result = _append(db, store, "store_credit", Decimal("200.00"), linked_customer_id=customer.id)

    assert result["credit_quote"]["would_exceed_limit"] is True
    debt = credit_service.debt_for_entry(db, store.id, result["entry"].id)
    assert debt.total_value == Decimal("200.00")
    assert debt.purchase_date == TODAY
    assert debt.status == DebtStatus.pending.value


def test_store_credit_amount_edit_is_mirrored(db, store, customer):
    entry = _append(db, store, "store_credit", Decimal("30.00"), linked_customer_id=customer.id)["entry"]
    ledger_service.update(db, store.id, entry.id, {"amount": Decimal("45.00")})
    debt = credit_service.debt_for_entry(db, store.id, entry.id)
    assert debt.total_value == Decimal("45.00")


def test_store_credit_edit_keeps_partial_payments(db, store, customer):
    entry = _append(db, store, "store_credit", Decimal("100.00"), linked_customer_id=customer.id)["entry"]
    debt = credit_service.debt_for_entry(db, store.id, entry.id)
    credit_service.partial_payment(db, store.id, debt.id, Decimal("40.00"))

    ledger_service.update(db, store.id, entry.id, {"amount": Decimal("90.00")})
    db.refresh(debt)
    assert debt.total_value == Decimal("50.00")
    assert debt.status == DebtStatus.pending.value

    with pytest.raises(InvalidAmount):
        ledger_service.update(db, store.id, entry.id, {"amount": Decimal("30.00")})
    db.refresh(debt)
    db.refresh(entry)
    assert debt.total_value == Decimal("50.00")
    assert entry.amount == Decimal("90.00")

    ledger_service.update(db, store.id, entry.id, {"amount": Decimal("40.00")})
    db.refresh(debt)
    assert debt.total_value == Decimal("0.00")
    assert debt.status == DebtStatus.paid.value


def test_store_credit_with_paid_debt_is_frozen(db, store, customer):
    entry = _append(db, store, "store_credit", Decimal("30.00"), linked_customer_id=customer.id)["entry"]
    debt = credit_service.debt_for_entry(db, store.id, entry.id)
    credit_service.mark_paid(db, store.id, debt.id)

    with pytest.raises(InvalidState):
        ledger_service.update(db, store.id, entry.id, {"amount": Decimal("10.00")})
    with pytest.raises(InvalidState):
        ledger_service.delete(db, store.id, entry.id)


def test_delete_store_credit_removes_debt(db, store, customer):
    entry = _append(db, store, "store_credit", Decimal("30.00"), linked_customer_id=customer.id)["entry"]
    ledger_service.delete(db, store.id, entry.id)
    assert db.query(CustomerDebt).count() == 0
    assert ledger_service.list_for_day(db, store.id, TODAY) == []


def test_closed_entries_are_immutable(db, store):
    entry = _append(db, store, "expense", Decimal("20.00"))["entry"]
    entry.closed = True
    db.commit()

    with pytest.raises(InvalidState):
        ledger_service.update(db, store.id, entry.id, {"description": "x"})
    with pytest.raises(InvalidState):
        ledger_service.delete(db, store.id, entry.id)


def test_cannot_append_to_a_closed_day(db, store):
    yesterday = TODAY - timedelta(days=1)
    closing_service.record_retroactive_sales(db, store.id, yesterday, Decimal("300"), today=TODAY)
    with pytest.raises(InvalidState):
        _append(db, store, "expense", Decimal("5"), business_day=yesterday)


def test_consignment_sale_defaults_to_sale_value(db, store, supplier):
    product = consignment_service.create_product(
        db, store.id, supplier.id, "Brigadeiro", Decimal("2.00"), Decimal("3.50"), initial_qty=10
    )
    entry = _append(
        db,
        store,
        "consignment_sale",
        linked_supplier_id=supplier.id,
        items=[{"product_id": product.id, "qty": 4}],
    )["entry"]

    assert entry.amount == Decimal("14.00")
    db.refresh(product)
    assert product.current_stock == 6
    assert product.sold_qty == 4


def test_failed_side_effect_rolls_back_the_entry(db, store, supplier):
    product = consignment_service.create_product(
        db, store.id, supplier.id, "Brigadeiro", Decimal("2.00"), Decimal("3.50"), initial_qty=3
    )
    with pytest.raises(InsufficientStock):
        _append(
            db,
            store,
            "consignment_sale",
            linked_supplier_id=supplier.id,
            items=[{"product_id": product.id, "qty": 5}],
        )
    assert ledger_service.list_for_day(db, store.id, TODAY) == []
    db.refresh(product)
    assert product.current_stock == 3


def test_settlement_entry_pays_and_resets(db, store, supplier):
    product = consignment_service.create_product(
        db, store.id, supplier.id, "Brigadeiro", Decimal("2.00"), Decimal("3.50"), initial_qty=10
    )
    consignment_service.record_sale(db, store.id, [{"product_id": product.id, "qty": 3}])

    entry = _append(db, store, "consignment_settlement", linked_supplier_id=supplier.id)["entry"]

    assert entry.amount == Decimal("6.00")
    assert entry.is_outflow
    db.refresh(product)
    assert product.sold_qty == 0


def test_delivery_entry_schedules_payout(db, store):
    entry = _append(db, store, "delivery_platform_sale", Decimal("100.00"), fee_percent=Decimal("10"))["entry"]
    sale = db.query(DeliveryPlatformSale).filter(DeliveryPlatformSale.ledger_entry_id == entry.id).one()
    assert sale.sale_date == TODAY
    assert sale.net_value == Decimal("90.00")

    ledger_service.update(db, store.id, entry.id, {"amount": Decimal("200.00")})
    db.refresh(sale)
    assert sale.gross_value == Decimal("200.00")
    assert sale.net_value == Decimal("180.00")


def test_entries_of_a_closed_day_are_frozen_even_if_unsealed(db, store):
    entry = _append(db, store, "expense", Decimal("20.00"))["entry"]
    db.add(ClosingRecord(store_id=store.id, business_day=TODAY, closed_by="ana"))
    db.commit()

    with pytest.raises(InvalidState):
        ledger_service.update(db, store.id, entry.id, {"amount": Decimal("999.00")})
    with pytest.raises(InvalidState):
        ledger_service.delete(db, store.id, entry.id)
    db.refresh(entry)
    assert entry.amount == Decimal("20.00")


def test_consignment_sale_rejects_other_suppliers_products(db, store, supplier):
    other = consignment_service.create_supplier(db, store.id, "Mel do Sitio")
    honey = consignment_service.create_product(
        db, store.id, other.id, "Mel", Decimal("4.00"), Decimal("5.00"), initial_qty=10
    )
    items = [{"product_id": honey.id, "qty": 3}]

    with pytest.raises(InvalidAmount):
        _append(db, store, "consignment_sale", linked_supplier_id=supplier.id, items=items)
    with pytest.raises(InvalidAmount):
        _append(db, store, "consignment_sale", Decimal("15.00"), linked_supplier_id=supplier.id, items=items)

    db.refresh(honey)
    assert honey.current_stock == 10
    assert honey.sold_qty == 0
    assert ledger_service.list_for_day(db, store.id, TODAY) == []
    assert consignment_service.settlement_amount(db, store.id, other.id) == Decimal("0.00")
