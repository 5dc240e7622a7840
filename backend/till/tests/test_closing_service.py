from datetime import date
from decimal import Decimal

import pytest

from till.core.close_flow import CloseState
from till.core.errors import DuplicateClosing, ExceedsAvailable, InvalidState
from till.models.closing import ClosingRecord
from till.models.ledger_entry import LedgerEntry
from till.services import closing_service, credit_service, ledger_service, report_service, safe_service


MONDAY = date(2024, 3, 4)
TUESDAY = date(2024, 3, 5)
SUNDAY = date(2024, 3, 3)
SATURDAY = date(2024, 3, 2)


def _start(db, store, day=TUESDAY, today=TUESDAY):
    return closing_service.start_or_resume_close(db, store.id, day=day, operator="ana", today=today)


def _fill(db, store, session, sales=None, counts=None, digital=None):
    closing_service.advance(db, store.id, session.id, sales or {})
    closing_service.advance(db, store.id, session.id, {"denomination_counts": counts or {}})
    return closing_service.advance(db, store.id, session.id, digital or {})


def _seed_example_day(db, store, day):
    customer = credit_service.create_customer(db, store.id, "Maria")
    ledger_service.append(db, store.id, "expense", Decimal("20.00"), description="limpeza", business_day=day, today=day)
    ledger_service.append(
        db,
        store.id,
        "store_credit",
        Decimal("30.00"),
        linked_customer_id=customer.id,
        business_day=day,
        today=day,
    )


def test_full_close_with_safe_deposit(db, store):
    _seed_example_day(db, store, MONDAY)
    session = _start(db, store, day=MONDAY)
    session = _fill(
        db,
        store,
        session,
        sales={"opening_balance": Decimal("100.00"), "declared_gross_sales": Decimal("500.00")},
        counts={"100": 5, "20": 1},
        digital={"credit": Decimal("30.00")},
    )
    assert session.state == CloseState.summary.value
    assert len(session.snapshot_entry_ids) == 2

    summary = closing_service.summary(db, store.id, session.id)
    figures = summary["figures"]
    assert figures.expected_total == Decimal("550.00")
    assert figures.counted_total == Decimal("550.00")
    assert figures.discrepancy == Decimal("0.00")
    assert summary["balanced"] is True

    session, record = closing_service.confirm_summary(db, store.id, session.id)
    assert record is None
    assert session.state == CloseState.safe_deposit.value

    with pytest.raises(ExceedsAvailable):
        closing_service.confirm_safe_deposit(db, store.id, session.id, Decimal("600.00"))
    assert closing_service.get_closing(db, store.id, MONDAY) is None

    session, record = closing_service.confirm_safe_deposit(db, store.id, session.id, Decimal("400.00"), operator="ana")
    assert session.state == CloseState.closed.value
    assert record.safe_deposit == Decimal("400.00")
    assert record.next_opening_balance == Decimal("120.00")
    assert record.total_expenses == Decimal("20.00")
    assert record.total_store_credit_issued == Decimal("30.00")
    assert record.closed_by == "ana"
    assert record.retroactive is False
    assert ledger_service.list_open_for_day(db, store.id, MONDAY) == []
    assert all(e.closing_record_id == record.id for e in ledger_service.list_for_day(db, store.id, MONDAY))
    assert safe_service.balance(db, store.id) == Decimal("400.00")


def test_opening_balance_is_carried_to_next_day(db, store):
    session = _start(db, store, day=MONDAY)
    _fill(db, store, session, sales={"declared_gross_sales": Decimal("50.00")}, counts={"50": 1})
    closing_service.confirm_summary(db, store.id, session.id)
    closing_service.confirm_safe_deposit(db, store.id, session.id, Decimal("30.00"))

    next_session = _start(db, store, day=TUESDAY)
    assert Decimal(next_session.data["opening_balance"]) == Decimal("20.00")


def test_empty_drawer_skips_safe_deposit(db, store):
    session = _start(db, store)
    _fill(
        db,
        store,
        session,
        sales={"declared_gross_sales": Decimal("80.00")},
        digital={"debit": Decimal("80.00")},
    )
    session, record = closing_service.confirm_summary(db, store.id, session.id)
    assert session.state == CloseState.closed.value
    assert record.safe_deposit == Decimal("0.00")
    assert record.next_opening_balance == Decimal("0.00")
    assert safe_service.list_entries(db, store.id) == []


def test_closing_twice_is_rejected(db, store):
    ledger_service.append(db, store.id, "expense", Decimal("5.00"), business_day=TUESDAY, today=TUESDAY)
    session = _start(db, store)
    _fill(db, store, session, sales={"declared_gross_sales": Decimal("95.00")}, counts={"100": 1})
    closing_service.confirm_summary(db, store.id, session.id)
    session, record = closing_service.confirm_safe_deposit(db, store.id, session.id, Decimal("60.00"))

    columns = [c.name for c in ClosingRecord.__table__.columns]
    before = {name: getattr(record, name) for name in columns}
    sealed = [(e.id, e.closed, e.closing_record_id) for e in ledger_service.list_for_day(db, store.id, TUESDAY)]
    safe_before = safe_service.balance(db, store.id)

    with pytest.raises(DuplicateClosing):
        closing_service.confirm_summary(db, store.id, session.id)
    with pytest.raises(DuplicateClosing):
        closing_service.confirm_safe_deposit(db, store.id, session.id, Decimal("10.00"))
    with pytest.raises(DuplicateClosing):
        _start(db, store)

    db.refresh(record)
    assert {name: getattr(record, name) for name in columns} == before
    assert [(e.id, e.closed, e.closing_record_id) for e in ledger_service.list_for_day(db, store.id, TUESDAY)] == sealed
    assert safe_service.balance(db, store.id) == safe_before == Decimal("60.00")
    assert len(safe_service.list_entries(db, store.id)) == 1
    assert closing_service.get_session(db, store.id, session.id).state == CloseState.closed.value
    assert len(closing_service.list_closings(db, store.id, 3, 2024)) == 1


def test_failed_commit_leaves_the_day_open(db, store, monkeypatch):
    first = ledger_service.append(db, store.id, "expense", Decimal("5.00"), business_day=TUESDAY, today=TUESDAY)["entry"]
    ledger_service.append(db, store.id, "expense", Decimal("3.00"), business_day=TUESDAY, today=TUESDAY)
    session = _start(db, store)
    _fill(db, store, session, sales={"declared_gross_sales": Decimal("100.00")}, counts={"100": 1})
    session, _ = closing_service.confirm_summary(db, store.id, session.id)
    assert session.state == CloseState.safe_deposit.value

    seal = ledger_service.mark_closed

    def seal_after_concurrent_close(db, store_id, entry_ids, closing_record_id):
        # Another close-out seals one entry first
        db.query(LedgerEntry).filter(LedgerEntry.id == first.id).update(
            {LedgerEntry.closed: True}, synchronize_session=False
        )
        return seal(db, store_id, entry_ids, closing_record_id)

    monkeypatch.setattr(ledger_service, "mark_closed", seal_after_concurrent_close)
    with pytest.raises(InvalidState):
        closing_service.confirm_safe_deposit(db, store.id, session.id, Decimal("50.00"))

    assert closing_service.get_closing(db, store.id, TUESDAY) is None
    assert safe_service.list_entries(db, store.id) == []
    assert all(not e.closed and e.closing_record_id is None for e in ledger_service.list_for_day(db, store.id, TUESDAY))
    assert closing_service.get_session(db, store.id, session.id).state == CloseState.safe_deposit.value

    monkeypatch.undo()
    _, record = closing_service.confirm_safe_deposit(db, store.id, session.id, Decimal("50.00"))
    assert record.total_expenses == Decimal("8.00")


def test_session_is_resumed(db, store):
    first = _start(db, store)
    closing_service.advance(db, store.id, first.id, {"declared_gross_sales": Decimal("10.00")})
    again = _start(db, store)
    assert again.id == first.id
    assert again.state == CloseState.cash.value


def test_prefill_from_entries(db, store):
    ledger_service.append(db, store.id, "uncataloged_sale", Decimal("15.00"), business_day=TUESDAY, today=TUESDAY)
    ledger_service.append(db, store.id, "direct_deposit", Decimal("40.00"), business_day=TUESDAY, today=TUESDAY)
    session = _start(db, store)
    assert Decimal(session.data["extra_cash_received"]) == Decimal("15.00")
    assert Decimal(session.data["direct_pix"]) == Decimal("40.00")


def test_prefill_follows_entries_added_during_the_wizard(db, store):
    ledger_service.append(db, store.id, "uncataloged_sale", Decimal("15.00"), business_day=TUESDAY, today=TUESDAY)
    session = _start(db, store)
    closing_service.advance(db, store.id, session.id, {"declared_gross_sales": Decimal("50.00")})
    ledger_service.append(db, store.id, "uncataloged_sale", Decimal("10.00"), business_day=TUESDAY, today=TUESDAY)
    ledger_service.append(db, store.id, "direct_deposit", Decimal("5.00"), business_day=TUESDAY, today=TUESDAY)
    closing_service.advance(db, store.id, session.id, {"denomination_counts": {}})
    session = closing_service.advance(db, store.id, session.id, {})

    assert session.state == CloseState.summary.value
    assert Decimal(session.data["extra_cash_received"]) == Decimal("25.00")
    assert Decimal(session.data["direct_pix"]) == Decimal("5.00")


def test_operator_override_survives_later_entries(db, store):
    ledger_service.append(db, store.id, "uncataloged_sale", Decimal("15.00"), business_day=TUESDAY, today=TUESDAY)
    session = _start(db, store)
    closing_service.advance(db, store.id, session.id, {"extra_cash_received": Decimal("12.00")})
    ledger_service.append(db, store.id, "uncataloged_sale", Decimal("10.00"), business_day=TUESDAY, today=TUESDAY)
    closing_service.advance(db, store.id, session.id, {"denomination_counts": {}})
    session = closing_service.advance(db, store.id, session.id, {})

    assert Decimal(session.data["extra_cash_received"]) == Decimal("12.00")


def test_entry_added_after_summary_is_sealed_too(db, store):
    session = _start(db, store)
    _fill(db, store, session, sales={"declared_gross_sales": Decimal("100.00")}, counts={"100": 1})
    late = ledger_service.append(db, store.id, "expense", Decimal("7.00"), business_day=TUESDAY, today=TUESDAY)["entry"]

    closing_service.confirm_summary(db, store.id, session.id)
    _, record = closing_service.confirm_safe_deposit(db, store.id, session.id, Decimal("0"))

    assert record.total_expenses == Decimal("7.00")
    assert record.discrepancy == Decimal("7.00")
    db.refresh(late)
    assert late.closed is True


def test_entries_after_close_are_refused(db, store):
    session = _start(db, store)
    _fill(db, store, session, sales={"declared_gross_sales": Decimal("10.00")}, digital={"debit": Decimal("10.00")})
    closing_service.confirm_summary(db, store.id, session.id)
    with pytest.raises(InvalidState):
        ledger_service.append(db, store.id, "expense", Decimal("1.00"), business_day=TUESDAY, today=TUESDAY)


def test_step_rejects_fields_of_other_steps(db, store):
    session = _start(db, store)
    with pytest.raises(InvalidState):
        closing_service.advance(db, store.id, session.id, {"credit": Decimal("5")})
    with pytest.raises(InvalidState):
        closing_service.back(db, store.id, session.id)
    with pytest.raises(InvalidState):
        closing_service.confirm_summary(db, store.id, session.id)


def test_future_day_cannot_be_closed(db, store):
    with pytest.raises(InvalidState):
        _start(db, store, day=date(2024, 3, 6), today=TUESDAY)


def test_retroactive_sales(db, store):
    record = closing_service.record_retroactive_sales(db, store.id, SATURDAY, Decimal("900.00"), today=TUESDAY)
    assert record.retroactive is True
    assert record.declared_gross_sales == Decimal("900.00")
    assert record.expected_total == Decimal("0.00")
    assert record.next_opening_balance == Decimal("0.00")

    with pytest.raises(DuplicateClosing):
        closing_service.record_retroactive_sales(db, store.id, SATURDAY, Decimal("1.00"), today=TUESDAY)
    with pytest.raises(InvalidState):
        closing_service.record_retroactive_sales(db, store.id, SUNDAY, Decimal("1.00"), today=TUESDAY)
    with pytest.raises(InvalidState):
        closing_service.record_retroactive_sales(db, store.id, TUESDAY, Decimal("1.00"), today=TUESDAY)


def test_retroactive_close_seals_the_day_entries(db, store):
    entry = ledger_service.append(db, store.id, "expense", Decimal("20.00"), business_day=MONDAY, today=MONDAY)["entry"]
    record = closing_service.record_retroactive_sales(db, store.id, MONDAY, Decimal("300.00"), today=TUESDAY)

    db.refresh(entry)
    assert entry.closed is True
    assert entry.closing_record_id == record.id
    assert ledger_service.list_open_for_day(db, store.id, MONDAY) == []
    with pytest.raises(InvalidState):
        ledger_service.update(db, store.id, entry.id, {"amount": Decimal("999.00")})
    with pytest.raises(InvalidState):
        ledger_service.delete(db, store.id, entry.id)
    db.refresh(entry)
    assert entry.amount == Decimal("20.00")


def test_retroactive_day_does_not_break_the_carry(db, store):
    session = _start(db, store, day=SATURDAY, today=SATURDAY)
    _fill(db, store, session, sales={"declared_gross_sales": Decimal("20.00")}, counts={"20": 1})
    closing_service.confirm_summary(db, store.id, session.id)
    closing_service.confirm_safe_deposit(db, store.id, session.id, Decimal("0"))
    closing_service.record_retroactive_sales(db, store.id, MONDAY, Decimal("300.00"), today=TUESDAY)

    session = _start(db, store)
    assert Decimal(session.data["opening_balance"]) == Decimal("20.00")


def test_reports(db, store):
    _seed_example_day(db, store, MONDAY)
    ledger_service.append(db, store.id, "uncataloged_sale", Decimal("12.00"), business_day=MONDAY, today=MONDAY)
    totals = report_service.daily_totals(db, store.id, MONDAY)
    assert totals["by_category"]["expense"] == Decimal("20.00")
    assert totals["total_outflows"] == Decimal("20.00")
    assert totals["total_inflows"] == Decimal("42.00")
    assert totals["net_movement"] == Decimal("22.00")
    assert totals["closed"] is False

    closing_service.record_retroactive_sales(db, store.id, SATURDAY, Decimal("900.00"), today=TUESDAY)
    history = report_service.monthly_history(db, store.id, 3, 2024)
    assert history["totals"]["days_closed"] == 1
    assert history["totals"]["declared_gross_sales"] == Decimal("900.00")
