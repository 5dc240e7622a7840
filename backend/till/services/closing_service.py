"""
Till reconciliation engine (daily close-out).

The engine keeps no state between calls: the wizard lives in a CloseSession
row looked up by id, and every call loads it, applies one transition from
``till.core.close_flow`` and saves it back.

Committing a close-out is a single transaction: the day's open entries are
re-read, totals are recomputed from exactly that set, the ClosingRecord is
inserted, the entries are sealed under it and a positive safe deposit is
booked in the vault. Any failure rolls all of it back.
"""
from __future__ import annotations

import logging
import uuid
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from till.core.business_day import is_rest_day, local_today, month_bounds
from till.core.close_flow import CloseEvent, CloseState, resolve
from till.core.errors import DuplicateClosing, InvalidAmount, InvalidState, NotFound
from till.core.money import ZERO, money, money_sum
from till.core.reconciliation import (
    CloseFigures,
    CloseInputs,
    compute_figures,
    next_opening_balance,
    validate_safe_deposit,
)
from till.models.closing import ClosingRecord, CloseSession
from till.models.ledger_entry import EntryCategory, LedgerEntry, OUTFLOW_CATEGORIES
from till.services import ledger_service, safe_service


logger = logging.getLogger(__name__)


# Fields each input step accepts
STEP_FIELDS: Dict[CloseState, Tuple[str, ...]] = {
    CloseState.sales: ("opening_balance", "declared_gross_sales", "extra_cash_received"),
    CloseState.cash: ("denomination_counts",),
    CloseState.digital: ("credit", "debit", "card_pix", "direct_pix"),
}

# Inflows not in the POS sales report but physically in the drawer
EXTRA_CASH_CATEGORIES = {EntryCategory.uncataloged_sale, EntryCategory.consignment_sale}

# Wizard fields pre-filled from the day's entries
PREFILL_SOURCES = {
    "extra_cash_received": EXTRA_CASH_CATEGORIES,
    "direct_pix": {EntryCategory.direct_deposit},
}


def entry_totals(entries: Iterable[LedgerEntry]) -> Tuple[Decimal, Decimal]:
    """(total expenses, total store credit issued) for a set of entries."""
    entries = list(entries)
    expenses = money_sum(
        e.amount for e in entries if EntryCategory(e.category) in OUTFLOW_CATEGORIES
    )
    store_credit = money_sum(
        e.amount for e in entries if e.category == EntryCategory.store_credit.value
    )
    return expenses, store_credit


def _category_sum(entries: Iterable[LedgerEntry], categories) -> Decimal:
    values = {c.value for c in categories}
    return money_sum(e.amount for e in entries if e.category in values)


def _prefill_values(entries: Iterable[LedgerEntry]) -> Dict[str, str]:
    entries = list(entries)
    return {field: str(_category_sum(entries, categories)) for field, categories in PREFILL_SOURCES.items()}


def get_closing(db: Session, store_id: int, day: date) -> Optional[ClosingRecord]:
    return db.query(ClosingRecord).filter(
        ClosingRecord.store_id == store_id,
        ClosingRecord.business_day == day,
    ).first()


def _ensure_not_closed(db: Session, store_id: int, day: date) -> None:
    if get_closing(db, store_id, day) is not None:
        raise DuplicateClosing(f"Business day {day.isoformat()} is already closed")


def carried_opening_balance(db: Session, store_id: int, day: date) -> Decimal:
    """next_opening_balance of the latest regular close before ``day``."""
    previous = db.query(ClosingRecord).filter(
        ClosingRecord.store_id == store_id,
        ClosingRecord.business_day < day,
        ClosingRecord.retroactive.is_(False),
    ).order_by(ClosingRecord.business_day.desc()).first()
    if previous is None:
        return ZERO
    return money(previous.next_opening_balance)


def get_session(db: Session, store_id: int, session_id: str) -> CloseSession:
    session = db.query(CloseSession).filter(
        CloseSession.id == session_id,
        CloseSession.store_id == store_id,
    ).first()
    if not session:
        raise NotFound(f"Close-out session {session_id} not found")
    return session


def _inputs(session: CloseSession) -> CloseInputs:
    return CloseInputs.from_data(session.data or {})


def start_or_resume_close(
    db: Session,
    store_id: int,
    day: Optional[date] = None,
    operator: Optional[str] = None,
    today: Optional[date] = None,
) -> CloseSession:
    """
    Return the open close-out session for the day, or start one with the
    opening balance carried from the previous close and the extra cash and
    direct Pix pre-filled from the day's entries.
    """
    today = today or local_today()
    day = day or today
    if day > today:
        raise InvalidState("Cannot close a future business day")
    _ensure_not_closed(db, store_id, day)

    session = db.query(CloseSession).filter(
        CloseSession.store_id == store_id,
        CloseSession.business_day == day,
        CloseSession.state != CloseState.closed.value,
    ).order_by(CloseSession.created_at.desc()).first()
    if session is not None:
        logger.info("Resuming close-out %s for %s at step %s", session.id, day, session.state)
        return session

    prefill = _prefill_values(ledger_service.list_open_for_day(db, store_id, day))
    data = CloseInputs(opening_balance=carried_opening_balance(db, store_id, day)).to_data()
    data.update(prefill)
    # Last values taken from the entries; tells an operator override apart
    data["prefill"] = dict(prefill)
    session = CloseSession(
        id=str(uuid.uuid4()),
        store_id=store_id,
        business_day=day,
        state=CloseState.sales.value,
        data=data,
        operator=operator,
    )
    db.add(session)
    db.commit()
    db.refresh(session)
    logger.info("Started close-out %s for %s", session.id, day)
    return session


def _apply_values(session: CloseSession, values: Mapping[str, Any]) -> None:
    state = CloseState(session.state)
    allowed = STEP_FIELDS.get(state, ())
    unknown = set(values) - set(allowed)
    if unknown:
        raise InvalidState(f"Step '{state.value}' does not accept: {', '.join(sorted(unknown))}")

    data = dict(session.data or {})
    for key, value in values.items():
        if key == "denomination_counts":
            data[key] = value
            continue
        if money(value) < 0:
            raise InvalidAmount(f"{key} cannot be negative")
        data[key] = str(money(value))
    # Validates counts and amounts before anything is stored
    validated = CloseInputs.from_data(data).to_data()
    validated["prefill"] = data.get("prefill") or {}
    session.data = validated


def _refresh_prefill(session: CloseSession, entries: List[LedgerEntry]) -> None:
    """Re-derive pre-filled fields from the entries unless the operator changed them."""
    data = dict(session.data or {})
    prefill = dict(data.get("prefill") or {})
    for field, value in _prefill_values(entries).items():
        if field in prefill and money(data.get(field)) == money(prefill[field]):
            if money(value) != money(prefill[field]):
                logger.info("Close-out %s: %s refreshed %s -> %s", session.id, field, prefill[field], value)
            data[field] = value
            prefill[field] = value
    data["prefill"] = dict(prefill)
    session.data = data


def advance(
    db: Session,
    store_id: int,
    session_id: str,
    values: Optional[Mapping[str, Any]] = None,
) -> CloseSession:
    """Store the values typed in the current step and move to the next one."""
    session = get_session(db, store_id, session_id)
    transition = resolve(CloseState(session.state), CloseEvent.advance, _inputs(session).physical_cash_counted)
    if values:
        _apply_values(session, values)
    if transition.target == CloseState.summary:
        entries = ledger_service.list_open_for_day(db, store_id, session.business_day)
        session.snapshot_entry_ids = [e.id for e in entries]
        _refresh_prefill(session, entries)
    session.state = transition.target.value
    db.commit()
    db.refresh(session)
    return session


def back(db: Session, store_id: int, session_id: str) -> CloseSession:
    session = get_session(db, store_id, session_id)
    transition = resolve(CloseState(session.state), CloseEvent.back, _inputs(session).physical_cash_counted)
    session.state = transition.target.value
    db.commit()
    db.refresh(session)
    return session


def compute_session_figures(db: Session, store_id: int, session: CloseSession) -> Tuple[CloseFigures, List[LedgerEntry]]:
    entries = ledger_service.list_open_for_day(db, store_id, session.business_day)
    expenses, store_credit = entry_totals(entries)
    return compute_figures(_inputs(session), expenses, store_credit), entries


def summary(db: Session, store_id: int, session_id: str) -> Dict[str, Any]:
    session = get_session(db, store_id, session_id)
    figures, entries = compute_session_figures(db, store_id, session)
    inputs = _inputs(session)
    return {
        "session_id": session.id,
        "business_day": session.business_day,
        "state": session.state,
        "figures": figures,
        "balanced": figures.balanced,
        "digital": {
            "credit": inputs.credit,
            "debit": inputs.debit,
            "card_pix": inputs.card_pix,
            "direct_pix": inputs.direct_pix,
        },
        "entries": entries,
    }


def confirm_summary(
    db: Session,
    store_id: int,
    session_id: str,
    operator: Optional[str] = None,
) -> Tuple[CloseSession, Optional[ClosingRecord]]:
    """
    Confirm the summary. With cash in the drawer the wizard moves to the
    safe-deposit step; with an empty drawer the day is closed right away.
    A day that already has a closing record fails with DuplicateClosing.
    """
    session = get_session(db, store_id, session_id)
    _ensure_not_closed(db, store_id, session.business_day)
    transition = resolve(CloseState(session.state), CloseEvent.confirm, _inputs(session).physical_cash_counted)
    if transition.commits:
        record = _commit(db, store_id, session, ZERO, operator)
        return session, record
    session.state = transition.target.value
    db.commit()
    db.refresh(session)
    return session, None


def confirm_safe_deposit(
    db: Session,
    store_id: int,
    session_id: str,
    amount,
    operator: Optional[str] = None,
) -> Tuple[CloseSession, ClosingRecord]:
    session = get_session(db, store_id, session_id)
    _ensure_not_closed(db, store_id, session.business_day)
    drawer = _inputs(session).physical_cash_counted
    resolve(CloseState(session.state), CloseEvent.confirm_deposit, drawer)
    deposit = validate_safe_deposit(amount, drawer)
    record = _commit(db, store_id, session, deposit, operator)
    return session, record


def _commit(
    db: Session,
    store_id: int,
    session: CloseSession,
    safe_deposit: Decimal,
    operator: Optional[str],
) -> ClosingRecord:
    day = session.business_day
    inputs = _inputs(session)
    closed_by = operator or session.operator or "system"

    try:
        # Re-read right before sealing so late entries are not lost
        figures, entries = compute_session_figures(db, store_id, session)
        entry_ids = [e.id for e in entries]
        if session.snapshot_entry_ids is not None and sorted(session.snapshot_entry_ids) != sorted(entry_ids):
            logger.warning(
                "Entries for %s changed after the summary was shown (%s -> %s entries)",
                day,
                len(session.snapshot_entry_ids),
                len(entry_ids),
            )
        _ensure_not_closed(db, store_id, day)

        record = ClosingRecord(
            store_id=store_id,
            business_day=day,
            declared_gross_sales=figures.declared_gross_sales,
            opening_balance=figures.opening_balance,
            extra_cash_received=figures.extra_cash_received,
            credit_total=inputs.credit,
            debit_total=inputs.debit,
            card_pix_total=inputs.card_pix,
            direct_pix_total=inputs.direct_pix,
            physical_cash_counted=figures.physical_cash_counted,
            denomination_counts=dict(inputs.denomination_counts),
            total_expenses=figures.total_expenses,
            total_store_credit_issued=figures.total_store_credit_issued,
            expected_total=figures.expected_total,
            counted_total=figures.counted_total,
            discrepancy=figures.discrepancy,
            safe_deposit=safe_deposit,
            next_opening_balance=next_opening_balance(figures.physical_cash_counted, safe_deposit),
            retroactive=False,
            closed_by=closed_by,
        )
        db.add(record)
        db.flush()

        ledger_service.mark_closed(db, store_id, entry_ids, record.id)

        if safe_deposit > 0:
            safe_service.add_entry(
                db,
                store_id,
                "in",
                safe_deposit,
                "Close-out deposit",
                entry_date=day,
                closing_record_id=record.id,
                created_by=closed_by,
                commit=False,
            )

        session.state = CloseState.closed.value
        session.snapshot_entry_ids = entry_ids
        session.closing_record_id = record.id
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise DuplicateClosing(f"Business day {day.isoformat()} is already closed") from exc
    except Exception:
        db.rollback()
        raise

    db.refresh(record)
    db.refresh(session)
    logger.info(
        "Closed %s: expected=%s counted=%s discrepancy=%s deposit=%s next_opening=%s",
        day,
        record.expected_total,
        record.counted_total,
        record.discrepancy,
        record.safe_deposit,
        record.next_opening_balance,
    )
    return record


def record_retroactive_sales(
    db: Session,
    store_id: int,
    day: date,
    declared_gross_sales,
    operator: Optional[str] = None,
    today: Optional[date] = None,
) -> ClosingRecord:
    """
    Book the declared sales of a past day that was never closed. Creates a
    minimal closing record (everything else zero) without the wizard and
    seals the entries already booked for that day.
    """
    today = today or local_today()
    if day >= today:
        raise InvalidState("Retroactive sales are only accepted for past days")
    if is_rest_day(day):
        raise InvalidState(f"{day.isoformat()} is a rest day")
    _ensure_not_closed(db, store_id, day)
    declared = money(declared_gross_sales)
    if declared < 0:
        raise InvalidAmount("Declared sales cannot be negative")

    record = ClosingRecord(
        store_id=store_id,
        business_day=day,
        declared_gross_sales=declared,
        opening_balance=ZERO,
        extra_cash_received=ZERO,
        credit_total=ZERO,
        debit_total=ZERO,
        card_pix_total=ZERO,
        direct_pix_total=ZERO,
        physical_cash_counted=ZERO,
        total_expenses=ZERO,
        total_store_credit_issued=ZERO,
        expected_total=ZERO,
        counted_total=ZERO,
        discrepancy=ZERO,
        safe_deposit=ZERO,
        next_opening_balance=ZERO,
        retroactive=True,
        closed_by=operator or "system",
    )
    try:
        db.add(record)
        db.flush()
        # Entries already booked for the day are sealed with it
        entry_ids = [e.id for e in ledger_service.list_open_for_day(db, store_id, day)]
        ledger_service.mark_closed(db, store_id, entry_ids, record.id)
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise DuplicateClosing(f"Business day {day.isoformat()} is already closed") from exc
    except Exception:
        db.rollback()
        raise
    db.refresh(record)
    logger.info("Retroactive sales %s recorded for %s (%s entries sealed)", declared, day, len(entry_ids))
    return record


def list_closings(db: Session, store_id: int, month: int, year: int) -> List[ClosingRecord]:
    start, end = month_bounds(month, year)
    return db.query(ClosingRecord).filter(
        ClosingRecord.store_id == store_id,
        ClosingRecord.business_day >= start,
        ClosingRecord.business_day <= end,
    ).order_by(ClosingRecord.business_day.asc()).all()
