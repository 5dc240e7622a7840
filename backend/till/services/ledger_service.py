"""
Ledger entry store: the typed money movements of each business day.

Entries are editable while their day is open and become immutable history
once a closing record seals them. Categories that touch another tracker
(store credit, consignment, delivery platform) write both sides in one
transaction: if either half fails, nothing is committed.
"""
from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, TypedDict

from sqlalchemy.orm import Session

from till.core.business_day import local_today, utc_now
from till.core.errors import AlreadyReconciled, InvalidAmount, InvalidState, NotFound
from till.core.money import money
from till.models.closing import ClosingRecord
from till.models.customer import DebtStatus
from till.models.delivery_sale import DeliveryPlatformSale, DeliveryStatus
from till.models.ledger_entry import EntryCategory, LedgerEntry, SUPPLIER_CATEGORIES
from till.services import consignment_service, credit_service, delivery_service


logger = logging.getLogger(__name__)


class AppendResult(TypedDict):
    entry: LedgerEntry
    credit_quote: Optional[credit_service.CreditQuote]


def _validate_links(
    category: EntryCategory,
    linked_customer_id: Optional[int],
    linked_supplier_id: Optional[int],
) -> None:
    if category == EntryCategory.store_credit:
        if linked_customer_id is None:
            raise InvalidAmount("Store-credit entries must reference a customer")
    elif linked_customer_id is not None:
        raise InvalidAmount("Only store-credit entries can reference a customer")

    if category in SUPPLIER_CATEGORIES:
        if linked_supplier_id is None:
            raise InvalidAmount("Consignment entries must reference a supplier")
    elif linked_supplier_id is not None:
        raise InvalidAmount("Only consignment entries can reference a supplier")


def is_day_closed(db: Session, store_id: int, day: date) -> bool:
    return db.query(ClosingRecord.id).filter(
        ClosingRecord.store_id == store_id,
        ClosingRecord.business_day == day,
    ).first() is not None


def get_entry(db: Session, store_id: int, entry_id: int) -> LedgerEntry:
    entry = db.query(LedgerEntry).filter(
        LedgerEntry.id == entry_id,
        LedgerEntry.store_id == store_id,
    ).first()
    if not entry:
        raise NotFound(f"Ledger entry {entry_id} not found")
    return entry


def append(
    db: Session,
    store_id: int,
    category: str,
    amount=None,
    description: str = "",
    business_day: Optional[date] = None,
    linked_customer_id: Optional[int] = None,
    linked_supplier_id: Optional[int] = None,
    items: Optional[Iterable[consignment_service.SaleItem]] = None,
    fee_percent=None,
    created_by: Optional[str] = None,
    today: Optional[date] = None,
) -> AppendResult:
    """
    Record a money movement for a business day (default: today).

    Side effects per category, committed together with the entry:
    store_credit adds a customer debt, consignment_sale takes the items out of
    stock, consignment_settlement resets the supplier's sold counters and
    delivery_platform_sale schedules the platform payout.
    """
    category = EntryCategory(category)
    day = business_day or today or local_today()
    _validate_links(category, linked_customer_id, linked_supplier_id)

    if is_day_closed(db, store_id, day):
        raise InvalidState(f"Business day {day.isoformat()} is already closed")

    items = list(items or [])
    credit_quote = None

    if category == EntryCategory.consignment_sale:
        if not items:
            raise InvalidAmount("Consignment sales need at least one item")
        if amount is None:
            amount = consignment_service.sale_value(db, store_id, items, linked_supplier_id)
    elif category == EntryCategory.consignment_settlement and amount is None:
        # Computed before the counters are reset
        amount = consignment_service.settlement_amount(db, store_id, linked_supplier_id)

    value = money(amount)
    if value < 0:
        raise InvalidAmount("Amount cannot be negative")
    if value == 0 and category not in SUPPLIER_CATEGORIES:
        raise InvalidAmount("Amount must be positive")

    if category == EntryCategory.store_credit:
        credit_quote = credit_service.quote_credit_impact(db, store_id, linked_customer_id, value)
    elif category in SUPPLIER_CATEGORIES:
        consignment_service.get_supplier(db, store_id, linked_supplier_id)

    entry = LedgerEntry(
        store_id=store_id,
        business_day=day,
        category=category.value,
        description=(description or "").strip(),
        amount=value,
        linked_customer_id=linked_customer_id,
        linked_supplier_id=linked_supplier_id,
        closed=False,
        created_by=created_by,
    )

    try:
        db.add(entry)
        db.flush()

        if category == EntryCategory.store_credit:
            credit_service.create_debt(
                db,
                store_id,
                linked_customer_id,
                value,
                entry.description,
                purchase_date=day,
                ledger_entry_id=entry.id,
                created_by=created_by,
            )
        elif category == EntryCategory.consignment_sale:
            consignment_service.record_sale(db, store_id, items, linked_supplier_id, commit=False)
        elif category == EntryCategory.consignment_settlement:
            consignment_service.settle(db, store_id, linked_supplier_id, commit=False)
        elif category == EntryCategory.delivery_platform_sale:
            delivery_service.record(
                db,
                store_id,
                value,
                fee_percent=fee_percent,
                sale_date=day,
                description=entry.description,
                created_by=created_by,
                ledger_entry_id=entry.id,
                commit=False,
            )
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(entry)
    if credit_quote and credit_quote["would_exceed_limit"]:
        logger.warning(
            "Customer %s over credit limit: projected %s, limit %s",
            linked_customer_id,
            credit_quote["projected_total"],
            credit_quote["credit_limit"],
        )
    logger.info("Ledger entry %s %s %s day=%s", entry.id, entry.category, entry.amount, entry.business_day)
    return {"entry": entry, "credit_quote": credit_quote}


def list_for_day(db: Session, store_id: int, day: date) -> List[LedgerEntry]:
    return db.query(LedgerEntry).filter(
        LedgerEntry.store_id == store_id,
        LedgerEntry.business_day == day,
    ).order_by(LedgerEntry.id.asc()).all()


def list_open_for_day(db: Session, store_id: int, day: date) -> List[LedgerEntry]:
    return db.query(LedgerEntry).filter(
        LedgerEntry.store_id == store_id,
        LedgerEntry.business_day == day,
        LedgerEntry.closed.is_(False),
    ).order_by(LedgerEntry.id.asc()).all()


def _linked_delivery_sale(db: Session, store_id: int, entry: LedgerEntry) -> Optional[DeliveryPlatformSale]:
    return db.query(DeliveryPlatformSale).filter(
        DeliveryPlatformSale.store_id == store_id,
        DeliveryPlatformSale.ledger_entry_id == entry.id,
    ).first()


def _ensure_editable(db: Session, store_id: int, entry: LedgerEntry) -> None:
    if entry.closed or is_day_closed(db, store_id, entry.business_day):
        raise InvalidState(f"Ledger entry {entry.id} belongs to a closed day")


def update(db: Session, store_id: int, entry_id: int, patch: Dict[str, Any]) -> LedgerEntry:
    """Edit description/amount of an open entry, mirrored to its linked debt or payout."""
    entry = get_entry(db, store_id, entry_id)
    _ensure_editable(db, store_id, entry)

    category = EntryCategory(entry.category)
    new_amount: Optional[Decimal] = None
    if patch.get("amount") is not None:
        new_amount = money(patch["amount"])
        if new_amount < 0 or (new_amount == 0 and category not in SUPPLIER_CATEGORIES):
            raise InvalidAmount("Amount must be positive")

    debt = None
    debt_balance: Optional[Decimal] = None
    payout = None
    if new_amount is not None and category == EntryCategory.store_credit:
        debt = credit_service.debt_for_entry(db, store_id, entry.id)
        if debt is not None:
            if debt.status == DebtStatus.paid.value:
                raise InvalidState("The linked customer debt is already paid")
            # Shift the remaining balance so earlier partial payments still count
            debt_balance = money(money(debt.total_value) + new_amount - money(entry.amount))
            if debt_balance < 0:
                raise InvalidAmount(
                    f"New amount {new_amount} is below what the customer already paid"
                )
    if new_amount is not None and category == EntryCategory.delivery_platform_sale:
        payout = _linked_delivery_sale(db, store_id, entry)
        if payout is not None and payout.status == DeliveryStatus.reconciled.value:
            raise AlreadyReconciled("The linked delivery sale is already reconciled")

    if patch.get("description") is not None:
        entry.description = patch["description"].strip()
    if new_amount is not None:
        entry.amount = new_amount
        if debt is not None:
            debt.total_value = debt_balance
            if debt_balance == 0:
                debt.status = DebtStatus.paid.value
                debt.paid_at = utc_now()
        if payout is not None:
            payout.gross_value = new_amount
            payout.net_value = delivery_service.compute_net_value(new_amount, payout.fee_percent)

    db.commit()
    db.refresh(entry)
    return entry


def delete(db: Session, store_id: int, entry_id: int) -> None:
    """
    Remove an open entry together with its pending debt or payout. Stock moved
    by consignment entries is not restored; adjust products manually.
    """
    entry = get_entry(db, store_id, entry_id)
    _ensure_editable(db, store_id, entry)

    category = EntryCategory(entry.category)
    if category == EntryCategory.store_credit:
        debt = credit_service.debt_for_entry(db, store_id, entry.id)
        if debt is not None:
            if debt.status == DebtStatus.paid.value:
                raise InvalidState("The linked customer debt is already paid")
            db.delete(debt)
    elif category == EntryCategory.delivery_platform_sale:
        payout = _linked_delivery_sale(db, store_id, entry)
        if payout is not None:
            if payout.status == DeliveryStatus.reconciled.value:
                raise AlreadyReconciled("The linked delivery sale is already reconciled")
            db.delete(payout)

    db.delete(entry)
    db.commit()
    logger.info("Ledger entry %s deleted", entry_id)


def mark_closed(db: Session, store_id: int, entry_ids: Iterable[int], closing_record_id: int) -> int:
    """Seal entries under a closing record. Flushes only; the close-out commits."""
    ids = list(entry_ids)
    if not ids:
        return 0
    changed = db.query(LedgerEntry).filter(
        LedgerEntry.store_id == store_id,
        LedgerEntry.id.in_(ids),
        LedgerEntry.closed.is_(False),
    ).update(
        {LedgerEntry.closed: True, LedgerEntry.closing_record_id: closing_record_id},
        synchronize_session="fetch",
    )
    if changed != len(ids):
        raise InvalidState("Some entries were closed by another close-out")
    db.flush()
    return changed
