"""
Safe (vault) movements. Close-outs deposit here; manual entries cover
withdrawals and other deposits.
"""
from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session

from till.core.business_day import local_today
from till.core.errors import InvalidAmount
from till.core.money import ZERO, money, money_sum
from till.models.safe_entry import SafeEntry


SAFE_KINDS = ("in", "out")


def add_entry(
    db: Session,
    store_id: int,
    kind: str,
    value,
    description: str,
    entry_date: Optional[date] = None,
    closing_record_id: Optional[int] = None,
    created_by: Optional[str] = None,
    commit: bool = True,
) -> SafeEntry:
    if kind not in SAFE_KINDS:
        raise InvalidAmount(f"Safe entry kind must be one of {SAFE_KINDS}")
    amount = money(value)
    if amount <= 0:
        raise InvalidAmount("Safe entry value must be positive")
    if not (description or "").strip():
        raise InvalidAmount("Safe entry description is required")
    if kind == "out" and amount > balance(db, store_id):
        raise InvalidAmount("Withdrawal exceeds the safe balance")

    entry = SafeEntry(
        store_id=store_id,
        entry_date=entry_date or local_today(),
        description=description.strip(),
        kind=kind,
        value=amount,
        closing_record_id=closing_record_id,
        created_by=created_by,
    )
    db.add(entry)
    if commit:
        db.commit()
        db.refresh(entry)
    else:
        db.flush()
    return entry


def list_entries(db: Session, store_id: int) -> List[SafeEntry]:
    return db.query(SafeEntry).filter(
        SafeEntry.store_id == store_id,
    ).order_by(SafeEntry.entry_date.desc(), SafeEntry.id.desc()).all()


def balance(db: Session, store_id: int) -> Decimal:
    entries = db.query(SafeEntry).filter(SafeEntry.store_id == store_id).all()
    if not entries:
        return ZERO
    deposits = money_sum(e.value for e in entries if e.kind == "in")
    withdrawals = money_sum(e.value for e in entries if e.kind == "out")
    return money(deposits - withdrawals)
