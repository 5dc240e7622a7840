"""
Dashboard queries over the ledger and closing records.
"""
from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional, TypedDict

from sqlalchemy.orm import Session

from till.core.money import ZERO, money, money_sum
from till.models.closing import ClosingRecord
from till.models.ledger_entry import EntryCategory, OUTFLOW_CATEGORIES
from till.services import closing_service, ledger_service


class DailyTotals(TypedDict):
    business_day: date
    by_category: Dict[str, Decimal]
    entry_count: int
    open_entry_count: int
    total_inflows: Decimal
    total_outflows: Decimal
    net_movement: Decimal
    closed: bool
    closing: Optional[ClosingRecord]


class MonthlyTotals(TypedDict):
    days_closed: int
    declared_gross_sales: Decimal
    total_expenses: Decimal
    total_store_credit_issued: Decimal
    discrepancy: Decimal
    safe_deposit: Decimal


class MonthlyHistory(TypedDict):
    month: int
    year: int
    closings: List[ClosingRecord]
    totals: MonthlyTotals


def daily_totals(db: Session, store_id: int, day: date) -> DailyTotals:
    """Per-category totals of a day's entries (open and closed) plus its closing, if any."""
    entries = ledger_service.list_for_day(db, store_id, day)
    by_category: Dict[str, Decimal] = {category.value: ZERO for category in EntryCategory}
    for entry in entries:
        by_category[entry.category] = money(by_category[entry.category] + money(entry.amount))

    outflow_keys = {c.value for c in OUTFLOW_CATEGORIES}
    inflows = money_sum(v for k, v in by_category.items() if k not in outflow_keys)
    outflows = money_sum(v for k, v in by_category.items() if k in outflow_keys)
    closing = closing_service.get_closing(db, store_id, day)

    return {
        "business_day": day,
        "by_category": by_category,
        "entry_count": len(entries),
        "open_entry_count": sum(1 for e in entries if not e.closed),
        "total_inflows": inflows,
        "total_outflows": outflows,
        "net_movement": money(inflows - outflows),
        "closed": closing is not None,
        "closing": closing,
    }


def monthly_history(db: Session, store_id: int, month: int, year: int) -> MonthlyHistory:
    closings = closing_service.list_closings(db, store_id, month, year)
    return {
        "month": month,
        "year": year,
        "closings": closings,
        "totals": {
            "days_closed": len(closings),
            "declared_gross_sales": money_sum(c.declared_gross_sales for c in closings),
            "total_expenses": money_sum(c.total_expenses for c in closings),
            "total_store_credit_issued": money_sum(c.total_store_credit_issued for c in closings),
            "discrepancy": money_sum(c.discrepancy for c in closings),
            "safe_deposit": money_sum(c.safe_deposit for c in closings),
        },
    }
