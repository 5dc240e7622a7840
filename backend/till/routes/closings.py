from dataclasses import asdict
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from till.core.business_day import local_today
from till.core.database import get_db
from till.core.deps import get_operator, get_store
from till.models.store import Store
from till.routes.ledger import LedgerEntryOut
from till.services import closing_service, report_service

router = APIRouter()


class SessionStart(BaseModel):
    business_day: Optional[date] = None


class SessionOut(BaseModel):
    id: str
    business_day: date
    state: str
    data: Dict[str, Any]
    snapshot_entry_ids: Optional[List[int]]
    closing_record_id: Optional[int]
    operator: Optional[str]

    class Config:
        from_attributes = True


class StepValues(BaseModel):
    """Values of the current step; only the fields of that step are accepted."""

    opening_balance: Optional[Decimal] = Field(default=None, ge=0)
    declared_gross_sales: Optional[Decimal] = Field(default=None, ge=0)
    extra_cash_received: Optional[Decimal] = Field(default=None, ge=0)
    denomination_counts: Optional[Dict[str, int]] = None
    credit: Optional[Decimal] = Field(default=None, ge=0)
    debit: Optional[Decimal] = Field(default=None, ge=0)
    card_pix: Optional[Decimal] = Field(default=None, ge=0)
    direct_pix: Optional[Decimal] = Field(default=None, ge=0)


class FiguresOut(BaseModel):
    opening_balance: Decimal
    declared_gross_sales: Decimal
    extra_cash_received: Decimal
    total_expenses: Decimal
    total_store_credit_issued: Decimal
    physical_cash_counted: Decimal
    digital_total: Decimal
    expected_total: Decimal
    counted_total: Decimal
    discrepancy: Decimal


class SummaryOut(BaseModel):
    session_id: str
    business_day: date
    state: str
    figures: FiguresOut
    balanced: bool
    digital: Dict[str, Decimal]
    entries: List[LedgerEntryOut]


class ClosingOut(BaseModel):
    id: int
    business_day: date
    declared_gross_sales: Decimal
    opening_balance: Decimal
    extra_cash_received: Decimal
    credit_total: Decimal
    debit_total: Decimal
    card_pix_total: Decimal
    direct_pix_total: Decimal
    physical_cash_counted: Decimal
    denomination_counts: Optional[Dict[str, int]]
    total_expenses: Decimal
    total_store_credit_issued: Decimal
    expected_total: Decimal
    counted_total: Decimal
    discrepancy: Decimal
    safe_deposit: Decimal
    next_opening_balance: Decimal
    retroactive: bool
    closed_by: str
    closed_at: datetime

    class Config:
        from_attributes = True


class ConfirmOut(BaseModel):
    session: SessionOut
    # Set when the day was sealed by this call
    closing: Optional[ClosingOut] = None


class SafeDepositIn(BaseModel):
    amount: Decimal = Field(max_digits=12, decimal_places=2)


class RetroactiveIn(BaseModel):
    business_day: date
    declared_gross_sales: Decimal = Field(ge=0, max_digits=12, decimal_places=2)


class DailyTotalsOut(BaseModel):
    business_day: date
    by_category: Dict[str, Decimal]
    entry_count: int
    open_entry_count: int
    total_inflows: Decimal
    total_outflows: Decimal
    net_movement: Decimal
    closed: bool
    closing: Optional[ClosingOut]


class MonthlyTotalsOut(BaseModel):
    days_closed: int
    declared_gross_sales: Decimal
    total_expenses: Decimal
    total_store_credit_issued: Decimal
    discrepancy: Decimal
    safe_deposit: Decimal


class HistoryOut(BaseModel):
    month: int
    year: int
    closings: List[ClosingOut]
    totals: MonthlyTotalsOut


@router.post("/sessions", response_model=SessionOut)
def start_session(
    data: SessionStart,
    db: Session = Depends(get_db),
    store: Store = Depends(get_store),
    operator: str = Depends(get_operator),
):
    """Start the close-out of a day, or resume the one already in progress."""
    return closing_service.start_or_resume_close(
        db,
        store.id,
        day=data.business_day,
        operator=operator,
        today=local_today(),
    )


@router.get("/sessions/{session_id}", response_model=SessionOut)
def get_session(session_id: str, db: Session = Depends(get_db), store: Store = Depends(get_store)):
    return closing_service.get_session(db, store.id, session_id)


@router.post("/sessions/{session_id}/advance", response_model=SessionOut)
def advance(
    session_id: str,
    data: Optional[StepValues] = None,
    db: Session = Depends(get_db),
    store: Store = Depends(get_store),
):
    values = data.model_dump(exclude_unset=True) if data else None
    return closing_service.advance(db, store.id, session_id, values)


@router.post("/sessions/{session_id}/back", response_model=SessionOut)
def back(session_id: str, db: Session = Depends(get_db), store: Store = Depends(get_store)):
    return closing_service.back(db, store.id, session_id)


@router.get("/sessions/{session_id}/summary", response_model=SummaryOut)
def summary(session_id: str, db: Session = Depends(get_db), store: Store = Depends(get_store)):
    result = closing_service.summary(db, store.id, session_id)
    result["figures"] = asdict(result["figures"])
    return result


@router.post("/sessions/{session_id}/confirm", response_model=ConfirmOut)
def confirm(
    session_id: str,
    db: Session = Depends(get_db),
    store: Store = Depends(get_store),
    operator: str = Depends(get_operator),
):
    session, record = closing_service.confirm_summary(db, store.id, session_id, operator)
    return {"session": session, "closing": record}


@router.post("/sessions/{session_id}/safe-deposit", response_model=ConfirmOut)
def safe_deposit(
    session_id: str,
    data: SafeDepositIn,
    db: Session = Depends(get_db),
    store: Store = Depends(get_store),
    operator: str = Depends(get_operator),
):
    session, record = closing_service.confirm_safe_deposit(db, store.id, session_id, data.amount, operator)
    return {"session": session, "closing": record}


@router.post("/retroactive", response_model=ClosingOut, status_code=201)
def retroactive(
    data: RetroactiveIn,
    db: Session = Depends(get_db),
    store: Store = Depends(get_store),
    operator: str = Depends(get_operator),
):
    return closing_service.record_retroactive_sales(
        db,
        store.id,
        data.business_day,
        data.declared_gross_sales,
        operator=operator,
        today=local_today(),
    )


@router.get("/daily-totals", response_model=DailyTotalsOut)
def daily_totals(
    day: Optional[date] = None,
    db: Session = Depends(get_db),
    store: Store = Depends(get_store),
):
    return report_service.daily_totals(db, store.id, day or local_today())


@router.get("/history", response_model=HistoryOut)
def history(
    month: Optional[int] = Query(default=None, ge=1, le=12),
    year: Optional[int] = Query(default=None, ge=2000),
    db: Session = Depends(get_db),
    store: Store = Depends(get_store),
):
    today = local_today()
    return report_service.monthly_history(db, store.id, month or today.month, year or today.year)
