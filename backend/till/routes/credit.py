from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from till.core.business_day import debt_due_date, local_today
from till.core.database import get_db
from till.core.deps import get_store
from till.models.customer import CustomerDebt
from till.models.store import Store
from till.services import credit_service

router = APIRouter()


class CustomerCreate(BaseModel):
    name: str
    nickname: Optional[str] = None
    cpf: Optional[str] = None
    phone: Optional[str] = None
    notes: Optional[str] = None
    credit_limit: Optional[Decimal] = Field(default=None, ge=0)
    due_day: Optional[int] = Field(default=None, ge=1, le=31)
    # With no limit given, the store default applies unless this is false
    use_default_limit: bool = True


class CustomerUpdate(BaseModel):
    name: Optional[str] = None
    nickname: Optional[str] = None
    cpf: Optional[str] = None
    phone: Optional[str] = None
    notes: Optional[str] = None
    credit_limit: Optional[Decimal] = Field(default=None, ge=0)
    due_day: Optional[int] = Field(default=None, ge=1, le=31)


class CustomerOut(BaseModel):
    id: int
    name: str
    nickname: Optional[str]
    cpf: Optional[str]
    phone: Optional[str]
    notes: Optional[str]
    credit_limit: Optional[Decimal]
    due_day: Optional[int]

    class Config:
        from_attributes = True


class CreditQuoteOut(BaseModel):
    would_exceed_limit: bool
    projected_total: Decimal
    current_total: Decimal
    credit_limit: Optional[Decimal]


class DebtOut(BaseModel):
    id: int
    customer_id: int
    ledger_entry_id: Optional[int]
    purchase_date: date
    due_date: date
    description: Optional[str]
    total_value: Decimal
    status: str
    paid_at: Optional[datetime]


class PaymentIn(BaseModel):
    amount: Decimal = Field(gt=0, max_digits=12, decimal_places=2)


class DebtorOut(BaseModel):
    customer_id: int
    name: str
    nickname: Optional[str]
    phone: Optional[str]
    due_day: Optional[int]
    debt_count: int
    total_owed: Decimal
    has_overdue: bool


def _debt_out(debt: CustomerDebt, today: date) -> dict:
    due_day = debt.customer.due_day if debt.customer else None
    return {
        "id": debt.id,
        "customer_id": debt.customer_id,
        "ledger_entry_id": debt.ledger_entry_id,
        "purchase_date": debt.purchase_date,
        "due_date": debt_due_date(debt.purchase_date, due_day),
        "description": debt.description,
        "total_value": debt.total_value,
        "status": credit_service.effective_status(debt, today, due_day).value,
        "paid_at": debt.paid_at,
    }


@router.post("/customers", response_model=CustomerOut, status_code=201)
def create_customer(data: CustomerCreate, db: Session = Depends(get_db), store: Store = Depends(get_store)):
    return credit_service.create_customer(db, store.id, **data.model_dump())


@router.get("/customers", response_model=List[CustomerOut])
def list_customers(q: Optional[str] = None, db: Session = Depends(get_db), store: Store = Depends(get_store)):
    return credit_service.list_customers(db, store.id, q)


@router.get("/customers/{customer_id}", response_model=CustomerOut)
def get_customer(customer_id: int, db: Session = Depends(get_db), store: Store = Depends(get_store)):
    return credit_service.get_customer(db, store.id, customer_id)


@router.patch("/customers/{customer_id}", response_model=CustomerOut)
def update_customer(
    customer_id: int,
    data: CustomerUpdate,
    db: Session = Depends(get_db),
    store: Store = Depends(get_store),
):
    return credit_service.update_customer(db, store.id, customer_id, data.model_dump(exclude_unset=True))


@router.get("/customers/{customer_id}/quote", response_model=CreditQuoteOut)
def quote_credit(
    customer_id: int,
    amount: Decimal = Query(..., ge=0),
    db: Session = Depends(get_db),
    store: Store = Depends(get_store),
):
    """Preview only: tells whether a new store-credit sale would pass the limit."""
    return credit_service.quote_credit_impact(db, store.id, customer_id, amount)


@router.get("/customers/{customer_id}/debts", response_model=List[DebtOut])
def list_debts(customer_id: int, db: Session = Depends(get_db), store: Store = Depends(get_store)):
    today = local_today()
    return [_debt_out(d, today) for d in credit_service.list_debts(db, store.id, customer_id)]


@router.post("/debts/{debt_id}/pay", response_model=DebtOut)
def pay_debt(debt_id: int, db: Session = Depends(get_db), store: Store = Depends(get_store)):
    debt = credit_service.mark_paid(db, store.id, debt_id)
    return _debt_out(debt, local_today())


@router.post("/debts/{debt_id}/partial-payment", response_model=DebtOut)
def partial_payment(
    debt_id: int,
    data: PaymentIn,
    db: Session = Depends(get_db),
    store: Store = Depends(get_store),
):
    debt = credit_service.partial_payment(db, store.id, debt_id, data.amount)
    return _debt_out(debt, local_today())


@router.get("/debtors", response_model=List[DebtorOut])
def debtors(db: Session = Depends(get_db), store: Store = Depends(get_store)):
    return credit_service.debtors_report(db, store.id, local_today())
