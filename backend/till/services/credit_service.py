"""
Customer credit (crediário) sub-ledger.

Store-credit sales become CustomerDebt rows. A debt is created together with
its ledger entry and is only flushed here; the caller commits both at once.
Going over a customer's credit limit is a warning, never a refusal.
"""
from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional, TypedDict

from sqlalchemy.orm import Session

from till.core.business_day import debt_due_date, local_today, utc_now
from till.core.config import settings
from till.core.errors import InvalidAmount, InvalidState, NotFound
from till.core.money import ZERO, money, money_sum
from till.models.customer import Customer, CustomerDebt, DebtStatus


logger = logging.getLogger(__name__)


class CreditQuote(TypedDict):
    would_exceed_limit: bool
    projected_total: Decimal
    current_total: Decimal
    credit_limit: Optional[Decimal]


class DebtorRow(TypedDict):
    customer_id: int
    name: str
    nickname: Optional[str]
    phone: Optional[str]
    due_day: Optional[int]
    debt_count: int
    total_owed: Decimal
    has_overdue: bool


def _normalize_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    cleaned = value.strip()
    return cleaned or None


def get_customer(db: Session, store_id: int, customer_id: int) -> Customer:
    customer = db.query(Customer).filter(
        Customer.id == customer_id,
        Customer.store_id == store_id,
    ).first()
    if not customer:
        raise NotFound(f"Customer {customer_id} not found")
    return customer


def create_customer(
    db: Session,
    store_id: int,
    name: str,
    nickname: Optional[str] = None,
    cpf: Optional[str] = None,
    phone: Optional[str] = None,
    notes: Optional[str] = None,
    credit_limit: Optional[Decimal] = None,
    due_day: Optional[int] = None,
    use_default_limit: bool = True,
) -> Customer:
    normalized_name = _normalize_text(name)
    if not normalized_name:
        raise InvalidAmount("Customer name is required")
    if due_day is not None and not 1 <= due_day <= 31:
        raise InvalidAmount("due_day must be between 1 and 31")
    if credit_limit is None and use_default_limit:
        credit_limit = settings.default_credit_limit
    if credit_limit is not None and money(credit_limit) < 0:
        raise InvalidAmount("credit_limit cannot be negative")

    customer = Customer(
        store_id=store_id,
        name=normalized_name,
        nickname=_normalize_text(nickname),
        cpf=_normalize_text(cpf),
        phone=_normalize_text(phone),
        notes=_normalize_text(notes),
        credit_limit=money(credit_limit) if credit_limit is not None else None,
        due_day=due_day,
    )
    db.add(customer)
    db.commit()
    db.refresh(customer)
    return customer


def update_customer(db: Session, store_id: int, customer_id: int, patch: Dict[str, Any]) -> Customer:
    customer = get_customer(db, store_id, customer_id)
    if "name" in patch:
        name = _normalize_text(patch["name"])
        if not name:
            raise InvalidAmount("Customer name is required")
        customer.name = name
    for key in ("nickname", "cpf", "phone", "notes"):
        if key in patch:
            setattr(customer, key, _normalize_text(patch[key]))
    if "due_day" in patch:
        due_day = patch["due_day"]
        if due_day is not None and not 1 <= due_day <= 31:
            raise InvalidAmount("due_day must be between 1 and 31")
        customer.due_day = due_day
    if "credit_limit" in patch:
        limit = patch["credit_limit"]
        if limit is not None and money(limit) < 0:
            raise InvalidAmount("credit_limit cannot be negative")
        customer.credit_limit = money(limit) if limit is not None else None
    db.commit()
    db.refresh(customer)
    return customer


def list_customers(db: Session, store_id: int, q: Optional[str] = None) -> List[Customer]:
    query = db.query(Customer).filter(Customer.store_id == store_id)
    if q:
        like = f"%{q.strip()}%"
        query = query.filter((Customer.name.ilike(like)) | (Customer.nickname.ilike(like)))
    return query.order_by(Customer.name.asc()).all()


def _pending_debts(db: Session, store_id: int, customer_id: int) -> List[CustomerDebt]:
    return db.query(CustomerDebt).filter(
        CustomerDebt.store_id == store_id,
        CustomerDebt.customer_id == customer_id,
        CustomerDebt.status == DebtStatus.pending.value,
    ).all()


def quote_credit_impact(db: Session, store_id: int, customer_id: int, new_amount) -> CreditQuote:
    """Read-only preview of the customer's total if ``new_amount`` is added."""
    customer = get_customer(db, store_id, customer_id)
    current = money_sum(d.total_value for d in _pending_debts(db, store_id, customer_id))
    projected = money(current + money(new_amount))
    limit = money(customer.credit_limit) if customer.credit_limit is not None else None
    return {
        "would_exceed_limit": limit is not None and projected > limit,
        "projected_total": projected,
        "current_total": current,
        "credit_limit": limit,
    }


def create_debt(
    db: Session,
    store_id: int,
    customer_id: int,
    amount,
    description: Optional[str],
    purchase_date: date,
    ledger_entry_id: Optional[int] = None,
    created_by: Optional[str] = None,
) -> CustomerDebt:
    """
    Add a pending debt. Only flushes: the store-credit ledger entry and its
    debt are committed by the caller in a single transaction.
    """
    get_customer(db, store_id, customer_id)
    value = money(amount)
    if value <= 0:
        raise InvalidAmount("Store-credit amount must be positive")
    debt = CustomerDebt(
        store_id=store_id,
        customer_id=customer_id,
        ledger_entry_id=ledger_entry_id,
        purchase_date=purchase_date,
        description=_normalize_text(description),
        total_value=value,
        status=DebtStatus.pending.value,
        created_by=created_by,
    )
    db.add(debt)
    db.flush()
    return debt


def get_debt(db: Session, store_id: int, debt_id: int) -> CustomerDebt:
    debt = db.query(CustomerDebt).filter(
        CustomerDebt.id == debt_id,
        CustomerDebt.store_id == store_id,
    ).first()
    if not debt:
        raise NotFound(f"Debt {debt_id} not found")
    return debt


def debt_for_entry(db: Session, store_id: int, ledger_entry_id: int) -> Optional[CustomerDebt]:
    return db.query(CustomerDebt).filter(
        CustomerDebt.store_id == store_id,
        CustomerDebt.ledger_entry_id == ledger_entry_id,
    ).first()


def effective_status(debt: CustomerDebt, today: date, due_day: Optional[int] = None) -> DebtStatus:
    """Pending debts past their due date read as overdue."""
    if debt.status == DebtStatus.paid.value:
        return DebtStatus.paid
    if due_day is None and debt.customer is not None:
        due_day = debt.customer.due_day
    if debt_due_date(debt.purchase_date, due_day) < today:
        return DebtStatus.overdue
    return DebtStatus.pending


def mark_paid(db: Session, store_id: int, debt_id: int) -> CustomerDebt:
    debt = get_debt(db, store_id, debt_id)
    if debt.status == DebtStatus.paid.value:
        raise InvalidState(f"Debt {debt_id} is already paid")
    debt.status = DebtStatus.paid.value
    debt.paid_at = utc_now()
    db.commit()
    db.refresh(debt)
    logger.info("Debt %s paid in full customer=%s", debt.id, debt.customer_id)
    return debt


def partial_payment(db: Session, store_id: int, debt_id: int, amount) -> CustomerDebt:
    """Reduce the debt in place; paying the whole balance marks it paid."""
    debt = get_debt(db, store_id, debt_id)
    if debt.status == DebtStatus.paid.value:
        raise InvalidState(f"Debt {debt_id} is already paid")
    value = money(amount)
    if value <= 0:
        raise InvalidAmount("Payment amount must be positive")
    if value > money(debt.total_value):
        raise InvalidAmount(f"Payment {value} exceeds the remaining {money(debt.total_value)}")

    debt.total_value = money(money(debt.total_value) - value)
    if debt.total_value == ZERO:
        debt.status = DebtStatus.paid.value
        debt.paid_at = utc_now()
    db.commit()
    db.refresh(debt)
    logger.info("Partial payment %s on debt %s, remaining %s", value, debt.id, debt.total_value)
    return debt


def list_debts(db: Session, store_id: int, customer_id: int) -> List[CustomerDebt]:
    get_customer(db, store_id, customer_id)
    return db.query(CustomerDebt).filter(
        CustomerDebt.store_id == store_id,
        CustomerDebt.customer_id == customer_id,
    ).order_by(CustomerDebt.purchase_date.desc(), CustomerDebt.id.desc()).all()


def debtors_report(db: Session, store_id: int, today: Optional[date] = None) -> List[DebtorRow]:
    """Customers with pending debts, largest balance first."""
    today = today or local_today()
    pending = db.query(CustomerDebt).filter(
        CustomerDebt.store_id == store_id,
        CustomerDebt.status == DebtStatus.pending.value,
    ).all()

    rows: Dict[int, DebtorRow] = {}
    for debt in pending:
        customer = debt.customer
        row = rows.get(customer.id)
        if row is None:
            row = {
                "customer_id": customer.id,
                "name": customer.name,
                "nickname": customer.nickname,
                "phone": customer.phone,
                "due_day": customer.due_day,
                "debt_count": 0,
                "total_owed": ZERO,
                "has_overdue": False,
            }
            rows[customer.id] = row
        row["debt_count"] += 1
        row["total_owed"] = money(row["total_owed"] + money(debt.total_value))
        if effective_status(debt, today, customer.due_day) == DebtStatus.overdue:
            row["has_overdue"] = True

    return sorted(rows.values(), key=lambda r: r["total_owed"], reverse=True)
