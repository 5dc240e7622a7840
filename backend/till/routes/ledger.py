from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from till.core.business_day import local_today
from till.core.database import get_db
from till.core.deps import get_operator, get_store
from till.models.ledger_entry import EntryCategory
from till.models.store import Store
from till.routes.credit import CreditQuoteOut
from till.services import ledger_service

router = APIRouter()


class SaleItemIn(BaseModel):
    product_id: int
    qty: int = Field(gt=0)


class LedgerEntryCreate(BaseModel):
    category: EntryCategory
    amount: Optional[Decimal] = Field(default=None, ge=0, max_digits=12, decimal_places=2)
    description: str = ""
    business_day: Optional[date] = None
    linked_customer_id: Optional[int] = None
    linked_supplier_id: Optional[int] = None
    # consignment_sale only
    items: List[SaleItemIn] = []
    # delivery_platform_sale only; defaults to the configured platform fee
    fee_percent: Optional[Decimal] = Field(default=None, ge=0, le=100)


class LedgerEntryUpdate(BaseModel):
    amount: Optional[Decimal] = Field(default=None, ge=0, max_digits=12, decimal_places=2)
    description: Optional[str] = None


class LedgerEntryOut(BaseModel):
    id: int
    business_day: date
    category: str
    description: str
    amount: Decimal
    linked_customer_id: Optional[int]
    linked_supplier_id: Optional[int]
    closed: bool
    closing_record_id: Optional[int]
    created_by: Optional[str]
    created_at: Optional[datetime]

    class Config:
        from_attributes = True


class LedgerEntryCreated(BaseModel):
    entry: LedgerEntryOut
    # Present for store-credit entries; exceeding the limit is only a warning
    credit_quote: Optional[CreditQuoteOut] = None
    warnings: List[str] = []


@router.post("/entries", response_model=LedgerEntryCreated, status_code=201)
def create_entry(
    data: LedgerEntryCreate,
    db: Session = Depends(get_db),
    store: Store = Depends(get_store),
    operator: str = Depends(get_operator),
):
    result = ledger_service.append(
        db,
        store.id,
        data.category,
        amount=data.amount,
        description=data.description,
        business_day=data.business_day,
        linked_customer_id=data.linked_customer_id,
        linked_supplier_id=data.linked_supplier_id,
        items=[item.model_dump() for item in data.items],
        fee_percent=data.fee_percent,
        created_by=operator,
        today=local_today(),
    )
    warnings = []
    quote = result["credit_quote"]
    if quote and quote["would_exceed_limit"]:
        warnings.append(
            f"Credit limit exceeded: projected {quote['projected_total']} over limit {quote['credit_limit']}"
        )
    return {"entry": result["entry"], "credit_quote": quote, "warnings": warnings}


@router.get("/entries", response_model=List[LedgerEntryOut])
def list_entries(
    day: Optional[date] = None,
    open_only: bool = False,
    db: Session = Depends(get_db),
    store: Store = Depends(get_store),
):
    day = day or local_today()
    if open_only:
        return ledger_service.list_open_for_day(db, store.id, day)
    return ledger_service.list_for_day(db, store.id, day)


@router.patch("/entries/{entry_id}", response_model=LedgerEntryOut)
def update_entry(
    entry_id: int,
    data: LedgerEntryUpdate,
    db: Session = Depends(get_db),
    store: Store = Depends(get_store),
):
    return ledger_service.update(db, store.id, entry_id, data.model_dump(exclude_unset=True))


@router.delete("/entries/{entry_id}", status_code=204)
def delete_entry(
    entry_id: int,
    db: Session = Depends(get_db),
    store: Store = Depends(get_store),
):
    ledger_service.delete(db, store.id, entry_id)
    return Response(status_code=204)
