from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, Response
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from till.core.business_day import local_today
from till.core.database import get_db
from till.core.deps import get_operator, get_store
from till.models.delivery_sale import DeliveryStatus
from till.models.store import Store
from till.services import delivery_service

router = APIRouter()


class DeliverySaleCreate(BaseModel):
    gross_value: Decimal = Field(gt=0, max_digits=12, decimal_places=2)
    fee_percent: Optional[Decimal] = Field(default=None, ge=0, le=100)
    sale_date: Optional[date] = None
    description: Optional[str] = None


class DeliverySaleOut(BaseModel):
    id: int
    ledger_entry_id: Optional[int]
    sale_date: date
    due_date: date
    gross_value: Decimal
    fee_percent: Decimal
    net_value: Decimal
    description: Optional[str]
    status: str
    reconciled_at: Optional[datetime]
    reconciled_by: Optional[str]

    class Config:
        from_attributes = True


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


class DeliverySalePage(BaseModel):
    data: List[DeliverySaleOut]
    pagination: Pagination


class BatchReconcileIn(BaseModel):
    ids: List[int] = Field(min_length=1)


class BatchReconcileOut(BaseModel):
    reconciled: List[int]
    failed: List[Dict[str, Any]]


class NotificationOut(BaseModel):
    sale_id: int
    type: str
    due_date: date
    days_until_due: int
    net_value: Decimal
    description: Optional[str]


class DashboardOut(BaseModel):
    pending_count: int
    pending_gross: Decimal
    pending_net: Decimal
    pending_fees: Decimal
    overdue_count: int
    due_soon_count: int
    received_this_month_count: int
    received_this_month_net: Decimal


@router.post("/sales", response_model=DeliverySaleOut, status_code=201)
def create_sale(
    data: DeliverySaleCreate,
    db: Session = Depends(get_db),
    store: Store = Depends(get_store),
    operator: str = Depends(get_operator),
):
    return delivery_service.record(
        db,
        store.id,
        data.gross_value,
        fee_percent=data.fee_percent,
        sale_date=data.sale_date,
        description=data.description,
        created_by=operator,
    )


@router.get("/sales", response_model=DeliverySalePage)
def list_sales(
    status: Optional[DeliveryStatus] = None,
    month: Optional[int] = Query(default=None, ge=1, le=12),
    year: Optional[int] = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=200),
    db: Session = Depends(get_db),
    store: Store = Depends(get_store),
):
    return delivery_service.list_sales(
        db,
        store.id,
        status=status.value if status else None,
        month=month,
        year=year,
        page=page,
        limit=limit,
    )


# Declared before /sales/{sale_id}/... so the literal path wins
@router.put("/sales/batch-reconcile", response_model=BatchReconcileOut)
def batch_reconcile(
    data: BatchReconcileIn,
    db: Session = Depends(get_db),
    store: Store = Depends(get_store),
    operator: str = Depends(get_operator),
):
    return delivery_service.batch_reconcile(db, store.id, data.ids, operator)


@router.put("/sales/{sale_id}/reconcile", response_model=DeliverySaleOut)
def reconcile_sale(
    sale_id: int,
    db: Session = Depends(get_db),
    store: Store = Depends(get_store),
    operator: str = Depends(get_operator),
):
    return delivery_service.reconcile(db, store.id, sale_id, operator)


@router.delete("/sales/{sale_id}", status_code=204)
def delete_sale(sale_id: int, db: Session = Depends(get_db), store: Store = Depends(get_store)):
    delivery_service.delete_sale(db, store.id, sale_id)
    return Response(status_code=204)


@router.get("/dashboard", response_model=DashboardOut)
def dashboard(db: Session = Depends(get_db), store: Store = Depends(get_store)):
    return delivery_service.dashboard(db, store.id, local_today())


@router.get("/notifications", response_model=List[NotificationOut])
def notifications(db: Session = Depends(get_db), store: Store = Depends(get_store)):
    return delivery_service.notifications(db, store.id, local_today())
