"""
Delivery-platform settlement tracker.

Platform sales are paid out after a fixed lag, net of the platform fee.
"Due soon" and "overdue" are derived from the due date on every read and are
never stored.
"""
from __future__ import annotations

import logging
import math
from datetime import date, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Iterable, List, Optional, TypedDict

from sqlalchemy.orm import Session

from till.core.business_day import local_today, month_bounds, utc_now
from till.core.config import settings
from till.core.errors import AlreadyReconciled, InvalidAmount, NotFound
from till.core.money import TWOPLACES, money, money_sum
from till.models.delivery_sale import DeliveryPlatformSale, DeliveryStatus


logger = logging.getLogger(__name__)


class BatchResult(TypedDict):
    reconciled: List[int]
    failed: List[Dict[str, Any]]


class Notification(TypedDict):
    sale_id: int
    type: str  # "overdue" or "due_soon"
    due_date: date
    days_until_due: int
    net_value: Decimal
    description: Optional[str]


def compute_net_value(gross_value, fee_percent) -> Decimal:
    gross = money(gross_value)
    fee = Decimal(str(fee_percent))
    return (gross * (Decimal("1") - fee / Decimal("100"))).quantize(TWOPLACES, rounding=ROUND_HALF_UP)


def compute_due_date(sale_date: date) -> date:
    return sale_date + timedelta(days=settings.delivery_settlement_lag_days)


def record(
    db: Session,
    store_id: int,
    gross_value,
    fee_percent=None,
    sale_date: Optional[date] = None,
    description: Optional[str] = None,
    created_by: Optional[str] = None,
    ledger_entry_id: Optional[int] = None,
    commit: bool = True,
) -> DeliveryPlatformSale:
    gross = money(gross_value)
    if gross <= 0:
        raise InvalidAmount("Gross value must be positive")
    fee = Decimal(str(settings.delivery_default_fee_percent if fee_percent is None else fee_percent))
    if fee < 0 or fee > 100:
        raise InvalidAmount("Fee percent must be between 0 and 100")
    sale_date = sale_date or local_today()

    sale = DeliveryPlatformSale(
        store_id=store_id,
        ledger_entry_id=ledger_entry_id,
        sale_date=sale_date,
        due_date=compute_due_date(sale_date),
        gross_value=gross,
        fee_percent=fee,
        net_value=compute_net_value(gross, fee),
        description=(description or "").strip() or None,
        status=DeliveryStatus.pending.value,
        created_by=created_by,
    )
    db.add(sale)
    if commit:
        db.commit()
        db.refresh(sale)
    else:
        db.flush()
    logger.info("Delivery sale gross=%s net=%s due=%s", sale.gross_value, sale.net_value, sale.due_date)
    return sale


def get_sale(db: Session, store_id: int, sale_id: int) -> DeliveryPlatformSale:
    sale = db.query(DeliveryPlatformSale).filter(
        DeliveryPlatformSale.id == sale_id,
        DeliveryPlatformSale.store_id == store_id,
    ).first()
    if not sale:
        raise NotFound(f"Delivery sale {sale_id} not found")
    return sale


def _apply_reconcile(sale: DeliveryPlatformSale, operator: Optional[str]) -> None:
    if sale.status == DeliveryStatus.reconciled.value:
        raise AlreadyReconciled(f"Delivery sale {sale.id} is already reconciled")
    sale.status = DeliveryStatus.reconciled.value
    sale.reconciled_at = utc_now()
    sale.reconciled_by = operator


def reconcile(db: Session, store_id: int, sale_id: int, operator: Optional[str] = None) -> DeliveryPlatformSale:
    sale = get_sale(db, store_id, sale_id)
    _apply_reconcile(sale, operator)
    db.commit()
    db.refresh(sale)
    return sale


def batch_reconcile(db: Session, store_id: int, sale_ids: Iterable[int], operator: Optional[str] = None) -> BatchResult:
    """Best effort: reconciles what it can and reports the rest."""
    result: BatchResult = {"reconciled": [], "failed": []}
    for sale_id in sale_ids:
        try:
            sale = get_sale(db, store_id, sale_id)
            _apply_reconcile(sale, operator)
        except (AlreadyReconciled, NotFound) as exc:
            result["failed"].append({"id": sale_id, "reason": exc.code, "detail": exc.detail})
            continue
        result["reconciled"].append(sale_id)
    db.commit()
    logger.info(
        "Batch reconcile: %s ok, %s failed",
        len(result["reconciled"]),
        len(result["failed"]),
    )
    return result


def delete_sale(db: Session, store_id: int, sale_id: int) -> None:
    sale = get_sale(db, store_id, sale_id)
    if sale.status == DeliveryStatus.reconciled.value:
        raise AlreadyReconciled("Reconciled sales cannot be deleted")
    db.delete(sale)
    db.commit()


def days_until_due(sale: DeliveryPlatformSale, today: date) -> int:
    return (sale.due_date - today).days


def is_due_soon(sale: DeliveryPlatformSale, today: date) -> bool:
    if sale.status != DeliveryStatus.pending.value:
        return False
    return 0 <= days_until_due(sale, today) <= settings.due_soon_days


def is_overdue(sale: DeliveryPlatformSale, today: date) -> bool:
    return sale.status == DeliveryStatus.pending.value and sale.due_date < today


def list_sales(
    db: Session,
    store_id: int,
    status: Optional[str] = None,
    month: Optional[int] = None,
    year: Optional[int] = None,
    page: int = 1,
    limit: int = 50,
) -> Dict[str, Any]:
    """Pending sales come ordered by due date; a month filter applies to the sale date."""
    query = db.query(DeliveryPlatformSale).filter(DeliveryPlatformSale.store_id == store_id)
    if status:
        query = query.filter(DeliveryPlatformSale.status == status)
    if month and year:
        start, end = month_bounds(month, year)
        query = query.filter(
            DeliveryPlatformSale.sale_date >= start,
            DeliveryPlatformSale.sale_date <= end,
        )

    total = query.count()
    page = max(page, 1)
    limit = max(min(limit, 200), 1)
    sales = (
        query.order_by(DeliveryPlatformSale.due_date.asc(), DeliveryPlatformSale.id.asc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "data": sales,
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "total_pages": max(math.ceil(total / limit), 1),
        },
    }


def notifications(db: Session, store_id: int, today: Optional[date] = None) -> List[Notification]:
    today = today or local_today()
    pending = db.query(DeliveryPlatformSale).filter(
        DeliveryPlatformSale.store_id == store_id,
        DeliveryPlatformSale.status == DeliveryStatus.pending.value,
    ).order_by(DeliveryPlatformSale.due_date.asc()).all()

    result: List[Notification] = []
    for sale in pending:
        if is_overdue(sale, today):
            kind = "overdue"
        elif is_due_soon(sale, today):
            kind = "due_soon"
        else:
            continue
        result.append({
            "sale_id": sale.id,
            "type": kind,
            "due_date": sale.due_date,
            "days_until_due": days_until_due(sale, today),
            "net_value": money(sale.net_value),
            "description": sale.description,
        })
    return result


def dashboard(db: Session, store_id: int, today: Optional[date] = None) -> Dict[str, Any]:
    today = today or local_today()
    sales = db.query(DeliveryPlatformSale).filter(DeliveryPlatformSale.store_id == store_id).all()
    pending = [s for s in sales if s.status == DeliveryStatus.pending.value]
    start, end = month_bounds(today.month, today.year)
    received_this_month = [
        s for s in sales
        if s.status == DeliveryStatus.reconciled.value
        and s.reconciled_at is not None
        and start <= s.reconciled_at.date() <= end
    ]
    return {
        "pending_count": len(pending),
        "pending_gross": money_sum(s.gross_value for s in pending),
        "pending_net": money_sum(s.net_value for s in pending),
        "pending_fees": money_sum(money(s.gross_value) - money(s.net_value) for s in pending),
        "overdue_count": sum(1 for s in pending if is_overdue(s, today)),
        "due_soon_count": sum(1 for s in pending if is_due_soon(s, today)),
        "received_this_month_count": len(received_this_month),
        "received_this_month_net": money_sum(s.net_value for s in received_this_month),
    }
