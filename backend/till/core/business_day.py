"""
Business day helpers.

A business day is a calendar date in the store's local time zone. Callers
compute ``today`` once per request and pass it down, so a reconciliation that
straddles midnight keeps working on the same day.
"""
import calendar
from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from till.core.config import settings


def store_now() -> datetime:
    return datetime.now(ZoneInfo(settings.timezone))


def local_today() -> date:
    return store_now().date()


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def is_rest_day(day: date) -> bool:
    return day.weekday() in settings.rest_weekday_set


def month_bounds(month: int, year: int) -> tuple[date, date]:
    if month < 1 or month > 12:
        raise ValueError("month must be between 1 and 12")
    last = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last)


def debt_due_date(purchase_date: date, due_day: int | None) -> date:
    """
    Due date of a store-credit purchase: the customer's due day in the month
    after the purchase (clamped to the month length), or a fixed grace period
    when the customer has no due day.
    """
    if not due_day:
        return purchase_date + timedelta(days=settings.customer_debt_grace_days)
    year = purchase_date.year + (1 if purchase_date.month == 12 else 0)
    month = 1 if purchase_date.month == 12 else purchase_date.month + 1
    last = calendar.monthrange(year, month)[1]
    return date(year, month, min(due_day, last))
