from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, Numeric, Date, DateTime, Boolean, ForeignKey, UniqueConstraint, JSON

from till.models.store import Base


class ClosingRecord(Base):
    """Signed snapshot of one business day. Append-only: there is no update path."""

    __tablename__ = "closing_records"
    __table_args__ = (
        UniqueConstraint("store_id", "business_day", name="uq_closing_store_day"),
    )

    id = Column(Integer, primary_key=True, index=True)
    store_id = Column(Integer, ForeignKey("stores.id", ondelete="CASCADE"), nullable=False, index=True)
    business_day = Column(Date, nullable=False, index=True)

    declared_gross_sales = Column(Numeric(12, 2), nullable=False, default=0)
    opening_balance = Column(Numeric(12, 2), nullable=False, default=0)
    extra_cash_received = Column(Numeric(12, 2), nullable=False, default=0)

    # Digital payment totals
    credit_total = Column(Numeric(12, 2), nullable=False, default=0)
    debit_total = Column(Numeric(12, 2), nullable=False, default=0)
    card_pix_total = Column(Numeric(12, 2), nullable=False, default=0)
    direct_pix_total = Column(Numeric(12, 2), nullable=False, default=0)

    physical_cash_counted = Column(Numeric(12, 2), nullable=False, default=0)
    denomination_counts = Column(JSON, nullable=True)

    total_expenses = Column(Numeric(12, 2), nullable=False, default=0)
    total_store_credit_issued = Column(Numeric(12, 2), nullable=False, default=0)

    expected_total = Column(Numeric(12, 2), nullable=False, default=0)
    counted_total = Column(Numeric(12, 2), nullable=False, default=0)
    # Signed and exact; tolerance is applied only when displayed
    discrepancy = Column(Numeric(12, 2), nullable=False, default=0)

    safe_deposit = Column(Numeric(12, 2), nullable=False, default=0)
    next_opening_balance = Column(Numeric(12, 2), nullable=False, default=0)

    retroactive = Column(Boolean, nullable=False, default=False)
    closed_by = Column(String(255), nullable=False)
    closed_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))


class CloseSession(Base):
    """In-progress close-out wizard, persisted so a reload does not lose it."""

    __tablename__ = "close_sessions"

    id = Column(String(36), primary_key=True)
    store_id = Column(Integer, ForeignKey("stores.id", ondelete="CASCADE"), nullable=False, index=True)
    business_day = Column(Date, nullable=False, index=True)
    state = Column(String(20), nullable=False, default="sales")
    data = Column(JSON, nullable=False, default=dict)
    # Entry ids the summary was computed from
    snapshot_entry_ids = Column(JSON, nullable=True)
    closing_record_id = Column(Integer, ForeignKey("closing_records.id"), nullable=True)
    operator = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=lambda: datetime.now(timezone.utc))
