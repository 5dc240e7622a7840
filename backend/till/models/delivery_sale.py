from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import Column, Integer, String, Numeric, Date, DateTime, ForeignKey

from till.models.store import Base


class DeliveryStatus(str, Enum):
    pending = "pending"
    reconciled = "reconciled"


class DeliveryPlatformSale(Base):
    __tablename__ = "delivery_platform_sales"

    id = Column(Integer, primary_key=True, index=True)
    store_id = Column(Integer, ForeignKey("stores.id", ondelete="CASCADE"), nullable=False, index=True)
    ledger_entry_id = Column(Integer, ForeignKey("ledger_entries.id", ondelete="SET NULL"), nullable=True, index=True)
    sale_date = Column(Date, nullable=False, index=True)
    due_date = Column(Date, nullable=False, index=True)
    gross_value = Column(Numeric(12, 2), nullable=False)
    fee_percent = Column(Numeric(5, 2), nullable=False, default=0)
    net_value = Column(Numeric(12, 2), nullable=False)
    description = Column(String(500), nullable=True)
    status = Column(String(20), nullable=False, default=DeliveryStatus.pending.value, index=True)
    reconciled_at = Column(DateTime(timezone=True), nullable=True)
    reconciled_by = Column(String(255), nullable=True)
    created_by = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
