from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import Column, Integer, String, Numeric, Date, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from till.models.store import Base


class DebtStatus(str, Enum):
    pending = "pending"
    paid = "paid"
    # Derived on read, never stored
    overdue = "overdue"


class Customer(Base):
    __tablename__ = "customers"

    id = Column(Integer, primary_key=True, index=True)
    store_id = Column(Integer, ForeignKey("stores.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    nickname = Column(String(255), nullable=True)
    cpf = Column(String(20), nullable=True)
    phone = Column(String(50), nullable=True, index=True)
    notes = Column(String(500), nullable=True)
    # None means no limit
    credit_limit = Column(Numeric(12, 2), nullable=True)
    due_day = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=lambda: datetime.now(timezone.utc))

    debts = relationship("CustomerDebt", back_populates="customer")


class CustomerDebt(Base):
    __tablename__ = "customer_debts"

    id = Column(Integer, primary_key=True, index=True)
    store_id = Column(Integer, ForeignKey("stores.id", ondelete="CASCADE"), nullable=False, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id", ondelete="CASCADE"), nullable=False, index=True)
    ledger_entry_id = Column(Integer, ForeignKey("ledger_entries.id", ondelete="SET NULL"), nullable=True, index=True)
    purchase_date = Column(Date, nullable=False)
    description = Column(String(500), nullable=True)
    total_value = Column(Numeric(12, 2), nullable=False, default=0)
    status = Column(String(20), nullable=False, default=DebtStatus.pending.value, index=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    created_by = Column(String(255), nullable=True)

    customer = relationship("Customer", back_populates="debts")
