from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import Column, Integer, String, Numeric, Date, DateTime, Boolean, ForeignKey

from till.models.store import Base


class EntryCategory(str, Enum):
    expense = "expense"
    direct_deposit = "direct_deposit"
    store_credit = "store_credit"
    uncataloged_sale = "uncataloged_sale"
    consignment_sale = "consignment_sale"
    consignment_settlement = "consignment_settlement"
    delivery_platform_sale = "delivery_platform_sale"


# Money leaving the drawer; every other category is an inflow
OUTFLOW_CATEGORIES = {EntryCategory.expense, EntryCategory.consignment_settlement}
SUPPLIER_CATEGORIES = {EntryCategory.consignment_sale, EntryCategory.consignment_settlement}


class LedgerEntry(Base):
    __tablename__ = "ledger_entries"

    id = Column(Integer, primary_key=True, index=True)
    store_id = Column(Integer, ForeignKey("stores.id", ondelete="CASCADE"), nullable=False, index=True)
    business_day = Column(Date, nullable=False, index=True)
    category = Column(String(40), nullable=False, index=True)
    description = Column(String(500), nullable=False, default="")

    # Always non-negative; the category gives the direction
    amount = Column(Numeric(12, 2), nullable=False, default=0)

    linked_customer_id = Column(Integer, ForeignKey("customers.id", ondelete="SET NULL"), nullable=True, index=True)
    linked_supplier_id = Column(Integer, ForeignKey("consignment_suppliers.id", ondelete="SET NULL"), nullable=True, index=True)

    closed = Column(Boolean, nullable=False, default=False, index=True)
    closing_record_id = Column(Integer, ForeignKey("closing_records.id"), nullable=True, index=True)

    created_by = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=lambda: datetime.now(timezone.utc))

    @property
    def is_outflow(self) -> bool:
        return EntryCategory(self.category) in OUTFLOW_CATEGORIES
