from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, Numeric, Date, DateTime, ForeignKey

from till.models.store import Base


class SafeEntry(Base):
    __tablename__ = "safe_entries"

    id = Column(Integer, primary_key=True, index=True)
    store_id = Column(Integer, ForeignKey("stores.id", ondelete="CASCADE"), nullable=False, index=True)
    entry_date = Column(Date, nullable=False, index=True)
    description = Column(String(500), nullable=False)
    # "in" (deposit into the vault) or "out"
    kind = Column(String(10), nullable=False)
    value = Column(Numeric(12, 2), nullable=False)
    closing_record_id = Column(Integer, ForeignKey("closing_records.id"), nullable=True, index=True)
    created_by = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
