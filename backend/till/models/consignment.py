from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, Numeric, DateTime, Boolean, ForeignKey
from sqlalchemy.orm import relationship

from till.models.store import Base


class ConsignmentSupplier(Base):
    __tablename__ = "consignment_suppliers"

    id = Column(Integer, primary_key=True, index=True)
    store_id = Column(Integer, ForeignKey("stores.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    contact = Column(String(255), nullable=True)
    pix_key = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    products = relationship("ConsignmentProduct", back_populates="supplier", cascade="all, delete-orphan")


class ConsignmentProduct(Base):
    __tablename__ = "consignment_products"

    id = Column(Integer, primary_key=True, index=True)
    store_id = Column(Integer, ForeignKey("stores.id", ondelete="CASCADE"), nullable=False, index=True)
    supplier_id = Column(Integer, ForeignKey("consignment_suppliers.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    cost_price = Column(Numeric(12, 2), nullable=False, default=0)
    sale_price = Column(Numeric(12, 2), nullable=False, default=0)
    current_stock = Column(Integer, nullable=False, default=0)
    # Units sold since the last settlement with the supplier
    sold_qty = Column(Integer, nullable=False, default=0)
    active = Column(Boolean, nullable=False, default=True)

    supplier = relationship("ConsignmentSupplier", back_populates="products")
