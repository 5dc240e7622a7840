from datetime import datetime

from sqlalchemy import Column, Integer, String, UniqueConstraint, Boolean, DateTime
from sqlalchemy.orm import declarative_base


Base = declarative_base()


class Store(Base):
    __tablename__ = "stores"
    __table_args__ = (UniqueConstraint("slug", name="uq_store_slug"),)

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    slug = Column(String(255), nullable=False, index=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
