from datetime import date, datetime
from decimal import Decimal
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from till.core.database import get_db
from till.core.deps import get_operator, get_store
from till.models.store import Store
from till.services import safe_service

router = APIRouter()


class SafeEntryCreate(BaseModel):
    kind: Literal["in", "out"]
    value: Decimal = Field(gt=0, max_digits=12, decimal_places=2)
    description: str
    entry_date: Optional[date] = None


class SafeEntryOut(BaseModel):
    id: int
    entry_date: date
    description: str
    kind: str
    value: Decimal
    closing_record_id: Optional[int]
    created_by: Optional[str]
    created_at: Optional[datetime]

    class Config:
        from_attributes = True


@router.get("/entries", response_model=List[SafeEntryOut])
def list_entries(db: Session = Depends(get_db), store: Store = Depends(get_store)):
    return safe_service.list_entries(db, store.id)


@router.post("/entries", response_model=SafeEntryOut, status_code=201)
def add_entry(
    data: SafeEntryCreate,
    db: Session = Depends(get_db),
    store: Store = Depends(get_store),
    operator: str = Depends(get_operator),
):
    return safe_service.add_entry(
        db,
        store.id,
        data.kind,
        data.value,
        data.description,
        entry_date=data.entry_date,
        created_by=operator,
    )


@router.get("/balance")
def balance(db: Session = Depends(get_db), store: Store = Depends(get_store)):
    return {"balance": str(safe_service.balance(db, store.id))}
