from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from till.core.database import get_db
from till.models.store import Store

router = APIRouter()


class StoreCreate(BaseModel):
    name: str
    slug: str


class StoreOut(BaseModel):
    id: int
    name: str
    slug: str
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True


@router.post("/", response_model=StoreOut, status_code=201)
def create_store(data: StoreCreate, db: Session = Depends(get_db)):
    slug = data.slug.strip().lower()
    if not slug:
        raise HTTPException(status_code=400, detail="Slug is required")
    if db.query(Store).filter(Store.slug == slug).first():
        raise HTTPException(status_code=400, detail="Slug already in use")
    store = Store(name=data.name.strip(), slug=slug)
    db.add(store)
    db.commit()
    db.refresh(store)
    return store


@router.get("/", response_model=List[StoreOut])
def list_stores(db: Session = Depends(get_db)):
    return db.query(Store).order_by(Store.name.asc()).all()
