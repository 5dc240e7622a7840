from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from till.core.database import get_db
from till.core.deps import get_store
from till.models.store import Store
from till.services import consignment_service

router = APIRouter()


class SupplierCreate(BaseModel):
    name: str
    contact: Optional[str] = None
    pix_key: Optional[str] = None


class SupplierOut(BaseModel):
    id: int
    name: str
    contact: Optional[str]
    pix_key: Optional[str]

    class Config:
        from_attributes = True


class SupplierSummaryOut(SupplierOut):
    total_debt: Decimal
    total_stock_value: Decimal
    product_count: int


class ProductCreate(BaseModel):
    supplier_id: int
    name: str
    cost_price: Decimal = Field(ge=0)
    sale_price: Decimal = Field(ge=0)
    initial_qty: int = Field(default=0, ge=0)


class ProductUpdate(BaseModel):
    name: Optional[str] = None
    cost_price: Optional[Decimal] = Field(default=None, ge=0)
    sale_price: Optional[Decimal] = Field(default=None, ge=0)
    current_stock: Optional[int] = Field(default=None, ge=0)
    sold_qty: Optional[int] = Field(default=None, ge=0)
    active: Optional[bool] = None


class ProductOut(BaseModel):
    id: int
    supplier_id: int
    name: str
    cost_price: Decimal
    sale_price: Decimal
    current_stock: int
    sold_qty: int
    active: bool

    class Config:
        from_attributes = True


class SaleItemIn(BaseModel):
    product_id: int
    qty: int = Field(gt=0)


class SaleIn(BaseModel):
    items: List[SaleItemIn]


class SettlementOut(BaseModel):
    supplier_id: int
    amount: Decimal


class SettleOut(SettlementOut):
    products_reset: int


@router.get("/suppliers", response_model=List[SupplierSummaryOut])
def list_suppliers(db: Session = Depends(get_db), store: Store = Depends(get_store)):
    return consignment_service.list_suppliers(db, store.id)


@router.post("/suppliers", response_model=SupplierOut, status_code=201)
def create_supplier(data: SupplierCreate, db: Session = Depends(get_db), store: Store = Depends(get_store)):
    return consignment_service.create_supplier(db, store.id, data.name, data.contact, data.pix_key)


@router.delete("/suppliers/{supplier_id}", status_code=204)
def delete_supplier(supplier_id: int, db: Session = Depends(get_db), store: Store = Depends(get_store)):
    consignment_service.delete_supplier(db, store.id, supplier_id)
    return Response(status_code=204)


@router.get("/suppliers/{supplier_id}/settlement", response_model=SettlementOut)
def settlement_preview(supplier_id: int, db: Session = Depends(get_db), store: Store = Depends(get_store)):
    return {
        "supplier_id": supplier_id,
        "amount": consignment_service.settlement_amount(db, store.id, supplier_id),
    }


@router.post("/suppliers/{supplier_id}/settle", response_model=SettleOut)
def settle_supplier(supplier_id: int, db: Session = Depends(get_db), store: Store = Depends(get_store)):
    """
    Reset the supplier's sold counters without writing a ledger entry.
    The payout itself is normally recorded as a consignment_settlement entry,
    which performs this reset in the same transaction.
    """
    amount = consignment_service.settlement_amount(db, store.id, supplier_id)
    changed = consignment_service.settle(db, store.id, supplier_id)
    return {"supplier_id": supplier_id, "amount": amount, "products_reset": changed}


@router.get("/products", response_model=List[ProductOut])
def list_products(
    supplier_id: Optional[int] = None,
    active_only: bool = False,
    db: Session = Depends(get_db),
    store: Store = Depends(get_store),
):
    return consignment_service.list_products(db, store.id, supplier_id, active_only)


@router.post("/products", response_model=ProductOut, status_code=201)
def create_product(data: ProductCreate, db: Session = Depends(get_db), store: Store = Depends(get_store)):
    return consignment_service.create_product(
        db,
        store.id,
        data.supplier_id,
        data.name,
        data.cost_price,
        data.sale_price,
        data.initial_qty,
    )


@router.patch("/products/{product_id}", response_model=ProductOut)
def update_product(
    product_id: int,
    data: ProductUpdate,
    db: Session = Depends(get_db),
    store: Store = Depends(get_store),
):
    return consignment_service.adjust_product(db, store.id, product_id, data.model_dump(exclude_unset=True))


@router.delete("/products/{product_id}", status_code=204)
def delete_product(product_id: int, db: Session = Depends(get_db), store: Store = Depends(get_store)):
    consignment_service.delete_product(db, store.id, product_id)
    return Response(status_code=204)


@router.post("/sales", response_model=List[ProductOut])
def record_sale(data: SaleIn, db: Session = Depends(get_db), store: Store = Depends(get_store)):
    return consignment_service.record_sale(db, store.id, [item.model_dump() for item in data.items])
