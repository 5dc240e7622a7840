"""
Consignment stock tracker.

Products belong to third-party suppliers. Sales move units from
``current_stock`` to ``sold_qty``; settling with a supplier zeroes ``sold_qty``.
The amount paid at settlement is computed by the caller with
``settlement_amount`` *before* calling ``settle``: the tracker only resets
counters, so a rounded or partial payment never blocks the reset.

Settlement assumes a single writer per supplier. Two concurrent settlements
could both read the same pending amount; nothing here locks against that.
"""
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, TypedDict

from sqlalchemy.orm import Session

from till.core.errors import InsufficientStock, InvalidAmount, NotFound
from till.core.money import money, money_sum
from till.models.consignment import ConsignmentProduct, ConsignmentSupplier


logger = logging.getLogger(__name__)


class SaleItem(TypedDict):
    product_id: int
    qty: int


class SupplierSummary(TypedDict):
    id: int
    name: str
    contact: Optional[str]
    pix_key: Optional[str]
    total_debt: Decimal
    total_stock_value: Decimal
    product_count: int


def get_supplier(db: Session, store_id: int, supplier_id: int) -> ConsignmentSupplier:
    supplier = db.query(ConsignmentSupplier).filter(
        ConsignmentSupplier.id == supplier_id,
        ConsignmentSupplier.store_id == store_id,
    ).first()
    if not supplier:
        raise NotFound(f"Consignment supplier {supplier_id} not found")
    return supplier


def create_supplier(
    db: Session,
    store_id: int,
    name: str,
    contact: Optional[str] = None,
    pix_key: Optional[str] = None,
) -> ConsignmentSupplier:
    if not (name or "").strip():
        raise InvalidAmount("Supplier name is required")
    supplier = ConsignmentSupplier(
        store_id=store_id,
        name=name.strip(),
        contact=(contact or "").strip() or None,
        pix_key=(pix_key or "").strip() or None,
    )
    db.add(supplier)
    db.commit()
    db.refresh(supplier)
    return supplier


def delete_supplier(db: Session, store_id: int, supplier_id: int) -> None:
    supplier = get_supplier(db, store_id, supplier_id)
    db.delete(supplier)
    db.commit()


def _supplier_products(db: Session, store_id: int, supplier_id: int) -> List[ConsignmentProduct]:
    return db.query(ConsignmentProduct).filter(
        ConsignmentProduct.store_id == store_id,
        ConsignmentProduct.supplier_id == supplier_id,
    ).order_by(ConsignmentProduct.name.asc()).all()


def settlement_amount(db: Session, store_id: int, supplier_id: int) -> Decimal:
    """What the store owes the supplier: sum of sold_qty x cost_price."""
    get_supplier(db, store_id, supplier_id)
    products = _supplier_products(db, store_id, supplier_id)
    return money_sum(money(p.cost_price) * p.sold_qty for p in products)


def list_suppliers(db: Session, store_id: int) -> List[SupplierSummary]:
    suppliers = db.query(ConsignmentSupplier).filter(
        ConsignmentSupplier.store_id == store_id,
    ).order_by(ConsignmentSupplier.name.asc()).all()

    result: List[SupplierSummary] = []
    for supplier in suppliers:
        products = _supplier_products(db, store_id, supplier.id)
        result.append({
            "id": supplier.id,
            "name": supplier.name,
            "contact": supplier.contact,
            "pix_key": supplier.pix_key,
            "total_debt": money_sum(money(p.cost_price) * p.sold_qty for p in products),
            # Stock valued at sale price
            "total_stock_value": money_sum(money(p.sale_price) * p.current_stock for p in products),
            "product_count": len(products),
        })
    return result


def get_product(db: Session, store_id: int, product_id: int) -> ConsignmentProduct:
    product = db.query(ConsignmentProduct).filter(
        ConsignmentProduct.id == product_id,
        ConsignmentProduct.store_id == store_id,
    ).first()
    if not product:
        raise NotFound(f"Consignment product {product_id} not found")
    return product


def create_product(
    db: Session,
    store_id: int,
    supplier_id: int,
    name: str,
    cost_price,
    sale_price,
    initial_qty: int = 0,
) -> ConsignmentProduct:
    get_supplier(db, store_id, supplier_id)
    if initial_qty < 0:
        raise InvalidAmount("Initial quantity cannot be negative")
    if money(cost_price) < 0 or money(sale_price) < 0:
        raise InvalidAmount("Prices cannot be negative")
    product = ConsignmentProduct(
        store_id=store_id,
        supplier_id=supplier_id,
        name=name.strip(),
        cost_price=money(cost_price),
        sale_price=money(sale_price),
        current_stock=initial_qty,
        sold_qty=0,
        active=True,
    )
    db.add(product)
    db.commit()
    db.refresh(product)
    return product


def list_products(db: Session, store_id: int, supplier_id: Optional[int] = None, active_only: bool = False) -> List[ConsignmentProduct]:
    query = db.query(ConsignmentProduct).filter(ConsignmentProduct.store_id == store_id)
    if supplier_id is not None:
        query = query.filter(ConsignmentProduct.supplier_id == supplier_id)
    if active_only:
        query = query.filter(ConsignmentProduct.active.is_(True))
    return query.order_by(ConsignmentProduct.name.asc()).all()


def adjust_product(db: Session, store_id: int, product_id: int, patch: Dict[str, Any]) -> ConsignmentProduct:
    """Manual adjustment (stock count, prices, name)."""
    product = get_product(db, store_id, product_id)
    for key in ("current_stock", "sold_qty"):
        if patch.get(key) is not None:
            if patch[key] < 0:
                raise InvalidAmount(f"{key} cannot be negative")
    for key in ("cost_price", "sale_price"):
        if patch.get(key) is not None and money(patch[key]) < 0:
            raise InvalidAmount(f"{key} cannot be negative")

    if patch.get("current_stock") is not None:
        product.current_stock = patch["current_stock"]
    if patch.get("sold_qty") is not None:
        product.sold_qty = patch["sold_qty"]
    if patch.get("cost_price") is not None:
        product.cost_price = money(patch["cost_price"])
    if patch.get("sale_price") is not None:
        product.sale_price = money(patch["sale_price"])
    if patch.get("name"):
        product.name = patch["name"].strip()
    if patch.get("active") is not None:
        product.active = bool(patch["active"])
    db.commit()
    db.refresh(product)
    return product


def delete_product(db: Session, store_id: int, product_id: int) -> None:
    product = get_product(db, store_id, product_id)
    db.delete(product)
    db.commit()


def _merge_items(items: Iterable[SaleItem]) -> Dict[int, int]:
    merged: Dict[int, int] = {}
    for item in items:
        qty = int(item["qty"])
        if qty <= 0:
            raise InvalidAmount("Sold quantity must be positive")
        merged[item["product_id"]] = merged.get(item["product_id"], 0) + qty
    if not merged:
        raise InvalidAmount("At least one item is required")
    return merged


def _check_supplier(product: ConsignmentProduct, supplier_id: Optional[int]) -> None:
    if supplier_id is not None and product.supplier_id != supplier_id:
        raise InvalidAmount(
            f"Product '{product.name}' does not belong to supplier {supplier_id}"
        )


def record_sale(
    db: Session,
    store_id: int,
    items: Iterable[SaleItem],
    supplier_id: Optional[int] = None,
    commit: bool = True,
) -> List[ConsignmentProduct]:
    """
    Move sold units out of stock for a batch of items, all or nothing.

    Every item is validated before any product is touched, so an
    ``InsufficientStock`` on the last item leaves the first ones unchanged.
    With ``supplier_id`` every product must belong to that supplier.
    Pass ``commit=False`` to keep the changes in the caller's transaction.
    """
    merged = _merge_items(items)

    products: Dict[int, ConsignmentProduct] = {}
    for product_id, qty in merged.items():
        product = get_product(db, store_id, product_id)
        _check_supplier(product, supplier_id)
        if qty > product.current_stock:
            raise InsufficientStock(
                f"Product '{product.name}' has {product.current_stock} in stock, {qty} requested"
            )
        products[product_id] = product

    for product_id, qty in merged.items():
        product = products[product_id]
        product.current_stock -= qty
        product.sold_qty += qty

    if commit:
        db.commit()
    else:
        db.flush()
    logger.info("Consignment sale recorded for %s product(s)", len(products))
    return list(products.values())


def sale_value(db: Session, store_id: int, items: Iterable[SaleItem], supplier_id: Optional[int] = None) -> Decimal:
    """Sale-price value of a batch, used when the ledger entry has no amount."""
    values = []
    for product_id, qty in _merge_items(items).items():
        product = get_product(db, store_id, product_id)
        _check_supplier(product, supplier_id)
        values.append(money(product.sale_price) * qty)
    return money_sum(values)


def settle(db: Session, store_id: int, supplier_id: int, commit: bool = True) -> int:
    """Zero sold_qty for every product of the supplier. Returns how many changed."""
    get_supplier(db, store_id, supplier_id)
    changed = db.query(ConsignmentProduct).filter(
        ConsignmentProduct.store_id == store_id,
        ConsignmentProduct.supplier_id == supplier_id,
    ).update({ConsignmentProduct.sold_qty: 0}, synchronize_session="fetch")

    if commit:
        db.commit()
    else:
        db.flush()
    logger.info("Consignment settlement supplier=%s products=%s", supplier_id, changed)
    return changed
