from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from till.core.config import settings
from till.core.database import get_db
from till.models.store import Store


def get_store_slug(request: Request) -> str:
    slug = request.headers.get(settings.store_header)
    if slug:
        return slug
    # Fallback: subdomain e.g., loja1.myapp.com
    host = request.headers.get("host", "")
    parts = host.split(":")[0].split(".")
    if len(parts) >= 3:
        return parts[0]
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing store header")


def get_store(db: Session = Depends(get_db), store_slug: str = Depends(get_store_slug)) -> Store:
    store = db.query(Store).filter(Store.slug == store_slug, Store.is_active.is_(True)).first()
    if not store:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Store not found")
    return store


def get_operator(request: Request) -> str:
    """Name stamped on records the request creates (closed_by, created_by)."""
    operator: Optional[str] = request.headers.get(settings.operator_header)
    return (operator or "").strip() or "system"
