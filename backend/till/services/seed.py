import logging

from sqlalchemy.orm import Session

from till.models.store import Store


logger = logging.getLogger(__name__)


def seed_demo(db: Session) -> Store:
    """Make sure the ``demo`` store exists so a fresh dev database is usable."""
    store = db.query(Store).filter(Store.slug == "demo").first()
    if store:
        return store
    store = Store(name="Demo Pharmacy", slug="demo")
    db.add(store)
    db.commit()
    db.refresh(store)
    logger.info("Seeded demo store id=%s", store.id)
    return store
