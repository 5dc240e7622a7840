import os

# Must be set before till.core.config is imported
os.environ.setdefault("TILL_ENV", "test")
os.environ.setdefault("TILL_DATABASE_URL", "sqlite://")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from till.core.database import get_db
from till.main import app
from till.models import Base
from till.models.store import Store


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def store(db):
    store = Store(name="Farmacia Central", slug="central")
    db.add(store)
    db.commit()
    db.refresh(store)
    return store


@pytest.fixture()
def client(session_factory, store):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        test_client.headers.update({"X-Store-ID": store.slug, "X-Operator": "ana"})
        yield test_client
    app.dependency_overrides.clear()
