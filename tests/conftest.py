"""Shared fixtures: in-memory SQLite database and API client."""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from skualloc import models  # noqa: F401
from skualloc.api.main import app
from skualloc.db.postgres import Base, get_db
from skualloc.engine.sessions import create_category, create_session
from skualloc.etl.sku_import import import_skus, parse_import_rows
from skualloc.models import HierarchyDefinition, SkuData

# The example hierarchy: category -> color -> SKU
SAMPLE_ROWS = [
    {"category": "A", "color": "Red", "sku_code": "SKU001", "unitprice": "1000"},
    {"category": "A", "color": "Blue", "sku_code": "SKU002", "unitprice": "2000"},
]

BUDGET = 10_000_000


def make_definitions(*columns):
    return [
        HierarchyDefinition(level=i, column_name=column, display_order=i)
        for i, column in enumerate(columns, start=1)
    ]


def make_sku(sku_code, unit_price, **values):
    return SkuData(sku_code=sku_code, unit_price=unit_price, hierarchy_values=values)


@pytest.fixture
def definitions():
    return make_definitions("category", "color")


@pytest.fixture
def skus():
    return [
        make_sku("SKU001", 1000, category="A", color="Red"),
        make_sku("SKU002", 2000, category="A", color="Blue"),
    ]


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def budget_session(db):
    """Draft session owned by alice with period Q1 and the sample SKUs."""
    category = create_category(db, "alice", "Appliances")
    session = create_session(db, category, "Plan", "Q1", BUDGET)
    import_skus(db, session, parse_import_rows(SAMPLE_ROWS))
    return session


@pytest.fixture
def client(session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
