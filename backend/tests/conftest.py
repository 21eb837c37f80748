"""
Shared test fixtures for Clinic Warehouse tests

Provides database setup, client creation, and common stock fixtures
"""
import os

# Keep the app's own engine off PostgreSQL while tests import it
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LOG_FORMAT", "text")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.main import app  # noqa: E402
from app.db.base import Base  # noqa: E402
from app.db.session import get_db  # noqa: E402
from tests.factories import (  # noqa: E402
    TODAY,
    create_test_employee,
    create_test_item,
    create_test_supplier,
    reset_sequences,
)


# Create in-memory SQLite database for testing
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"
engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def create_tables(engine):
    """Create all tables for testing using SQLAlchemy metadata"""
    # Import all models to ensure they're registered with Base
    from app.models import (  # noqa: F401
        Item, ItemUnit, ItemBatch, StorageTransaction, StorageTransactionLine,
        Supplier, Employee,
    )

    Base.metadata.create_all(bind=engine)


def drop_tables(engine):
    """Drop all tables after testing"""
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session():
    """Create a fresh database session for each test"""
    create_tables(engine)
    reset_sequences()

    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        drop_tables(engine)


@pytest.fixture
def client(db_session):
    """Create a test client with database override"""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def today():
    return TODAY


@pytest.fixture
def employee(db_session):
    """Active storekeeper"""
    emp = create_test_employee(db_session, employee_code="EMP-001", full_name="Store Keeper")
    db_session.commit()
    return emp


@pytest.fixture
def supplier(db_session):
    sup = create_test_supplier(db_session, supplier_code="SUP-001", supplier_name="Medi Supply Co")
    db_session.commit()
    return sup


@pytest.fixture
def gloves(db_session):
    """Item counted in pieces, packed in boxes of 10"""
    item = create_test_item(
        db_session,
        item_code="GLV-001",
        item_name="Nitrile Gloves",
        units=[("piece", 1), ("box", 10)],
        min_stock_level=20,
    )
    db_session.commit()
    return item
