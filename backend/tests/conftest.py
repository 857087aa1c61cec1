"""Pytest configuration and fixtures."""

import os

# Settings are read once at import time; point them at test values first
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["SHOPIFY_API_SECRET"] = "test-webhook-secret"
os.environ["RATE_LIMIT_ENABLED"] = "false"

from datetime import date
from typing import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from batchtrace.api.deps import get_metadata_resolver
from batchtrace.core.alerting import alert_manager
from batchtrace.core.metrics import metrics
from batchtrace.core.security import create_tenant_token
from batchtrace.db.base import Base
from batchtrace.db.session import configure_sqlite, get_db
from batchtrace.main import app
# Import all models to ensure they're registered with Base.metadata
from batchtrace.models import *
from batchtrace.services.batch_store import BatchStore
from batchtrace.services.metadata_resolver import StaticMetadataResolver
from batchtrace.services.product_registry import ProductRegistry

# Use in-memory SQLite for tests
TEST_DATABASE_URL = "sqlite:///:memory:"
TEST_SHOP = "test-shop.myshopify.com"
WEBHOOK_SECRET = "test-webhook-secret"


@pytest.fixture(scope="function")
def db_engine():
    """Create a test database engine."""
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    configure_sqlite(engine)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(db_engine) -> Generator[Session, None, None]:
    """Create a test database session."""
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(autouse=True)
def reset_observability():
    """Counters and alerts are process-wide; start every test from zero."""
    metrics.reset()
    alert_manager.clear()
    yield
    metrics.reset()
    alert_manager.clear()


@pytest.fixture
def resolver() -> StaticMetadataResolver:
    return StaticMetadataResolver()


@pytest.fixture(scope="function")
def client(db_session: Session, resolver) -> Generator[TestClient, None, None]:
    """Create a test client with database and metadata resolver overrides."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_metadata_resolver] = lambda: resolver
    # Disable rate limiters during tests to avoid flaky failures
    from batchtrace.core.rate_limit import limiter as global_limiter
    from batchtrace.core.rate_limit import webhook_limiter
    global_limiter.enabled = False
    webhook_limiter.enabled = False
    # Don't raise server exceptions so we can test error status codes
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def tenant_token() -> str:
    return create_tenant_token(TEST_SHOP)


@pytest.fixture
def auth_headers(tenant_token: str) -> dict:
    return {"Authorization": f"Bearer {tenant_token}"}


@pytest.fixture
def make_product(db_session: Session):
    """Register a product and return it."""
    def _make(external_product_id: str = "1001", name: str = "Honey 500g", sku: str = "HON-500"):
        product = ProductRegistry(db_session).ensure_product(external_product_id, name, sku)
        db_session.commit()
        return product
    return _make


@pytest.fixture
def make_batch(db_session: Session):
    """Create a batch for a product and return it."""
    def _make(product, batch_number: str, quantity: int, expiry_date: date | None = None):
        batch = BatchStore(db_session).create_batch(product.id, batch_number, expiry_date, quantity)
        db_session.commit()
        return batch
    return _make
