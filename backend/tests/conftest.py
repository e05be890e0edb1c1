import os
import tempfile

# must happen before storefront.config is imported anywhere
_TMP = tempfile.mkdtemp(prefix="storefront-tests-")
os.environ["DATABASE_URL"] = "sqlite:///" + os.path.join(_TMP, "test.db")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("SQLITE_BUSY_TIMEOUT", "30")

import pytest
from fastapi.testclient import TestClient

from storefront.db import SessionLocal, init_db
from storefront.main import app
from storefront.repositories.user_repo import UserRepository
from storefront.services.product_service import ProductService


@pytest.fixture(autouse=True)
def reset_db():
    init_db(reset=True)
    yield


@pytest.fixture
def db():
    s = SessionLocal()
    try:
        yield s
    finally:
        s.close()


@pytest.fixture
def client():
    return TestClient(app)


def _create_user(email, role="customer"):
    s = SessionLocal()
    try:
        u = UserRepository(s).create(email, role=role)
        s.commit()
        return u.id
    finally:
        s.close()


@pytest.fixture
def make_user():
    """Factory returning the id of a committed user."""
    return _create_user


@pytest.fixture
def customer_id():
    return _create_user("customer@example.com")


@pytest.fixture
def admin_id():
    return _create_user("admin@example.com", role="admin")


@pytest.fixture
def make_product():
    """Factory: make_product(sku, price, stock) -> product id, committed."""

    def _make(sku, price="10.00", stock=10, name=None):
        s = SessionLocal()
        try:
            p = ProductService(s).create_with_stock(
                {"sku": sku, "name": name or f"Product {sku}", "price": price}, stock
            )
            return p.id
        finally:
            s.close()

    return _make
