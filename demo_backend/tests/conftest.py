"""
Pytest configuration for demo_backend. In-memory SQLite and an in-memory signing key so
tests don't touch the filesystem.
"""
import os

# In-memory SQLite; database.py uses StaticPool so all connections share the same DB
os.environ["DEMO_DATABASE_URL"] = "sqlite:///:memory:"
# Empty path: generate the signing key in memory, never write a PEM file
os.environ["DEMO_SIGNING_KEY_PATH"] = ""
for _name in ("DEMO_SEED_CUSTOMER", "DEMO_SEED_TOKEN"):
    os.environ.pop(_name, None)

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from demo_backend.database import SessionLocal, init_db  # noqa: E402
from demo_backend.main import app  # noqa: E402
from demo_backend.models import InventoryItem, Order, OrderItem, RefreshToken  # noqa: E402
from demo_backend.rate_limit import login_limiter  # noqa: E402
from demo_backend.seed import add_customer, seed_inventory  # noqa: E402

CUSTOMER_ID = "CUST-001"
CUSTOMER_TOKEN = "secret-token"


@pytest.fixture(autouse=True)
def _reset_login_limiter():
    login_limiter.reset()
    yield
    login_limiter.reset()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def seeded():
    """Fresh demo data: the five demo inventory items, no orders, one customer."""
    init_db()
    db = SessionLocal()
    try:
        db.query(OrderItem).delete()
        db.query(Order).delete()
        db.query(InventoryItem).delete()
        db.query(RefreshToken).delete()
        db.commit()
        seed_inventory(db)
        add_customer(db, CUSTOMER_ID, CUSTOMER_TOKEN, name="Demo Customer")
        yield db
    finally:
        db.close()


@pytest.fixture
def auth_headers(client, seeded):
    r = client.post("/api/auth/login", json={"customerId": CUSTOMER_ID, "token": CUSTOMER_TOKEN})
    assert r.status_code == 200
    return {"Authorization": f"Bearer {r.json()['accessToken']}"}
