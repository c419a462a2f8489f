import os
import tempfile

# Configure before the application modules read their settings
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["JWT_SECRET_KEY"] = "test-secret-key"
os.environ["LOG_DIR"] = tempfile.mkdtemp(prefix="medsupply-test-logs-")

from datetime import date, timedelta
from typing import Dict, Iterable

import pytest
from fastapi.testclient import TestClient
from jose import jwt

from medsupply.crud.permissions import get_permissions_by_keys, permission_catalogue, seed_permissions
from medsupply.database import SessionLocal, engine, get_db
from medsupply.main import app
from medsupply.models.principals import Principal
from medsupply.models.products import Product, ProductUnit
from medsupply.models.users import User
from medsupply.models.warehouses import Warehouse, WarehouseStatus
from medsupply.utils.access import UserContext
from medsupply.utils.auth_utils import JWT_ALGORITHM, JWT_SECRET_KEY

ALL_PERMISSIONS = [f"{resource}.{action}" for resource, action in permission_catalogue()]


def make_token(username: str) -> str:
    return jwt.encode({"sub": username}, JWT_SECRET_KEY, algorithm=JWT_ALGORITHM)


def auth(username: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {make_token(username)}"}


@pytest.fixture(scope="function")
def db():
    """Session bound to an outer transaction that is rolled back after the test."""
    connection = engine.connect()
    transaction = connection.begin()
    session = SessionLocal(bind=connection)
    seed_permissions(session)
    try:
        yield session
    finally:
        session.close()
        transaction.rollback()
        connection.close()


@pytest.fixture(scope="function")
def client(db):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    test_client = TestClient(app)
    yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def token_headers():
    return auth


@pytest.fixture
def make_user(db):
    """Create a user holding ``permissions`` and return their auth headers."""
    def factory(username: str, permissions: Iterable[str] = (), role: str = "user") -> Dict[str, str]:
        user = User(username=username, name=username.title(), role=role, created_by="tests")
        user.permissions = get_permissions_by_keys(db, permissions)
        db.add(user)
        db.commit()
        return auth(username)
    return factory


@pytest.fixture
def admin(make_user):
    return make_user("admin", ALL_PERMISSIONS, role="admin")


@pytest.fixture
def admin_ctx(db, admin):
    user = db.query(User).filter(User.username == "admin").first()
    return UserContext(user.id, user.username, user.role, frozenset(ALL_PERMISSIONS))


@pytest.fixture
def principal(db):
    record = Principal(name="Sun Pharma", gst_number="27AAACS1234Z1Z5", email="orders@sun.example", created_by="tests")
    db.add(record)
    db.commit()
    return record


@pytest.fixture
def products(db, principal):
    records = [
        Product(code="PARA500", name="Paracetamol 500mg", principal_id=principal.id, unit=ProductUnit.BOX,
                gst_percentage=12, created_by="tests"),
        Product(code="AMOX250", name="Amoxicillin 250mg", principal_id=principal.id, unit=ProductUnit.BOX,
                gst_percentage=12, created_by="tests"),
    ]
    db.add_all(records)
    db.commit()
    return records


@pytest.fixture
def warehouse(db):
    record = Warehouse(warehouse_code="WH-MAIN", name="Main Warehouse", status=WarehouseStatus.ACTIVE,
                       is_default=True, created_by="tests")
    db.add(record)
    db.commit()
    return record


@pytest.fixture
def po_payload(principal, products):
    """The worked example order: 100 units less 10 FOC at 50, 10% off, IGST 5%."""
    def factory(**overrides) -> dict:
        payload = {
            "principal_id": principal.id,
            "bill_to": {"branch_warehouse": "Chennai Branch", "name": "MedSupply Chennai", "gstin": "33AAACM0000A1Z1"},
            "ship_to": {"branch_warehouse": "Chennai Warehouse", "name": "MedSupply Chennai"},
            "tax_type": "IGST",
            "gst_rate": "5",
            "to_emails": ["orders@sun.example"],
            "products": [
                {"product_id": products[0].id, "quantity": 100, "foc": 10, "unit_price": "50",
                 "discount": "10", "discount_type": "percentage"},
            ],
        }
        payload.update(overrides)
        return payload
    return factory


@pytest.fixture
def create_po(client, admin, po_payload):
    def factory(headers=None, **overrides) -> dict:
        response = client.post("/purchase-orders/", json=po_payload(**overrides), headers=headers or admin)
        assert response.status_code == 201, response.json()
        return response.json()["data"]
    return factory


@pytest.fixture
def ordered_po(client, admin, create_po, products):
    """A purchase order for 10 x product A and 4 x product B, approved up to ORDERED."""
    def factory() -> dict:
        po = create_po(products=[
            {"product_id": products[0].id, "quantity": 10, "unit_price": "50"},
            {"product_id": products[1].id, "quantity": 4, "unit_price": "20"},
        ])
        for _ in range(4):
            response = client.post(f"/purchase-orders/{po['id']}/actions", json={"action": "approve"}, headers=admin)
            assert response.status_code == 200, response.json()
        data = response.json()["data"]
        assert data["current_stage"] == "ORDERED"
        return data
    return factory


@pytest.fixture
def receipt_line():
    def factory(product_id: int, qty: int, batch_no: str = "B001", **overrides) -> dict:
        line = {
            "product_id": product_id,
            "received_qty": qty,
            "batch_no": batch_no,
            "mfg_date": (date.today() - timedelta(days=30)).isoformat(),
            "exp_date": (date.today() + timedelta(days=365)).isoformat(),
        }
        line.update(overrides)
        return line
    return factory
