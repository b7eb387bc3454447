"""
Pytest fixtures for CounterPOS backend tests.

Provides the application with an in-memory database, a per-test table
wipe, and staff / catalog factories.
"""

import pytest
from counterpos import create_app
from counterpos.config import TestingConfig
from counterpos.extensions import db
from counterpos.models import Customer, Product, TaxRate
from counterpos.services import staff_service


DEFAULT_PIN = "1234"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TestingConfig)

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def make_staff(db_session):
    """Factory: make_staff(role="Cashier", email=None, pin="1234", **extra)."""
    counter = {"n": 0}

    def _make(role="Cashier", email=None, pin=DEFAULT_PIN, **extra):
        counter["n"] += 1
        data = {
            "name": extra.pop("name", f"{role} {counter['n']}"),
            "role": role,
            "email": email or f"{role.lower()}{counter['n']}@shop.test",
            "pin": pin,
        }
        data.update(extra)
        return staff_service.create_staff(data)

    return _make


@pytest.fixture(scope='function')
def cashier(make_staff):
    return make_staff("Cashier", email="cashier@shop.test")


@pytest.fixture(scope='function')
def manager(make_staff):
    return make_staff("Manager", email="manager@shop.test")


@pytest.fixture(scope='function')
def cashier_headers(client, cashier):
    return auth_headers(login(client, cashier.email))


@pytest.fixture(scope='function')
def manager_headers(client, manager):
    return auth_headers(login(client, manager.email))


@pytest.fixture(scope='function')
def product(db_session):
    product = Product(sku="TEA-001", name="Green Tea", category="Beverages", price=10.0, stock=20)
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def second_product(db_session):
    product = Product(sku="MUG-001", name="Mug", category="Kitchen", price=50.0, stock=5)
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def customer(db_session):
    customer = Customer(name="Sara Khan", email="sara@example.com", phone="0300-1234567", city="Lahore")
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture(scope='function')
def gst(db_session):
    """A 10% default tax rate."""
    rate = TaxRate(name="GST", rate=0.1, is_default=True)
    db_session.add(rate)
    db_session.commit()
    return rate


def login(client, email: str, pin: str = DEFAULT_PIN) -> str:
    """Helper to get a session token for a staff member."""
    response = client.post('/api/staff/login', json={'email': email, 'pin': pin})
    assert response.status_code == 200, response.get_json()
    return response.get_json()['sessionId']


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}
