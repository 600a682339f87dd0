"""
Pytest fixtures for PantryPal core tests.

Provides test database setup, two tenants, catalog factories and test client.
"""

import pytest
from pantrypal import create_app
from pantrypal.extensions import db
from pantrypal.models import Organization
from pantrypal.services import customer_service, product_service


TEST_CONFIG = {
    'TESTING': True,
    'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
    'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    'TRUST_TENANT_HEADER': True,
    'STORAGE_RETRY_BACKOFF': 0,
}


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TEST_CONFIG)

    # No context is held across the session; db_session pushes one per test.
    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def runner(app):
    """Create Flask CLI runner."""
    return app.test_cli_runner()


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
def org_a(db_session):
    """Create Organization A (first tenant)."""
    org = Organization(name="Org A - Corner Grocer", code="CORNER", is_active=True)
    db_session.add(org)
    db_session.commit()
    return org


@pytest.fixture(scope='function')
def org_b(db_session):
    """Create Organization B (second tenant)."""
    org = Organization(name="Org B - Daily Mart", code="DAILY", is_active=True)
    db_session.add(org)
    db_session.commit()
    return org


@pytest.fixture(scope='function')
def make_product(db_session):
    """Factory: create a product through the catalog service (opening stock goes through the ledger)."""
    counter = {"n": 0}

    def _make(org, *, stock=0, mrp="10.00", cost="6.00", **fields):
        counter["n"] += 1
        payload = {
            "name": f"Product {counter['n']}",
            "category": "grocery",
            "mrp": mrp,
            "cost": cost,
            "quantity_in_stock": stock,
        }
        payload.update(fields)
        return product_service.create_product(org_id=org.id, payload=payload)

    return _make


@pytest.fixture(scope='function')
def product_a(org_a, make_product):
    """Product in Organization A with 10 in stock at 10.00."""
    return make_product(org_a, stock=10, name="Basmati Rice 1kg", barcode="8901000000011")


@pytest.fixture(scope='function')
def customer_a(db_session, org_a):
    return customer_service.create_customer(
        org_id=org_a.id,
        payload={"name": "Asha Rao", "phone": "9800000001", "email": "asha@example.com"},
    )


@pytest.fixture(scope='function')
def headers_a(org_a):
    return {"X-Org-Id": org_a.id, "X-User-Id": "cashier-a"}


@pytest.fixture(scope='function')
def headers_b(org_b):
    return {"X-Org-Id": org_b.id, "X-User-Id": "cashier-b"}
