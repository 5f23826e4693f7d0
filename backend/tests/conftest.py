"""
Pytest fixtures for storeflow backend tests.

Provides the in-memory application, a clean database per test, staff and catalog
fixtures, and an httpx client bound to the WSGI app.
"""

import httpx
import pytest

from storeflow import create_app
from storeflow.extensions import db
from storeflow.services import catalog_service
from storeflow.services.auth_service import create_user


PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Flask test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def api(app):
    """httpx client speaking WSGI to the app (no network)."""
    with httpx.Client(transport=httpx.WSGITransport(app=app), base_url="http://testserver") as http:
        yield http


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


# =============================================================================
# STAFF
# =============================================================================


@pytest.fixture(scope='function')
def admin(db_session):
    return create_user("admin", PASSWORD, "admin")


@pytest.fixture(scope='function')
def manager(db_session):
    return create_user(
        "morgan",
        PASSWORD,
        "manager",
        permissions=["manage_orders", "manage_demand_notices", "manage_returns", "view_reports"],
    )


@pytest.fixture(scope='function')
def salesperson(db_session):
    return create_user("sam", PASSWORD, "salesperson")


@pytest.fixture(scope='function')
def second_salesperson(db_session):
    return create_user("sara", PASSWORD, "salesperson")


@pytest.fixture(scope='function')
def cashier(db_session):
    return create_user("casey", PASSWORD, "cashier")


# =============================================================================
# CATALOG
# =============================================================================


@pytest.fixture(scope='function')
def widget(db_session):
    """Priced 10.000, 20 in stock."""
    return catalog_service.create_product({
        "sku": "WID-001",
        "name": "Widget",
        "category": "Hardware",
        "price": "10.000",
        "quantity_in_stock": 20,
    })


@pytest.fixture(scope='function')
def gadget(db_session):
    """Priced 25.000, 5 in stock."""
    return catalog_service.create_product({
        "sku": "GAD-001",
        "name": "Gadget",
        "category": "Electronics",
        "price": "25.000",
        "quantity_in_stock": 5,
    })


def get_auth_token(api, username: str, password: str = PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = api.post('/api/auth/login', json={
        'username': username,
        'password': password
    })
    if response.status_code == 200:
        return response.json().get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def admin_headers(api, admin):
    return auth_headers(get_auth_token(api, admin.username))


@pytest.fixture(scope='function')
def manager_headers(api, manager):
    return auth_headers(get_auth_token(api, manager.username))


@pytest.fixture(scope='function')
def salesperson_headers(api, salesperson):
    return auth_headers(get_auth_token(api, salesperson.username))


@pytest.fixture(scope='function')
def cashier_headers(api, cashier):
    return auth_headers(get_auth_token(api, cashier.username))
