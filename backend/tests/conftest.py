"""
Pytest fixtures for StockDesk backend tests.

Provides test database setup, owner/staff accounts, a sample product and a
test client.
"""

import pytest

from stockdesk import create_app
from stockdesk.config import TestConfig
from stockdesk.extensions import db
from stockdesk.services import auth_service, permission_service, products_service


PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TestConfig)

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
def owner(db_session):
    return auth_service.create_user("owner", "owner@stockdesk.local", PASSWORD, is_owner=True)


@pytest.fixture(scope='function')
def staff(db_session):
    """Staff member with every permission disabled."""
    return auth_service.create_user("staff", "staff@stockdesk.local", PASSWORD)


@pytest.fixture(scope='function')
def product(db_session, owner):
    """10 kg per box, 80 cost / 100 price per box, 10 boxes and 20 kg on hand."""
    return products_service.create_product(
        {
            "name": "Tilapia",
            "box_to_kg_ratio": 10,
            "cost_per_box": 80,
            "price_per_box": 100,
            "quantity_box": 10,
            "quantity_kg": 20,
            "low_stock_threshold": 2,
        },
        created_by_user_id=owner.id,
    )


def grant(user, *keys):
    """Enable keys for a staff member (cascade applies)."""
    for key in keys:
        permission_service.set_staff_permission(user.id, key, True)


def get_auth_token(client, username: str, password: str = PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'username': username,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def owner_headers(client, owner):
    return auth_headers(get_auth_token(client, owner.username))


@pytest.fixture(scope='function')
def staff_headers(client, staff):
    return auth_headers(get_auth_token(client, staff.username))
