"""
Pytest fixtures for the grocery backend tests.

Provides the app on an in-memory database, a per-test table wipe, account
and catalog fixtures, and auth helpers for route tests.
"""

import os
import tempfile
from decimal import Decimal

import pytest

from groceries import create_app
from groceries.extensions import db
from groceries.services.auth_service import create_user
from groceries.services.catalog_service import create_product


PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
        'SESSION_SWEEP_ENABLED': False,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    # Core DELETEs: the append-only guard only applies to ORM deletes
    meta = db.metadata
    for table in reversed(meta.sorted_tables):
        db.session.execute(table.delete())
    db.session.commit()

    yield db.session

    db.session.rollback()
    db.session.remove()


@pytest.fixture(scope='function')
def customer(db_session):
    return create_user("Satsuki Kusakabe", "satsuki@example.com", PASSWORD, phone="555-0101")


@pytest.fixture(scope='function')
def other_customer(db_session):
    return create_user("Mei Kusakabe", "mei@example.com", PASSWORD)


@pytest.fixture(scope='function')
def admin(db_session):
    return create_user("Store Admin", "admin@example.com", PASSWORD, role="admin")


@pytest.fixture(scope='function')
def bread(db_session):
    return create_product(
        name="Whole Wheat Bread",
        price=Decimal("3.49"),
        stock_quantity=150,
        image_path="assets/images/products/whole_wheat_bread.png",
    )


@pytest.fixture(scope='function')
def croissants(db_session):
    return create_product(
        name="Croissants (Pack of 4)",
        price=Decimal("6.49"),
        stock_quantity=90,
        image_path="assets/images/products/croissants.png",
    )


@pytest.fixture(scope='function')
def last_salmon(db_session):
    return create_product(name="Salmon Fillet (300g)", price=Decimal("9.99"), stock_quantity=1)


def get_auth_token(client, email: str, password: str = PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'email': email,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def customer_headers(client, customer):
    return auth_headers(get_auth_token(client, customer.email))


@pytest.fixture(scope='function')
def admin_headers(client, admin):
    return auth_headers(get_auth_token(client, admin.email))


@pytest.fixture(scope='function')
def login(client):
    """Log in and return Authorization headers, or None if login failed."""
    def _login(email: str, password: str = PASSWORD):
        token = get_auth_token(client, email, password)
        return auth_headers(token) if token else None
    return _login


@pytest.fixture(scope='function')
def file_app():
    """App on a file-backed SQLite database, for tests that run threads."""
    tmpdir = tempfile.TemporaryDirectory()
    db_path = os.path.join(tmpdir.name, "concurrency.db")
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{db_path}",
        'BCRYPT_ROUNDS': 4,
    })

    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.engine.dispose()
    tmpdir.cleanup()
