"""
Pytest fixtures for GestiCom backend tests.

Provides test database setup, owner/worker users, products, and test client.
"""

from decimal import Decimal

import pytest
from gesticom import create_app
from gesticom.config import TestConfig
from gesticom.extensions import db
from gesticom.models import Product, StockThreshold, User
from gesticom.models.auth import ROLE_OWNER, ROLE_WORKER, STATUS_ENABLED
from gesticom.services.auth_service import hash_password
from gesticom.services.token_service import create_access_token


DEFAULT_PASSWORD = "Password123"


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


@pytest.fixture(scope='session')
def password_hash(app):
    """bcrypt at cost 12 is slow; hash the shared test password once."""
    return hash_password(DEFAULT_PASSWORD)


def make_user(db_session, password_hash, *, name, national_id, email, role=ROLE_WORKER, status=STATUS_ENABLED):
    user = User(
        name=name,
        national_id=national_id,
        email=email,
        password_hash=password_hash,
        role=role,
        status=status,
    )
    db_session.add(user)
    db_session.commit()
    return user


def make_product(db_session, *, code, name, stock, price="1000", category="General", min_stock=None):
    product = Product(code=code, name=name, price=Decimal(price), stock=stock, category=category)
    db_session.add(product)
    db_session.flush()
    if min_stock is not None:
        db_session.add(StockThreshold(product_id=product.id, min_stock=min_stock))
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def owner(db_session, password_hash):
    """Owner account (full administrative authority)."""
    return make_user(
        db_session, password_hash,
        name="Olga Owner", national_id="11111111-1", email="owner@gesticom.test", role=ROLE_OWNER,
    )


@pytest.fixture(scope='function')
def worker(db_session, password_hash):
    """Worker account (sales and own attendance)."""
    return make_user(
        db_session, password_hash,
        name="Walter Worker", national_id="12345678-5", email="worker@gesticom.test", role=ROLE_WORKER,
    )


@pytest.fixture(scope='function')
def product(db_session):
    """Product 1 in the scenarios: stock 5, price 1000."""
    return make_product(db_session, code="P-001", name="Yerba Mate", stock=5, price="1000")


@pytest.fixture(scope='function')
def owner_headers(app, owner):
    return auth_headers(create_access_token(owner.id, owner.role))


@pytest.fixture(scope='function')
def worker_headers(app, worker):
    return auth_headers(create_access_token(worker.id, worker.role))


def get_auth_token(client, email: str, password: str = DEFAULT_PASSWORD) -> str:
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


def stock_of(product_id: int) -> int:
    return db.session.query(Product.stock).filter(Product.id == product_id).scalar()
