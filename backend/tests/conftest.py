"""
Pytest fixtures for Zyre backend tests.

Provides the test app over in-memory SQLite, per-test table truncation,
role/user fixtures and a cookie-based login helper.
"""

from datetime import date, timedelta

import pytest

from zyre import create_app
from zyre.config import Config
from zyre.extensions import db
from zyre.hrms import close_engine
from zyre.models import Product, User
from zyre.ratelimit import EXTENSION_KEY as RATE_LIMITERS_KEY
from zyre.services.auth_service import create_default_roles, hash_password

PASSWORD = "Password123!"


class TestingConfig(Config):
    __test__ = False

    TESTING = True
    APP_ENV = "testing"
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    RATE_LIMIT_ENABLED = False
    JWT_COOKIE_SECURE = False
    JWT_COOKIE_SAMESITE = "Lax"
    HRMS_DATABASE_URL = None
    SYSTEM_USER_ID = None


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
    """Fresh tables, limiters and HRMS pool for each test."""
    with app.app_context():
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        app.config["RATE_LIMIT_ENABLED"] = False
        app.config["HRMS_DATABASE_URL"] = None
        for limiter in app.extensions[RATE_LIMITERS_KEY].values():
            limiter.reset()

        yield db.session

        db.session.rollback()
        close_engine(app)


@pytest.fixture(scope='function')
def roles(db_session):
    """SUPERADMIN, ADMIN and USER, keyed by name."""
    return {role.name: role for role in create_default_roles()}


def _make_user(db_session, role, email: str, fullname: str) -> User:
    user = User(
        fullname=fullname,
        email=email,
        password_hash=hash_password(PASSWORD),
        role_id=role.id,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def superadmin_user(db_session, roles):
    return _make_user(db_session, roles["SUPERADMIN"], "root@zyre.test", "Root User")


@pytest.fixture(scope='function')
def admin_user(db_session, roles):
    return _make_user(db_session, roles["ADMIN"], "admin@zyre.test", "Admin User")


@pytest.fixture(scope='function')
def regular_user(db_session, roles):
    return _make_user(db_session, roles["USER"], "user@zyre.test", "Regular User")


def login(client, email: str, password: str = PASSWORD) -> str:
    """Log in through the API; cookies stay on the client. Returns the CSRF token."""
    response = client.post('/api/v1/auth/login', json={'email': email, 'password': password})
    assert response.status_code == 200, response.get_json()
    return response.get_json()["data"]["csrf_token"]


def csrf_headers(token: str) -> dict:
    return {'X-CSRF-Token': token}


@pytest.fixture(scope='function')
def admin_client(client, admin_user):
    """Client logged in as ADMIN; returns (client, csrf headers)."""
    token = login(client, admin_user.email)
    return client, csrf_headers(token)


@pytest.fixture(scope='function')
def product(db_session):
    p = Product(sku="PARA-500", name="Paracetamol 500mg", generic_name="Paracetamol", safety_stock=20)
    db_session.add(p)
    db_session.commit()
    return p


def batch_payload(product_id: int, *, quantity: int = 100, batch_number: str = "B-001",
                  supplier: str = "Acme Pharma", expiry: date | None = None) -> dict:
    expiry = expiry or date.today() + timedelta(days=365)
    return {
        "batchNumber": batch_number,
        "supplierName": supplier,
        "invoiceNumber": "INV-7781",
        "invoiceDate": date.today().isoformat(),
        "expiryDate": expiry.isoformat(),
        "items": [
            {
                "productId": product_id,
                "initialQuantity": quantity,
                "costPriceCents": 1250,
                "retailPriceCents": 1800,
            }
        ],
    }
