"""
Pytest fixtures for marketplace backend tests.

Provides test database setup, account/listing factories, the in-memory
email outbox, and a test client.
"""

import pytest

from marketplace import create_app
from marketplace.extensions import db
from marketplace.models import Account, Role
from marketplace.notifications import get_email_channel
from marketplace.services import inventory_service, session_service
from marketplace.services.auth_service import hash_password


TEST_PASSWORD = "Password123"

TEST_CONFIG = {
    'TESTING': True,
    'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
    'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    'BCRYPT_ROUNDS': 4,
    'MAIL_BACKEND': 'fake',
    'OTP_LENGTH': 6,
    'OTP_TTL_MINUTES': 10,
}


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TEST_CONFIG)

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
        db.session.remove()


@pytest.fixture(scope='function')
def outbox(app):
    """The fake email adapter, emptied for this test."""
    channel = get_email_channel()
    channel.reset()
    yield channel
    channel.reset()


@pytest.fixture(scope='function')
def make_account(db_session):
    """Factory: make_account(Role.SELLER, email=None, verified=True)."""
    counter = {"n": 0}

    def _make(role: Role, email: str | None = None, verified: bool = True) -> Account:
        counter["n"] += 1
        account = Account(
            email=email or f"{role.value}{counter['n']}@example.com",
            password_hash=hash_password(TEST_PASSWORD),
            role=role.value,
            is_verified=verified,
        )
        db_session.add(account)
        db_session.commit()
        return account

    return _make


@pytest.fixture(scope='function')
def admin(make_account):
    return make_account(Role.ADMIN, email="admin@example.com")


@pytest.fixture(scope='function')
def seller(make_account):
    return make_account(Role.SELLER, email="seller@example.com")


@pytest.fixture(scope='function')
def buyer(make_account):
    return make_account(Role.BUYER, email="buyer@example.com")


@pytest.fixture(scope='function')
def make_listing():
    """Factory: make_listing(seller, stock=1, rate_cents=10000, material="leather", ...)."""

    def _make(seller: Account, **overrides):
        fields = {
            "name": "Cabin Roller",
            "description": "Hard shell carry-on",
            "material": "leather",
            "color": "black",
            "height_cm": 55,
            "width_cm": 40,
            "depth_cm": 20,
            "rate_cents": 10000,
            "stock": 1,
        }
        fields.update(overrides)
        return inventory_service.create_listing(seller.id, fields)

    return _make


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


def login_headers(account: Account) -> dict:
    """Open a session for a verified account and return its headers."""
    _session, token = session_service.create_session(account.id)
    return auth_headers(token)
