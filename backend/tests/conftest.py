"""
Pytest fixtures for shopdesk backend tests.

Provides the application on an in-memory database, a per-test table
wipe, two owners with one store each, catalog products, and helpers to
authenticate through the HTTP API.
"""

from decimal import Decimal

import pytest
from shopdesk import create_app
from shopdesk.extensions import db
from shopdesk.models import Store, User, Product
from shopdesk.services.auth_service import hash_password
from shopdesk.services.store_context import CallerContext

TEST_CONFIG = {
    'TESTING': True,
    'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
    'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    'BCRYPT_ROUNDS': 4,
    'LOG_LEVEL': 'WARNING',
}

PASSWORD = "secret-pass"


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


def _make_user(db_session, email: str) -> User:
    user = User(email=email, name=email.split("@")[0], password_hash=hash_password(PASSWORD))
    db_session.add(user)
    db_session.commit()
    return user


def _make_store(db_session, owner: User, name: str) -> Store:
    store = Store(
        owner_user_id=owner.id,
        name=name,
        category="Grocery",
        address="1 Main St",
        country="US",
        city="Springfield",
    )
    db_session.add(store)
    db_session.commit()
    return store


def make_product(db_session, store: Store, *, name: str = "Coffee", quantity: int = 10,
                 available: int | None = None, sell_price: str = "6.50") -> Product:
    product = Product(
        store_id=store.id,
        name=name,
        category="Drinks",
        price=Decimal("4.00"),
        sell_price=Decimal(sell_price),
        quantity=quantity,
        available_quantity=quantity if available is None else available,
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def owner_a(db_session):
    """Owner of Store A."""
    return _make_user(db_session, "owner_a@shop.test")


@pytest.fixture(scope='function')
def owner_b(db_session):
    """Owner of Store B."""
    return _make_user(db_session, "owner_b@shop.test")


@pytest.fixture(scope='function')
def store_a(db_session, owner_a):
    return _make_store(db_session, owner_a, "Store A")


@pytest.fixture(scope='function')
def store_b(db_session, owner_b):
    return _make_store(db_session, owner_b, "Store B")


@pytest.fixture(scope='function')
def caller_a(owner_a, store_a):
    return CallerContext(user_id=owner_a.id, email=owner_a.email)


@pytest.fixture(scope='function')
def caller_b(owner_b, store_b):
    return CallerContext(user_id=owner_b.id, email=owner_b.email)


@pytest.fixture(scope='function')
def product_a(db_session, store_a):
    """Product in Store A with 10 units available."""
    return make_product(db_session, store_a, name="Coffee", quantity=10)


@pytest.fixture(scope='function')
def product_a2(db_session, store_a):
    """Second product in Store A with 5 units available."""
    return make_product(db_session, store_a, name="Tea", quantity=5, sell_price="3.25")


@pytest.fixture(scope='function')
def product_b(db_session, store_b):
    """Product in Store B."""
    return make_product(db_session, store_b, name="Foreign", quantity=10)


def available(db_session, product_id: int) -> int:
    """Fresh read of a product's available_quantity."""
    db_session.expire_all()
    return db_session.get(Product, product_id).available_quantity


def get_auth_token(client, email: str, password: str = PASSWORD) -> str | None:
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
