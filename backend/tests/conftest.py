"""
Pytest fixtures for storeledger tests.

Every test gets a fresh in-memory database, admins for each role, catalogue
factories and bearer-token helpers for the test client.
"""

import pytest

from storeledger import create_app
from storeledger.extensions import db
from storeledger.models import Category, Product, Supplier
from storeledger.roles import AdminRole
from storeledger.services import session_service
from storeledger.services.auth_service import create_admin

PASSWORD = "Password123!"


@pytest.fixture(scope='function')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite://',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'NOTIFICATIONS_ASYNC': False,
        'BCRYPT_ROUNDS': 4,
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
    yield db.session
    db.session.rollback()


@pytest.fixture(scope='function')
def make_admin(db_session):
    """Factory: make_admin(role, username=None) -> Admin with PASSWORD."""
    def _make(role: AdminRole, username: str | None = None):
        username = username or f"{AdminRole(role).value}_user"
        return create_admin(
            username=username,
            email=f"{username}@store.test",
            name=username.replace("_", " ").title(),
            role=AdminRole(role).value,
            password=PASSWORD,
        )
    return _make


@pytest.fixture(scope='function')
def super_admin(make_admin):
    return make_admin(AdminRole.SUPER_ADMIN)


@pytest.fixture(scope='function')
def editor(make_admin):
    return make_admin(AdminRole.EDITOR)


@pytest.fixture(scope='function')
def viewer(make_admin):
    return make_admin(AdminRole.VIEWER)


@pytest.fixture(scope='function')
def commercial(make_admin):
    return make_admin(AdminRole.COMMERCIAL)


@pytest.fixture(scope='function')
def magasinier(make_admin):
    return make_admin(AdminRole.MAGASINIER)


@pytest.fixture(scope='function')
def category(db_session):
    category = Category(name="Graphics Cards", slug="graphics-cards", active=True)
    db_session.add(category)
    db_session.commit()
    return category


@pytest.fixture(scope='function')
def supplier(db_session):
    supplier = Supplier(name="Casa Components", phone="0522000000", city="Casablanca")
    db_session.add(supplier)
    db_session.commit()
    return supplier


@pytest.fixture(scope='function')
def make_product(db_session, category):
    """
    Factory: insert a product row directly with the given on-hand quantity
    and no procurement history.
    """
    def _make(name: str = "RTX 4070", price: int = 7000, quantity: int = 10, **kwargs):
        product = Product(
            category_id=kwargs.pop("category_id", category.id),
            name=name,
            price=price,
            quantity=quantity,
            in_stock=quantity > 0,
            **kwargs,
        )
        db_session.add(product)
        db_session.commit()
        return product
    return _make


@pytest.fixture(scope='function')
def product(make_product):
    return make_product()


def customer_payload(**overrides) -> dict:
    data = {
        "name": "Youssef Alami",
        "email": "youssef@example.ma",
        "phone": "0612345678",
        "city": "Rabat",
        "address": "12 Avenue Mohammed V",
    }
    data.update(overrides)
    return data


def get_auth_token(client, username: str, password: str = PASSWORD) -> str:
    """Helper to get auth token for an admin."""
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


def headers_for(admin) -> dict:
    """Authorization headers from a freshly issued session, without a login round-trip."""
    _, token = session_service.create_session(admin)
    return auth_headers(token)


@pytest.fixture(scope='function')
def customer_data():
    return customer_payload()


@pytest.fixture(scope='function')
def auth_for(db_session):
    """Factory: auth_for(admin) -> Authorization headers."""
    return headers_for
