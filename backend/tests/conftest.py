"""
Pytest fixtures for the Suaza backend tests.

Provides the app on an in-memory database, a per-test clean schema, an
authenticated client and small factories for catalog rows.
"""

from decimal import Decimal

import pytest

from app import create_app
from app.extensions import db
from app.models import Category, Customer, Product, Supplier
from app.services.auth_service import create_user
from app.services.session_service import create_session


TEST_PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'LOG_LEVEL': 'WARNING',
        'BCRYPT_ROUNDS': 4,
    })

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
    """Fresh data for each test (schema is kept)."""
    with app.app_context():
        db.session.rollback()
        db.session.expunge_all()
        for table in reversed(db.metadata.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        db.session.rollback()


@pytest.fixture(scope='function')
def user(db_session):
    """Seller account; low bcrypt cost keeps the suite fast."""
    return create_user(
        username="seller",
        email="seller@suaza.local",
        password=TEST_PASSWORD,
        role="seller",
        rounds=4,
    )


@pytest.fixture(scope='function')
def auth_headers(user):
    _, token = create_session(user.id)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(scope='function')
def admin(db_session):
    return create_user(
        username="admin",
        email="admin@suaza.local",
        password=TEST_PASSWORD,
        role="admin",
        rounds=4,
    )


@pytest.fixture(scope='function')
def admin_headers(admin):
    _, token = create_session(admin.id)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(scope='function')
def make_category(db_session):
    def _make(name="Bebidas"):
        category = Category(name=name)
        db_session.add(category)
        db_session.commit()
        return category
    return _make


@pytest.fixture(scope='function')
def make_product(db_session):
    """Product row with its stock set directly (no opening movement)."""
    counter = {"n": 0}

    def _make(stock=10, price="1000.00", name=None, code=None, min_stock=0, is_active=True):
        counter["n"] += 1
        product = Product(
            code=code or f"P-{counter['n']:03d}",
            name=name or f"Product {counter['n']}",
            price=Decimal(price),
            cost=Decimal("0"),
            stock=stock,
            min_stock=min_stock,
            is_active=is_active,
        )
        db_session.add(product)
        db_session.commit()
        return product
    return _make


@pytest.fixture(scope='function')
def make_customer(db_session):
    counter = {"n": 0}

    def _make(name=None, document_number=None, is_active=True):
        counter["n"] += 1
        customer = Customer(
            name=name or f"Customer {counter['n']}",
            document_number=document_number or f"10{counter['n']:08d}",
            email=f"customer{counter['n']}@example.com",
            is_active=is_active,
        )
        db_session.add(customer)
        db_session.commit()
        return customer
    return _make


@pytest.fixture(scope='function')
def make_supplier(db_session):
    counter = {"n": 0}

    def _make(name=None, email=None, is_active=True):
        counter["n"] += 1
        supplier = Supplier(
            name=name or f"Supplier {counter['n']}",
            email=email or f"supplier{counter['n']}@example.com",
            is_active=is_active,
        )
        db_session.add(supplier)
        db_session.commit()
        return supplier
    return _make


def sale_payload(*lines, payment_method="cash", **extra):
    """Build a POST /api/sales body from (product, quantity) pairs."""
    payload = {
        "items": [
            {"productId": product.id, "quantity": quantity, "unitPrice": float(product.price)}
            for product, quantity in lines
        ],
        "paymentMethod": payment_method,
    }
    payload.update(extra)
    return payload
