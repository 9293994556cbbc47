"""
Pytest fixtures for back office ledger tests.

Provides test database setup, directory rows (products, customers,
companies) scoped to an owner, and a test client.
"""

from decimal import Decimal

import pytest
from backoffice import create_app
from backoffice.extensions import db
from backoffice.models import Company, Customer, Product

OWNER_A = "owner-a"
OWNER_B = "owner-b"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'LEDGER_RETRY_BACKOFF': 0,
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
def make_product(db_session):
    """Factory for products in the owner's directory."""
    def _make(name="Widget", quantity=0, purchase_price="5.00", sale_price="10.00", owner_id=OWNER_A):
        product = Product(
            owner_id=owner_id,
            name=name,
            barcode=f"869{abs(hash(name)) % 10**10:010d}",
            quantity=quantity,
            purchase_price=Decimal(purchase_price),
            sale_price=Decimal(sale_price),
        )
        db_session.add(product)
        db_session.commit()
        return product
    return _make


@pytest.fixture(scope='function')
def product(make_product):
    """Product with no stock, cost 5.00, price 10.00."""
    return make_product()


@pytest.fixture(scope='function')
def customer(db_session):
    customer = Customer(owner_id=OWNER_A, name="Ayse Yilmaz", balance=Decimal("0"))
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture(scope='function')
def company(db_session):
    company = Company(owner_id=OWNER_A, name="Toptan Gida A.S.")
    db_session.add(company)
    db_session.commit()
    return company


def owner_headers(owner_id: str = OWNER_A) -> dict:
    """Helper to create identity context headers."""
    return {'X-Owner-Id': owner_id}
