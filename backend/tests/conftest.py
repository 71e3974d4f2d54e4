"""
Pytest fixtures for retail POS backend tests.

Provides test database setup, seed customers/stores/products, and test client.
"""

import pytest

from retail_pos import create_app
from retail_pos.extensions import db
from retail_pos.models import Customer, Product, Sale, Store
from retail_pos.services.notification_service import NotificationDispatcher
from retail_pos.services.sales_service import SalesEngine
from retail_pos.validation import SaleCreateRequest, SaleLineRequest


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'NOTIFICATIONS_ASYNC': False,
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
def customer(db_session):
    customer = Customer(name="Asha Rao", phone="+91-98450-00001", email="asha@example.com")
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture(scope='function')
def store(db_session):
    store = Store(name="MG Road", code="MGR")
    db_session.add(store)
    db_session.commit()
    return store


@pytest.fixture(scope='function')
def product(db_session):
    """Product with 10 units at 100 cents."""
    product = Product(sku="TV-32-HD", name="32in HD TV", unit_price_cents=100, stock_quantity=10)
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def second_product(db_session):
    product = Product(sku="SB-2CH", name="Soundbar 2.1", unit_price_cents=2500, stock_quantity=3)
    db_session.add(product)
    db_session.commit()
    return product


class RecordingSender:
    """Notification sender that keeps every (event, snapshot) it receives."""

    def __init__(self):
        self.calls = []

    def __call__(self, event, snapshot):
        self.calls.append((event, snapshot))


@pytest.fixture(scope='function')
def sender():
    return RecordingSender()


@pytest.fixture(scope='function')
def engine(db_session, sender):
    """Sale engine with a synchronous dispatcher recording notifications."""
    return SalesEngine(db_session, dispatcher=NotificationDispatcher(sender=sender))


def make_request(customer_id, *lines, **overrides) -> SaleCreateRequest:
    """Build a create request from (product_id, quantity[, unit_price_cents]) tuples."""
    fields = {
        "customer_id": customer_id,
        "items": tuple(SaleLineRequest(*line) for line in lines),
        "payment_method": "cash",
    }
    fields.update(overrides)
    return SaleCreateRequest(**fields)


def stock_of(session, product_id) -> int:
    session.expire_all()
    return session.get(Product, product_id).stock_quantity


def set_created_at(session, sale_id, when):
    session.query(Sale).filter(Sale.id == sale_id).update({"created_at": when})
    session.commit()
