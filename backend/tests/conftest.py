"""
Pytest fixtures for MindSync Books backend tests.

Provides test database setup, two isolated businesses, and a test client.
"""

from datetime import datetime
from decimal import Decimal

import pytest
from mindsync import create_app
from mindsync.extensions import db
from mindsync.models import (
    BusinessProfile,
    Customer,
    Invoice,
    InvoiceItem,
    Product,
)


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'LOG_LEVEL': 'WARNING',
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
def business_a(db_session):
    """Create Business A (first tenant)."""
    business = BusinessProfile(user_id="user-a", business_name="Acme Traders", industry="Retail")
    db_session.add(business)
    db_session.commit()
    return business


@pytest.fixture(scope='function')
def business_b(db_session):
    """Create Business B (second tenant)."""
    business = BusinessProfile(user_id="user-b", business_name="Beta Supplies")
    db_session.add(business)
    db_session.commit()
    return business


@pytest.fixture(scope='function')
def product_a(db_session, business_a):
    """Stocked product in Business A: sells at 1500, costs 500."""
    product = Product(
        business_id=business_a.id,
        name="Rice 5kg",
        sku="RICE-5",
        unit_price=Decimal("1500.00"),
        purchase_cost=Decimal("500.00"),
        stock_quantity=20,
        reorder_level=5,
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def product_b(db_session, business_b):
    """Product in Business B."""
    product = Product(
        business_id=business_b.id,
        name="Beans 1kg",
        sku="BEANS-1",
        unit_price=Decimal("800.00"),
        purchase_cost=Decimal("300.00"),
        stock_quantity=10,
        reorder_level=2,
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def customer_a(db_session, business_a):
    customer = Customer(business_id=business_a.id, name="Ada Obi", email="ada@example.com", phone="+2348000000001")
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture(scope='function')
def customer_b(db_session, business_b):
    customer = Customer(business_id=business_b.id, name="Bola Ade")
    db_session.add(customer)
    db_session.commit()
    return customer


def _insert_invoice(
    db_session,
    business,
    total="10000.00",
    paid="0.00",
    status="unpaid",
    number=None,
    created_at=None,
    due_date=None,
    items=(),
):
    """
    Insert an invoice row directly (bypassing invoice_service).

    items: iterable of (quantity, purchase_cost) tuples.
    """
    count = db_session.query(Invoice).filter_by(business_id=business.id).count()
    invoice = Invoice(
        business_id=business.id,
        invoice_number=number or f"TEST-{count + 1:04d}",
        total_amount=Decimal(total),
        amount_paid=Decimal(paid),
        status=status,
        due_date=due_date,
    )
    if created_at is not None:
        invoice.created_at = created_at
    for quantity, cost in items:
        invoice.items.append(InvoiceItem(
            quantity=quantity,
            unit_price=Decimal(cost),
            purchase_cost=Decimal(cost),
            total_amount=Decimal(cost) * quantity,
        ))
    db_session.add(invoice)
    db_session.commit()
    return invoice


@pytest.fixture(scope='function')
def make_invoice(db_session):
    """Factory: make_invoice(business, total=..., paid=..., status=..., created_at=..., items=[(qty, cost)])."""
    def _make(business, **kwargs):
        return _insert_invoice(db_session, business, **kwargs)
    return _make


@pytest.fixture(scope='function')
def invoice_a(db_session, business_a):
    """Unpaid 10000.00 invoice in Business A."""
    return _insert_invoice(db_session, business_a, total="10000.00", created_at=datetime(2026, 10, 5, 9, 30))



@pytest.fixture(scope='function')
def failing_commit(db_session, monkeypatch):
    """Make every commit flush its pending writes and then fail, as a constraint violation would."""
    from sqlalchemy.exc import IntegrityError

    def _commit(self):
        self.flush()
        raise IntegrityError("COMMIT", {}, Exception("constraint failed"))

    monkeypatch.setattr(type(db.session()), "commit", _commit)
