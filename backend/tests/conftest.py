"""
Pytest fixtures for RetailOps backend tests.

Provides test database setup, model factories, and test client.
"""

from datetime import datetime

import pytest
from retailops import create_app
from retailops.extensions import db
from retailops.models import Branch, Product, SalesTransaction, Stock, TransactionLine, Warehouse


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()
        db.session.expunge_all()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def client(app, db_session):
    """Create test client."""
    return app.test_client()


@pytest.fixture
def make_product(db_session):
    counter = {"n": 0}

    def _make(**fields) -> Product:
        counter["n"] += 1
        values = {
            "company_id": 1,
            "name": f"Product {counter['n']}",
            "sku": f"SKU-{counter['n']:03d}",
            "category": "General",
            "price": 10.0,
            "cost_price": 6.0,
            "quantity": 10,
        }
        values.update(fields)
        product = Product(**values)
        db_session.add(product)
        db_session.commit()
        return product

    return _make


@pytest.fixture
def warehouse(db_session):
    w = Warehouse(company_id=1, name="Central", location="Dock 1", manager_id=7)
    db_session.add(w)
    db_session.commit()
    return w


@pytest.fixture
def second_warehouse(db_session):
    w = Warehouse(company_id=1, name="Overflow", location="Dock 2", manager_id=8)
    db_session.add(w)
    db_session.commit()
    return w


@pytest.fixture
def branch(db_session, warehouse):
    b = Branch(company_id=1, name="High Street", location="12 High St", warehouse_id=warehouse.id)
    db_session.add(b)
    db_session.commit()
    return b


@pytest.fixture
def make_stock(db_session):
    def _make(product, *, warehouse=None, branch=None, quantity=0) -> Stock:
        stock = Stock(
            product_id=product.id,
            warehouse_id=warehouse.id if warehouse is not None else None,
            branch_id=branch.id if branch is not None else None,
            quantity=quantity,
        )
        db_session.add(stock)
        db_session.commit()
        return stock

    return _make


@pytest.fixture
def make_transaction(db_session):
    counter = {"n": 0}

    def _make(total_amount, *, status="completed", branch_id=1, created_at=None, lines=None) -> SalesTransaction:
        counter["n"] += 1
        txn = SalesTransaction(
            order_id=f"ORD-TEST-{counter['n']}",
            customer_id="cust-1",
            branch_id=branch_id,
            total_amount=total_amount,
            payment_method="cash",
            status=status,
            created_at=created_at or datetime(2024, 1, 15, 12, 0, 0),
        )
        for position, (product_id, quantity, price) in enumerate(lines or [(1, 1, total_amount)]):
            txn.lines.append(TransactionLine(
                position=position, product_id=product_id, quantity=quantity, price=price,
            ))
        db_session.add(txn)
        db_session.commit()
        return txn

    return _make
