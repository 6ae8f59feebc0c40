"""
Pytest fixtures for shopledger backend tests.

Provides test database setup, seeded cashboxes, users, inventory factories
and the Flask test client.
"""

from decimal import Decimal

import pytest

from shopledger import create_app
from shopledger.cli import seed_default_cashboxes
from shopledger.config import TestingConfig
from shopledger.extensions import db
from shopledger.models import Cashbox, InventoryUnit, Item, Roll, Supplier, User
from shopledger.services.actor_service import Actor


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
def cashboxes(db_session):
    """Default cashboxes A, B, C keyed by code."""
    seed_default_cashboxes()
    return {cashbox.code: cashbox for cashbox in db_session.query(Cashbox).all()}


@pytest.fixture(scope='function')
def cashier(db_session):
    user = User(username="cashier", name="Cashier", role="cashier", is_active=True)
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def manager(db_session):
    user = User(username="manager", name="Manager", role="manager", is_active=True)
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def cashier_actor(cashier):
    return Actor(user_id=cashier.id, role="cashier")


@pytest.fixture(scope='function')
def manager_actor(manager):
    return Actor(user_id=manager.id, role="manager")


@pytest.fixture(scope='function')
def make_item(db_session):
    """Factory: catalog item with an optional stock counter."""
    def _make(name="Widget", *, stock=0, stock_unit=None, price=0,
              price_retail=None, price_wholesale=None, sku=None):
        item = Item(
            name=name,
            sku=sku,
            stock_unit=stock_unit,
            stock=Decimal(str(stock)),
            price=Decimal(str(price)),
            price_retail=Decimal(str(price_retail)) if price_retail is not None else None,
            price_wholesale=Decimal(str(price_wholesale)) if price_wholesale is not None else None,
        )
        db_session.add(item)
        db_session.commit()
        return item
    return _make


@pytest.fixture(scope='function')
def add_units(db_session):
    """Factory: `count` available units for an item; bumps item.stock to match."""
    def _add(item, count, *, cost="2.00", prefix=None):
        prefix = prefix or f"SN-{item.id}-"
        start = db_session.query(InventoryUnit).filter_by(item_id=item.id).count()
        units = []
        for offset in range(count):
            unit = InventoryUnit(
                item_id=item.id,
                barcode=f"{prefix}{start + offset + 1}",
                is_placeholder=False,
                status="available",
                cost_each=Decimal(cost),
            )
            db_session.add(unit)
            units.append(unit)
        item.stock = Decimal(str(item.stock or 0)) + count
        db_session.commit()
        return units
    return _add


@pytest.fixture(scope='function')
def add_roll(db_session):
    """Factory: a full roll for a meter item; bumps item.stock by its length."""
    def _add(item, length, *, cost_per_meter=None):
        length = Decimal(str(length))
        roll = Roll(
            item_id=item.id,
            length_m=length,
            remaining_m=length,
            cost_per_meter=Decimal(str(cost_per_meter)) if cost_per_meter is not None else None,
        )
        db_session.add(roll)
        item.stock = Decimal(str(item.stock or 0)) + length
        db_session.commit()
        return roll
    return _add


@pytest.fixture(scope='function')
def make_supplier(db_session):
    def _make(name="Acme"):
        supplier = Supplier(name=name)
        db_session.add(supplier)
        db_session.commit()
        return supplier
    return _make
