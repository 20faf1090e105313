"""
Pytest fixtures for stockledger backend tests.

Provides test database setup, master-data factories, and test client.
"""

import os

import pytest

from stockledger import create_app
from stockledger.extensions import db
from stockledger.models import StockMovement
from stockledger.models.stock import MOVEMENT_IN
from stockledger.services import catalog_service
from stockledger.services.ledger_service import append_movement


TEST_CONFIG = {
    'TESTING': True,
    'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
    'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    'STOCK_RETRY_BACKOFF': 0.01,
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
def client(app, db_session):
    """Create test client on a clean database."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema; Core deletes bypass the append-only listeners
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()
        db.session.remove()


@pytest.fixture(scope='function')
def store(db_session):
    """Create store "Main"."""
    return catalog_service.create_store(name="Main", zone=["A", "B"])


@pytest.fixture(scope='function')
def branch(db_session, store):
    """Create store "Branch"."""
    return catalog_service.create_store(name="Branch")


@pytest.fixture(scope='function')
def widget(db_session):
    """Create item "Widget" with no stock."""
    return catalog_service.create_item(
        name="Widget",
        category="Hardware",
        purchase_price=10,
        sale_price=15,
    )


@pytest.fixture(scope='function')
def gadget(db_session):
    """Create item "Gadget" with no stock."""
    return catalog_service.create_item(
        name="Gadget",
        category="Hardware",
        purchase_price=4,
        sale_price=7.5,
    )


@pytest.fixture(scope='function')
def stock_in(db_session):
    """Helper that appends and commits an IN movement."""
    def _stock_in(product_id: int, store_id: int, quantity, reference: str = "TEST-SEED"):
        movement = append_movement(
            product_id=product_id,
            store_id=store_id,
            movement_type=MOVEMENT_IN,
            quantity=quantity,
            reference=reference,
        )
        db_session.commit()
        return movement
    return _stock_in


def movements_for(reference: str) -> list:
    """All movements carrying a reference, oldest first."""
    return (
        db.session.query(StockMovement)
        .filter_by(reference=reference)
        .order_by(StockMovement.id.asc())
        .all()
    )


@pytest.fixture(scope='function')
def file_app(tmp_path):
    """
    Application on a file-backed SQLite database.

    In-memory SQLite shares one connection across threads, so the
    multi-threaded tests need a real file.
    """
    db_path = os.path.join(str(tmp_path), "stockledger-concurrency.sqlite3")
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f'sqlite:///{db_path}',
        'SQLALCHEMY_ENGINE_OPTIONS': {'connect_args': {'timeout': 30}},
        'STOCK_RETRY_ATTEMPTS': 10,
        'STOCK_RETRY_BACKOFF': 0.01,
    })

    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.session.remove()
        db.engine.dispose()
