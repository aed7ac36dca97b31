"""Concurrent purchases and restocks against a file-backed database."""
from concurrent.futures import ThreadPoolExecutor
from threading import Barrier

import pytest

from app.database import Database
from app.exceptions import InsufficientStockError
from app.models.inventory_event import InventoryEvent
from app.models.product import Product
from app.models.user import User, UserRole
from app.services.inventory_service import InventoryService


@pytest.fixture
def database(tmp_path):
    database = Database(f"sqlite:///{tmp_path / 'concurrency.db'}", timeout=30)
    database.create_all()
    yield database
    database.dispose()


@pytest.fixture
def shopper(database):
    with database.session() as session:
        user = User(email="racer@example.com", password_hash="x", role=UserRole.ADMIN)
        session.add(user)
        session.commit()
        session.refresh(user)
        session.expunge(user)
    return user


def make_product(database, quantity):
    with database.session() as session:
        product = Product(name="Last Lollipop", category="Lollipops", price=0.75, quantity=quantity)
        session.add(product)
        session.commit()
        return product.id


def stock_of(database, product_id):
    with database.session() as session:
        return session.get(Product, product_id).quantity


def run_concurrently(count, fn):
    barrier = Barrier(count)

    def worker(i):
        barrier.wait()
        return fn(i)

    with ThreadPoolExecutor(max_workers=count) as pool:
        return list(pool.map(worker, range(count)))


def test_concurrent_purchases_never_oversell(database, shopper):
    stock, buyers = 5, 12
    product_id = make_product(database, stock)

    def buy(_):
        with database.session() as session:
            try:
                InventoryService(session).purchase(product_id, 1, shopper)
                return "ok"
            except InsufficientStockError:
                return "insufficient"

    outcomes = run_concurrently(buyers, buy)

    assert outcomes.count("ok") == stock
    assert outcomes.count("insufficient") == buyers - stock
    assert stock_of(database, product_id) == 0
    with database.session() as session:
        assert session.query(InventoryEvent).filter_by(product_id=product_id).count() == stock


def test_concurrent_restocks_are_all_applied(database, shopper):
    product_id = make_product(database, 0)

    def add(_):
        with database.session() as session:
            return InventoryService(session).restock(product_id, 3, shopper).event.resulting_stock

    results = run_concurrently(8, add)

    assert stock_of(database, product_id) == 24
    assert sorted(results) == list(range(3, 25, 3))


def test_concurrent_retries_with_same_key_apply_once(database, shopper):
    product_id = make_product(database, 10)

    def buy(_):
        with database.session() as session:
            return InventoryService(session).purchase(product_id, 2, shopper, "same-request").event.id

    event_ids = run_concurrently(6, buy)

    assert len(set(event_ids)) == 1
    assert stock_of(database, product_id) == 8
