"""
Transaction boundary and retry behavior.
"""

import threading

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from conftest import customer_payload
from storeledger import create_app
from storeledger.errors import InsufficientStockError
from storeledger.extensions import db
from storeledger.models import Category, Order, Product, StockMovement
from storeledger.services import concurrency, order_service
from storeledger.services.concurrency import NUMBERING_RETRYABLE_ERRORS, run_in_transaction, run_with_retry
from storeledger.services.stock_service import StockReason, adjust_stock


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch):
    monkeypatch.setattr(concurrency.time, "sleep", lambda seconds: None)


def test_retries_stale_data_then_succeeds(db_session):
    calls = []

    def flaky():
        calls.append(1)
        if len(calls) < 3:
            raise StaleDataError("version mismatch")
        return "done"

    assert run_with_retry(flaky) == "done"
    assert len(calls) == 3


def test_gives_up_after_attempts(db_session):
    calls = []

    def always_locked():
        calls.append(1)
        raise OperationalError("UPDATE products", {}, Exception("database is locked"))

    with pytest.raises(OperationalError):
        run_with_retry(always_locked, attempts=2)
    assert len(calls) == 2


def test_domain_errors_are_not_retried(db_session, product):
    calls = []

    def op():
        calls.append(1)
        adjust_stock(product.id, -11, StockReason.RETAIL_ORDER)

    with pytest.raises(InsufficientStockError):
        run_in_transaction(op)
    assert len(calls) == 1


def test_failure_rolls_back_earlier_writes(db_session, make_product):
    first = make_product(name="First", quantity=5)
    second = make_product(name="Second", quantity=1)

    def op():
        adjust_stock(first.id, -5, StockReason.RETAIL_ORDER)
        adjust_stock(second.id, -2, StockReason.RETAIL_ORDER)

    with pytest.raises(InsufficientStockError):
        run_in_transaction(op)

    assert db_session.get(Product, first.id).quantity == 5
    assert db_session.get(Product, first.id).in_stock is True
    assert db_session.query(StockMovement).count() == 0


def test_success_commits(db_session, product):
    run_in_transaction(lambda: adjust_stock(product.id, -4, StockReason.RETAIL_ORDER))
    db_session.expire_all()
    assert db_session.get(Product, product.id).quantity == 6
    assert db_session.query(StockMovement).count() == 1


def test_stale_version_is_detected(db_session, product):
    loaded_version = product.version_id
    # Simulate a concurrent writer bumping the row version behind the session
    db_session.execute(
        Product.__table__.update()
        .where(Product.__table__.c.id == product.id)
        .values(version_id=Product.__table__.c.version_id + 1)
    )
    assert db_session.get(Product, product.id).version_id == loaded_version
    product.name = "Renamed"
    with pytest.raises(StaleDataError):
        db_session.flush()
    db_session.rollback()


def _duplicate_sequence_row():
    return IntegrityError(
        "INSERT INTO document_sequences", {}, Exception("UNIQUE constraint failed: document_sequences.document_type")
    )


def test_integrity_error_only_retried_when_asked(db_session):
    calls = []

    def op():
        calls.append(1)
        if len(calls) == 1:
            raise _duplicate_sequence_row()
        return "numbered"

    with pytest.raises(IntegrityError):
        run_with_retry(op)
    assert len(calls) == 1

    calls.clear()
    assert run_with_retry(op, retry_on=NUMBERING_RETRYABLE_ERRORS) == "numbered"
    assert len(calls) == 2


@pytest.fixture
def file_app(tmp_path):
    """An app on a file database so two threads see each other's commits."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'race.sqlite3'}",
        'SQLALCHEMY_ENGINE_OPTIONS': {'connect_args': {'timeout': 10}},
        'NOTIFICATIONS_ASYNC': False,
        'BCRYPT_ROUNDS': 4,
    })
    with app.app_context():
        db.create_all()
        category = Category(name="Consoles", slug="consoles", active=True)
        db.session.add(category)
        db.session.flush()
        db.session.add(Product(category_id=category.id, name="PS5", price=6000, quantity=3, in_stock=True))
        db.session.commit()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


def test_concurrent_orders_for_last_units_do_not_oversell(file_app, monkeypatch):
    with file_app.app_context():
        product_id = db.session.query(Product.id).scalar()

    # Hold both threads after their availability check so they race on the write
    barrier = threading.Barrier(2)
    real_ensure_available = order_service.ensure_available
    local = threading.local()

    def ensure_then_wait(product, requested):
        real_ensure_available(product, requested)
        if not getattr(local, "waited", False):
            local.waited = True
            try:
                barrier.wait(timeout=2)
            except threading.BrokenBarrierError:
                pass

    monkeypatch.setattr(order_service, "ensure_available", ensure_then_wait)

    outcomes = []

    def place(phone):
        with file_app.app_context():
            try:
                order_service.create_order(
                    items=[{"product_id": product_id, "quantity": 2}],
                    customer=customer_payload(phone=phone),
                )
                outcomes.append("ok")
            except Exception as exc:
                outcomes.append(type(exc))

    threads = [threading.Thread(target=place, args=(phone,)) for phone in ("0611111111", "0622222222")]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)

    assert len(outcomes) == 2
    assert outcomes.count("ok") == 1
    failures = [o for o in outcomes if o != "ok"]
    assert failures[0] in (InsufficientStockError, OperationalError, StaleDataError)

    with file_app.app_context():
        assert db.session.get(Product, product_id).quantity == 1
        assert db.session.query(Order).count() == 1
        assert db.session.query(StockMovement).filter_by(product_id=product_id).count() == 1
