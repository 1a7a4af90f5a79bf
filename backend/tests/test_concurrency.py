"""
Concurrency tests against a file-backed SQLite database.

Each worker thread runs in its own app context, so it gets its own
session and connection; the guarded UPDATEs are the only coordination.
"""

import threading
from datetime import timedelta

import pytest

from marketplace import create_app
from marketplace.errors import InsufficientStock, InvalidChallenge
from marketplace.extensions import db
from marketplace.models import Account, Listing, Order, Role
from marketplace.services import inventory_service, order_service, verification_service
from marketplace.time_utils import utcnow

from conftest import TEST_CONFIG


@pytest.fixture
def file_app(tmp_path):
    db_path = tmp_path / "concurrency.db"
    app = create_app({
        **TEST_CONFIG,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{db_path}",
        # Writers queue on the database lock instead of failing fast
        'SQLALCHEMY_ENGINE_OPTIONS': {"connect_args": {"timeout": 30}},
    })

    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.session.remove()
        db.engine.dispose()


def _seed(app, *, stock: int, buyers: int = 0):
    with app.app_context():
        seller = Account(email="seller@example.com", password_hash="x", role=Role.SELLER.value, is_verified=True)
        db.session.add(seller)
        db.session.flush()
        listing = Listing(
            seller_id=seller.id, name="Hard Case", material="aluminum",
            height_cm=70, width_cm=45, rate_cents=25000, stock=stock, is_sold=(stock == 0),
        )
        db.session.add(listing)
        buyer_ids = []
        for n in range(buyers):
            buyer = Account(
                email=f"buyer{n}@example.com", password_hash="x", role=Role.BUYER.value, is_verified=True
            )
            db.session.add(buyer)
            db.session.flush()
            buyer_ids.append(buyer.id)
        db.session.commit()
        return listing.id, buyer_ids


def _run_threads(targets):
    threads = [threading.Thread(target=target) for target in targets]
    for t in threads:
        t.start()
    for t in threads:
        t.join()


def test_concurrent_reserve_last_unit(file_app):
    listing_id, _ = _seed(file_app, stock=1)
    results = []
    lock = threading.Lock()

    def worker():
        with file_app.app_context():
            try:
                inventory_service.reserve(listing_id, 1)
                with lock:
                    results.append("reserved")
            except Exception as exc:
                with lock:
                    results.append(exc)
            finally:
                db.session.remove()

    _run_threads([worker] * 8)

    assert results.count("reserved") == 1
    failures = [r for r in results if r != "reserved"]
    assert len(failures) == 7
    assert all(isinstance(f, InsufficientStock) for f in failures)

    with file_app.app_context():
        listing = db.session.get(Listing, listing_id)
        assert (listing.stock, listing.is_sold) == (0, True)


def test_concurrent_orders_never_oversell(file_app):
    listing_id, buyer_ids = _seed(file_app, stock=3, buyers=6)
    results = []
    lock = threading.Lock()

    def make_worker(buyer_id):
        def worker():
            with file_app.app_context():
                try:
                    order_service.place_order(buyer_id, listing_id, 1, "cod", "Dock 4, Rotterdam")
                    with lock:
                        results.append("placed")
                except Exception as exc:
                    with lock:
                        results.append(exc)
                finally:
                    db.session.remove()
        return worker

    _run_threads([make_worker(buyer_id) for buyer_id in buyer_ids])

    assert results.count("placed") == 3
    assert all(isinstance(r, InsufficientStock) for r in results if r != "placed")

    with file_app.app_context():
        listing = db.session.get(Listing, listing_id)
        assert (listing.stock, listing.is_sold) == (0, True)
        assert db.session.query(Order).count() == 3


def test_concurrent_cancel_restores_once(file_app):
    listing_id, buyer_ids = _seed(file_app, stock=4, buyers=1)
    buyer_id = buyer_ids[0]
    with file_app.app_context():
        order_id = order_service.place_order(buyer_id, listing_id, 2, "cod", "Pier 9").id

    results = []
    lock = threading.Lock()

    def worker():
        with file_app.app_context():
            try:
                order_service.cancel_order(order_id, buyer_id)
                with lock:
                    results.append("cancelled")
            except Exception as exc:
                with lock:
                    results.append(exc)
            finally:
                db.session.remove()

    _run_threads([worker] * 4)

    assert results.count("cancelled") == 1
    with file_app.app_context():
        assert db.session.get(Listing, listing_id).stock == 4


def test_concurrent_verification_single_winner(file_app):
    with file_app.app_context():
        account = Account(email="racer@example.com", password_hash="x", role=Role.BUYER.value, is_verified=False)
        db.session.add(account)
        db.session.commit()
        account_id = account.id
        now = utcnow()
        code = verification_service.issue_challenge(account_id, now=now)

    results = []
    lock = threading.Lock()

    def worker():
        with file_app.app_context():
            try:
                verification_service.verify_challenge(account_id, code, now=now + timedelta(minutes=1))
                with lock:
                    results.append("verified")
            except Exception as exc:
                with lock:
                    results.append(exc)
            finally:
                db.session.remove()

    _run_threads([worker] * 5)

    assert results.count("verified") == 1
    assert all(isinstance(r, InvalidChallenge) for r in results if r != "verified")
