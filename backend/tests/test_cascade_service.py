"""
Cascading account deletion tests.

Verifies:
- Seller deletion removes their listings, buyer deletion cancels pending orders
- Any failure mid-cascade leaves every row as it was and the session usable
- Admin-only, no self-deletion
"""

import pytest
from sqlalchemy import event
from sqlalchemy.exc import OperationalError

from marketplace.errors import CascadeFailed, NotAuthorized, NotFound, SelfDeletion, ValidationError
from marketplace.extensions import db
from marketplace.models import Account, Listing, Order, Role, SessionToken
from marketplace.services import cascade_service, inventory_service, order_service, session_service


def _place(buyer, listing, quantity=1):
    return order_service.place_order(buyer.id, listing.id, quantity, "online", "1 Main Street")


def _count(model, **filters):
    return db.session.query(model).filter_by(**filters).count()


class TestDeleteSeller:

    def test_listings_removed_orders_kept(self, admin, seller, buyer, make_listing):
        listings = [make_listing(seller, stock=3) for _ in range(3)]
        first = _place(buyer, listings[0])
        second = _place(buyer, listings[1])
        session_service.create_session(seller.id)

        summary = cascade_service.delete_account(seller.id, admin.id)

        assert summary == {"account_id": seller.id, "role": "seller", "listings_deleted": 3}
        assert db.session.get(Account, seller.id) is None
        assert _count(Listing, seller_id=seller.id) == 0
        assert _count(SessionToken, account_id=seller.id) == 0
        # Orders are history; they stay as they were
        assert order_service.get_order(first.id).status == "pending"
        assert order_service.get_order(second.id).status == "pending"

    def test_failure_on_second_listing_rolls_back_everything(self, admin, seller, buyer, make_listing):
        listings = [make_listing(seller, stock=3) for _ in range(3)]
        _place(buyer, listings[0])
        _place(buyer, listings[1])
        calls = {"n": 0}

        def fail_second_delete(mapper, connection, target):
            calls["n"] += 1
            if calls["n"] == 2:
                raise OperationalError("DELETE FROM listings", {}, Exception("database is locked"))

        event.listen(Listing, "before_delete", fail_second_delete)
        try:
            with pytest.raises(CascadeFailed) as exc_info:
                cascade_service.delete_account(seller.id, admin.id)
        finally:
            event.remove(Listing, "before_delete", fail_second_delete)

        assert isinstance(exc_info.value.cause, OperationalError)
        assert isinstance(exc_info.value.__cause__, OperationalError)
        assert db.session.get(Account, seller.id) is not None
        assert _count(Listing, seller_id=seller.id) == 3
        assert _count(Order, status="pending") == 2

    def test_non_storage_error_is_wrapped_and_session_reset(self, admin, seller, make_listing):
        for _ in range(3):
            make_listing(seller)
        calls = {"n": 0}

        def fail_second_delete(mapper, connection, target):
            calls["n"] += 1
            if calls["n"] == 2:
                raise RuntimeError("listing hook failed")

        event.listen(Listing, "before_delete", fail_second_delete)
        try:
            with pytest.raises(CascadeFailed) as exc_info:
                cascade_service.delete_account(seller.id, admin.id)
        finally:
            event.remove(Listing, "before_delete", fail_second_delete)

        assert isinstance(exc_info.value.cause, RuntimeError)
        assert exc_info.value.details == {"account_id": seller.id, "role": "seller"}
        # Rolled back, so the same session keeps working
        assert _count(Listing, seller_id=seller.id) == 3
        assert db.session.get(Account, seller.id) is not None


class TestDeleteBuyer:

    def test_pending_orders_cancelled_without_release(self, admin, seller, buyer, make_listing):
        listing = make_listing(seller, stock=5)
        pending = _place(buyer, listing, quantity=2)
        confirmed = _place(buyer, listing, quantity=1)
        order_service.advance_status(confirmed.id, "confirmed", admin_id=admin.id)

        summary = cascade_service.delete_account(buyer.id, admin.id)

        assert summary["orders_cancelled"] == 1
        assert db.session.get(Account, buyer.id) is None
        assert order_service.get_order(pending.id).status == "cancelled"
        assert order_service.get_order(confirmed.id).status == "confirmed"
        # Stock reserved by the cancelled order is not returned on this path
        assert inventory_service.get_listing(listing.id).stock == 2


class TestDeleteGuards:

    def test_admin_cannot_delete_self(self, admin):
        with pytest.raises(SelfDeletion):
            cascade_service.delete_account(admin.id, admin.id)
        assert db.session.get(Account, admin.id) is not None

    def test_non_admin_cannot_delete(self, seller, buyer):
        with pytest.raises(NotAuthorized):
            cascade_service.delete_account(buyer.id, seller.id)

    def test_missing_account(self, admin):
        with pytest.raises(NotFound):
            cascade_service.delete_account(55555, admin.id)

    def test_delete_other_admin(self, admin, make_account):
        other = make_account(Role.ADMIN)
        summary = cascade_service.delete_account(other.id, admin.id)
        assert summary == {"account_id": other.id, "role": "admin"}


class TestVerificationOverride:

    def test_verify_clears_challenge(self, admin, make_account):
        from marketplace.services import verification_service

        pending = make_account(Role.BUYER, verified=False)
        verification_service.issue_challenge(pending.id)

        account = cascade_service.set_verification_status(pending.id, True, admin.id)

        assert account.is_verified is True
        assert account.otp_code is None
        assert account.otp_expires_at is None

    def test_non_bool_flag_rejected(self, admin, buyer):
        with pytest.raises(ValidationError):
            cascade_service.set_verification_status(buyer.id, "yes", admin.id)
        assert db.session.get(Account, buyer.id).is_verified is True

    def test_unverify_ends_sessions(self, admin, buyer):
        _session, token = session_service.create_session(buyer.id)
        cascade_service.set_verification_status(buyer.id, False, admin.id)
        assert session_service.validate_session(token) is None


class TestSellerRateAdjustment:

    def test_delegates_to_ledger(self, seller, make_listing):
        make_listing(seller, material="leather", rate_cents=10000)
        make_listing(seller, material="leather", rate_cents=5000)

        result = cascade_service.bulk_adjust_rate(seller.id, "leather", percentage=10)

        assert (result.matched_count, result.modified_count) == (2, 2)
        rates = sorted(listing.rate_cents for listing in inventory_service.list_listings(seller_id=seller.id))
        assert rates == [5500, 11000]

    def test_buyer_cannot_adjust(self, buyer):
        with pytest.raises(NotAuthorized):
            cascade_service.bulk_adjust_rate(buyer.id, "leather", increase_cents=100)
