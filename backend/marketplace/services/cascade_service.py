# Overview: Service-layer operations for cascading writes; account deletion and seller-wide price changes.

"""
Cascading Mutation Coordinator

WHY: Removing an account touches rows the account owns. Those writes and
the account removal must land together or not at all, so the whole
cascade runs in one database transaction.

ROLE DISPATCH (exhaustive over Role):
- seller: every listing owned by the account is deleted
- buyer:  every pending order of the account becomes cancelled. Stock is
          NOT released on this path; inventory reconciliation for those
          listings is left to their sellers.
- admin:  nothing beyond the account itself

For every role the account's session tokens are deleted with it.

FAILURE: Any error inside the cascade rolls the transaction back and is
raised as CascadeFailed, chaining the original exception. The admin,
self-deletion and existence checks run before it and raise their own errors.
"""

from __future__ import annotations

from decimal import Decimal

from flask import current_app
from sqlalchemy import update

from ..extensions import db
from ..errors import CascadeFailed, NotAuthorized, NotFound, SelfDeletion, ValidationError
from ..models import Account, Listing, Order, Role
from . import inventory_service
from .concurrency import lock_for_update
from .inventory_service import RateAdjustment


def _require_admin(admin_id: int) -> Account:
    admin = db.session.query(Account).filter_by(id=admin_id).first()
    if admin is None or admin.role_kind is not Role.ADMIN:
        raise NotAuthorized("Administrator capability required")
    return admin


def _delete_seller_listings(account_id: int) -> int:
    listings = db.session.query(Listing).filter(Listing.seller_id == account_id).all()
    for listing in listings:
        db.session.delete(listing)
        db.session.flush()
    return len(listings)


def _cancel_buyer_pending_orders(account_id: int) -> int:
    result = db.session.execute(
        update(Order)
        .where(Order.buyer_id == account_id, Order.status == "pending")
        .values(status="cancelled")
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


def _apply_role_cascade(account: Account) -> dict:
    match account.role_kind:
        case Role.SELLER:
            return {"listings_deleted": _delete_seller_listings(account.id)}
        case Role.BUYER:
            return {"orders_cancelled": _cancel_buyer_pending_orders(account.id)}
        case Role.ADMIN:
            return {}


def delete_account(account_id: int, requesting_admin_id: int) -> dict:
    """
    Delete an account and its dependent records atomically.

    Returns a summary of what the cascade removed or changed.

    Raises:
        NotAuthorized: requester is not an admin
        SelfDeletion: an admin tried to delete their own account
        NotFound: no such account
        CascadeFailed: a cascade step failed; nothing was kept
    """
    _require_admin(requesting_admin_id)
    if account_id == requesting_admin_id:
        raise SelfDeletion("Cannot delete your own account")

    account = lock_for_update(db.session.query(Account).filter_by(id=account_id)).first()
    if account is None:
        db.session.rollback()
        raise NotFound("User not found", {"account_id": account_id})

    role = account.role_kind
    try:
        summary = _apply_role_cascade(account)
        # Session tokens go with the account (delete-orphan cascade)
        db.session.delete(account)
        db.session.commit()
    except Exception as exc:
        db.session.rollback()
        current_app.logger.error("Cascade delete of account %s rolled back: %r", account_id, exc)
        raise CascadeFailed(
            "Failed to delete user",
            cause=exc,
            details={"account_id": account_id, "role": role.value},
        ) from exc

    current_app.logger.info(
        "Account %s (%s) deleted by admin %s: %s", account_id, role.value, requesting_admin_id, summary
    )
    return {"account_id": account_id, "role": role.value, **summary}


def bulk_adjust_rate(
    owner_id: int,
    material: str,
    *,
    increase_cents: int | None = None,
    percentage: Decimal | float | int | None = None,
) -> RateAdjustment:
    """
    Seller-wide price change for one material.

    Each listing is updated by its own guarded statement; no invariant
    spans listings, so there is no multi-row transaction here.
    """
    owner = db.session.query(Account).filter_by(id=owner_id).first()
    if owner is None:
        raise NotFound("Seller account not found", {"account_id": owner_id})
    if owner.role_kind is not Role.SELLER:
        raise NotAuthorized("Only sellers can adjust listing rates")

    adjustment = inventory_service.bulk_adjust_rate(
        owner_id, material, increase_cents=increase_cents, percentage=percentage
    )
    current_app.logger.info(
        "Seller %s adjusted %s rates: matched=%s modified=%s",
        owner_id, adjustment.material, adjustment.matched_count, adjustment.modified_count,
    )
    return adjustment


def set_verification_status(account_id: int, is_verified: bool, requesting_admin_id: int) -> Account:
    """
    Administrative override of an account's verification flag.

    Verifying clears any outstanding code. Unverifying revokes nothing by
    itself; validate_session() rejects unverified accounts.
    """
    _require_admin(requesting_admin_id)
    if not isinstance(is_verified, bool):
        raise ValidationError("is_verified must be a boolean value")

    account = db.session.query(Account).filter_by(id=account_id).first()
    if account is None:
        raise NotFound("User not found", {"account_id": account_id})

    account.is_verified = is_verified
    if is_verified:
        account.otp_code = None
        account.otp_expires_at = None
    db.session.commit()
    return account
