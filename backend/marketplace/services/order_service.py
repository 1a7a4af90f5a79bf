# Overview: Service-layer operations for orders; status lifecycle coordinated with the inventory ledger.

"""
Order Lifecycle Service

================================================================================
PURPOSE: Keep order status and listing stock from diverging
================================================================================

STATE MACHINE:
    pending -> confirmed -> shipped -> delivered
    pending -> cancelled

    pending:    stock is reserved, buyer may cancel
    confirmed:  accepted by the marketplace
    shipped:    handed to a carrier
    delivered:  terminal
    cancelled:  terminal, reachable ONLY from pending

RULES:
1. An order exists only if its reservation succeeded (same transaction).
2. total_amount_cents is the reserved unit price x quantity, fixed forever.
3. Status writes are compare-and-set on the expected current status, so two
   concurrent cancels cannot both restore stock.
4. Cancellation commits the status first, then releases stock. A failed
   release is reported to operators, never rolled back or retried.
================================================================================
"""

from __future__ import annotations

import secrets

from flask import current_app
from sqlalchemy import func, update

from ..extensions import db
from ..errors import (
    InvalidTransition,
    MarketplaceError,
    NotAuthorized,
    NotFound,
    ValidationError,
)
from ..models import Account, Order, Role, ORDER_STATUSES, PAYMENT_METHODS
from ..validation import require_choice, require_int, require_text
from marketplace.time_utils import utcnow
from . import inventory_service, operator_service
from .concurrency import compare_and_set, compare_and_set_returning


VALID_TRANSITIONS = {
    ("pending", "confirmed"),
    ("pending", "cancelled"),
    ("confirmed", "shipped"),
    ("shipped", "delivered"),
}

# Administrative forward moves: target -> required current status
FORWARD_TRANSITIONS = {
    "confirmed": "pending",
    "shipped": "confirmed",
    "delivered": "shipped",
}


def can_transition(from_status: str, to_status: str) -> bool:
    """Check a status change against the lifecycle. Unknown statuses raise ValidationError."""
    require_choice("status", from_status, ORDER_STATUSES)
    require_choice("status", to_status, ORDER_STATUSES)
    return (from_status, to_status) in VALID_TRANSITIONS


def _generate_order_number() -> str:
    return f"TSM{utcnow():%Y%m%d%H%M%S}{secrets.token_hex(3).upper()}"


def _ensure_role(account_id: int, role: Role, message: str) -> Account:
    account = db.session.query(Account).filter_by(id=account_id).first()
    if account is None:
        raise NotFound("Account not found", {"account_id": account_id})
    if account.role_kind is not role:
        raise NotAuthorized(message)
    return account


def _find_order(order_id: int, buyer_id: int | None = None) -> Order:
    query = db.session.query(Order).filter(Order.id == order_id)
    if buyer_id is not None:
        query = query.filter(Order.buyer_id == buyer_id)
    order = query.populate_existing().first()
    if order is None:
        raise NotFound("Order not found", {"order_id": order_id})
    return order


def get_order(order_id: int, buyer_id: int | None = None) -> Order:
    return _find_order(order_id, buyer_id)


def list_orders(buyer_id: int, status: str | None = None) -> list[Order]:
    query = db.session.query(Order).filter(Order.buyer_id == buyer_id)
    if status is not None:
        query = query.filter(Order.status == require_choice("status", status, ORDER_STATUSES))
    return query.order_by(Order.created_at.desc(), Order.id.desc()).all()


def place_order(
    buyer_id: int,
    listing_id: int,
    quantity: int,
    payment_method: str,
    shipping_address: str,
    order_notes: str | None = None,
) -> Order:
    """
    Reserve stock and create a pending order as one transaction.

    Reservation failures (NotFound, AlreadySold, InsufficientStock) are
    raised unchanged and nothing is written. If the order row cannot be
    persisted after the reservation, the transaction is rolled back, which
    undoes the reservation too.
    """
    quantity = require_int("quantity", quantity, minimum=1)
    payment_method = require_choice("payment_method", payment_method, PAYMENT_METHODS)
    shipping_address = require_text("shipping_address", shipping_address)
    order_notes = require_text("order_notes", order_notes, max_length=200, required=False)

    _ensure_role(buyer_id, Role.BUYER, "Only buyers can place orders")

    try:
        unit_price_cents = inventory_service.reserve(listing_id, quantity, commit=False)
    except MarketplaceError:
        db.session.rollback()
        raise

    try:
        order = Order(
            order_number=_generate_order_number(),
            buyer_id=buyer_id,
            listing_id=listing_id,
            quantity=quantity,
            total_amount_cents=unit_price_cents * quantity,
            payment_method=payment_method,
            status="pending",
            payment_status="pending",
            shipping_address=shipping_address,
            order_notes=order_notes,
        )
        db.session.add(order)
        db.session.commit()
    except Exception as exc:
        _undo_reservation(listing_id, quantity, buyer_id, exc)
        raise

    current_app.logger.info(
        "Order %s placed: buyer=%s listing=%s quantity=%s total_cents=%s",
        order.order_number, buyer_id, listing_id, quantity, order.total_amount_cents,
    )
    return order


def _undo_reservation(listing_id: int, quantity: int, buyer_id: int, cause: Exception) -> None:
    try:
        db.session.rollback()
    except Exception as rollback_exc:
        current_app.logger.exception("Rolling back reservation for listing %s failed", listing_id)
        operator_service.report_inconsistency(
            event_type=operator_service.RESERVATION_ROLLBACK_FAILED,
            entity_type="listing",
            entity_id=listing_id,
            account_id=buyer_id,
            reason=f"{cause!r}; rollback: {rollback_exc!r}",
            payload=f"quantity={quantity}",
        )
        return

    current_app.logger.warning(
        "Order persistence failed after reserving listing %s (quantity=%s); reservation rolled back: %r",
        listing_id, quantity, cause,
    )


def _restore_stock(order_id: int, listing_id: int, quantity: int, actor_id: int | None) -> None:
    try:
        inventory_service.release(listing_id, quantity)
    except NotFound:
        db.session.rollback()
        current_app.logger.info(
            "Listing %s no longer exists; nothing to restore for order %s", listing_id, order_id
        )
    except Exception as exc:
        db.session.rollback()
        operator_service.report_inconsistency(
            event_type=operator_service.STOCK_RELEASE_FAILED,
            entity_type="order",
            entity_id=order_id,
            account_id=actor_id,
            reason=f"Order cancelled but stock release failed: {exc!r}",
            payload=f"listing_id={listing_id},quantity={quantity}",
        )


def _cancel(order_id: int, *, buyer_id: int | None, actor_id: int) -> Order:
    criteria = [Order.id == order_id, Order.status == "pending"]
    if buyer_id is not None:
        criteria.append(Order.buyer_id == buyer_id)

    row = compare_and_set_returning(
        update(Order)
        .where(*criteria)
        .values(status="cancelled")
        .returning(Order.listing_id, Order.quantity)
    )
    if row is None:
        order = _find_order(order_id, buyer_id)
        raise InvalidTransition(
            "Only pending orders can be cancelled",
            details={"order_id": order_id, "status": order.status},
        )
    db.session.commit()

    _restore_stock(order_id, row.listing_id, row.quantity, actor_id)
    return _find_order(order_id)


def cancel_order(order_id: int, requesting_buyer_id: int) -> Order:
    """
    Buyer cancels their own pending order and the stock goes back to the listing.

    NotFound when no order matches both id and buyer; InvalidTransition for
    any status other than pending. A deleted listing is not an error.
    """
    return _cancel(order_id, buyer_id=requesting_buyer_id, actor_id=requesting_buyer_id)


def admin_cancel_order(order_id: int, admin_id: int) -> Order:
    """Administrative cancellation: same rules as cancel_order() without the buyer match."""
    _ensure_role(admin_id, Role.ADMIN, "Administrator capability required")
    return _cancel(order_id, buyer_id=None, actor_id=admin_id)


def advance_status(order_id: int, target_status: str, *, admin_id: int) -> Order:
    """
    Move an order one step forward: confirmed, shipped or delivered.

    Only the immediate predecessor is accepted; there is no skipping and
    no moving backwards. Cancellation has its own entry points.
    """
    _ensure_role(admin_id, Role.ADMIN, "Administrator capability required")

    if target_status == "cancelled":
        raise InvalidTransition("Use order cancellation to cancel an order")
    if target_status not in FORWARD_TRANSITIONS:
        raise ValidationError(
            f"status must be one of: {', '.join(FORWARD_TRANSITIONS)}"
        )

    expected = FORWARD_TRANSITIONS[target_status]
    changed = compare_and_set(
        update(Order)
        .where(Order.id == order_id, Order.status == expected)
        .values(status=target_status)
    )
    if changed == 0:
        order = _find_order(order_id)
        raise InvalidTransition(
            f"Cannot move order from {order.status} to {target_status}",
            details={"order_id": order_id, "status": order.status},
        )

    db.session.commit()
    return _find_order(order_id)


def buyer_stats(buyer_id: int) -> dict:
    rows = (
        db.session.query(Order.status, func.count(Order.id))
        .filter(Order.buyer_id == buyer_id)
        .group_by(Order.status)
        .all()
    )
    by_status = {status: count for status, count in rows}

    total_spent = (
        db.session.query(func.coalesce(func.sum(Order.total_amount_cents), 0))
        .filter(Order.buyer_id == buyer_id, Order.status != "cancelled")
        .scalar()
    )

    return {
        "total_orders": sum(by_status.values()),
        "pending_orders": by_status.get("pending", 0),
        "delivered_orders": by_status.get("delivered", 0),
        "cancelled_orders": by_status.get("cancelled", 0),
        "total_spent_cents": int(total_spent or 0),
        "orders_by_status": by_status,
    }
