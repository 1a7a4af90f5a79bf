# Overview: Service-layer operations for reporting; read-only aggregates over accounts, listings and orders.

from __future__ import annotations

import platform
import sys
import time

from flask import current_app
from sqlalchemy import func, text

from ..extensions import db
from ..errors import NotFound
from ..models import Account, Listing, Order, Role
from ..validation import require_choice
from marketplace.time_utils import utcnow, to_utc_z


RECENT_LIMIT = 5

_PROCESS_STARTED = time.monotonic()


def _count_by(column, *filters) -> dict:
    rows = (
        db.session.query(column, func.count())
        .filter(*filters)
        .group_by(column)
        .order_by(func.count().desc(), column)
        .all()
    )
    return {key: int(count) for key, count in rows}


def _revenue_cents(*filters) -> int:
    total = (
        db.session.query(func.coalesce(func.sum(Order.total_amount_cents), 0))
        .filter(Order.status != "cancelled", *filters)
        .scalar()
    )
    return int(total or 0)


def list_accounts(role: str | None = None) -> list[Account]:
    query = db.session.query(Account)
    if role is not None:
        query = query.filter(Account.role == require_choice("role", role, [r.value for r in Role]))
    return query.order_by(Account.created_at.desc(), Account.id.desc()).all()


def account_overview(account_id: int) -> dict:
    """
    One account plus the aggregates that matter for its role.

    Sellers: listing totals. Buyers: order count and spend, where spend
    excludes cancelled orders. Admins carry no stats.
    """
    account = db.session.get(Account, account_id)
    if account is None:
        raise NotFound("User not found", {"account_id": account_id})

    match account.role_kind:
        case Role.SELLER:
            sold = _count_by(Listing.is_sold, Listing.seller_id == account_id)
            stats = {
                "total_listings": sum(sold.values()),
                "sold_listings": sold.get(True, 0),
            }
        case Role.BUYER:
            stats = {
                "total_orders": db.session.query(Order).filter(Order.buyer_id == account_id).count(),
                "total_spent_cents": _revenue_cents(Order.buyer_id == account_id),
            }
        case Role.ADMIN:
            stats = {}

    return {"account": account.to_dict(), "stats": stats}


def _recent_orders() -> list[dict]:
    rows = (
        db.session.query(Order, Account.email, Listing.name)
        .outerjoin(Account, Account.id == Order.buyer_id)
        .outerjoin(Listing, Listing.id == Order.listing_id)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .limit(RECENT_LIMIT)
        .all()
    )
    # Buyer or listing may be gone; orders keep plain ids
    return [
        {
            "id": order.id,
            "order_number": order.order_number,
            "buyer_email": email,
            "listing_name": name,
            "total_amount_cents": order.total_amount_cents,
            "status": order.status,
            "created_at": to_utc_z(order.created_at),
        }
        for order, email, name in rows
    ]


def admin_dashboard() -> dict:
    verified = _count_by(Account.is_verified)
    total_accounts = sum(verified.values())

    sold = _count_by(Listing.is_sold)
    total_listings = sum(sold.values())

    orders_by_status = _count_by(Order.status)

    recent_accounts = (
        db.session.query(Account)
        .order_by(Account.created_at.desc(), Account.id.desc())
        .limit(RECENT_LIMIT)
        .all()
    )

    return {
        "account_stats": {
            "total_accounts": total_accounts,
            "verified_accounts": verified.get(True, 0),
            "unverified_accounts": total_accounts - verified.get(True, 0),
            "accounts_by_role": _count_by(Account.role),
        },
        "listing_stats": {
            "total_listings": total_listings,
            "sold_listings": sold.get(True, 0),
            "available_listings": total_listings - sold.get(True, 0),
            "listings_by_material": _count_by(Listing.material),
        },
        "order_stats": {
            "total_orders": sum(orders_by_status.values()),
            "pending_orders": orders_by_status.get("pending", 0),
            "delivered_orders": orders_by_status.get("delivered", 0),
            "orders_by_status": orders_by_status,
            "total_revenue_cents": _revenue_cents(),
        },
        "recent_activity": {
            "recent_accounts": [account.to_dict() for account in recent_accounts],
            "recent_orders": _recent_orders(),
        },
    }


def seller_dashboard(seller_id: int) -> dict:
    sold = _count_by(Listing.is_sold, Listing.seller_id == seller_id)
    total = sum(sold.values())
    sold_count = sold.get(True, 0)

    recent = (
        db.session.query(Listing)
        .filter(Listing.seller_id == seller_id)
        .order_by(Listing.created_at.desc(), Listing.id.desc())
        .limit(RECENT_LIMIT)
        .all()
    )

    return {
        "stats": {
            "total_listings": total,
            "sold_listings": sold_count,
            "available_listings": total - sold_count,
            "sold_percentage": round(sold_count * 100 / total) if total else 0,
        },
        "listings_by_material": _count_by(Listing.material, Listing.seller_id == seller_id),
        "recent_listings": [listing.to_dict() for listing in recent],
    }


def system_status() -> dict:
    """Database reachability and process facts for the admin console."""
    try:
        db.session.execute(text("SELECT 1"))
        database_status = "connected"
    except Exception:
        current_app.logger.exception("System status database check failed")
        db.session.rollback()
        database_status = "disconnected"

    uptime_seconds = int(time.monotonic() - _PROCESS_STARTED)
    return {
        "database": {
            "status": database_status,
            "dialect": db.engine.dialect.name,
            "name": db.engine.url.database or "N/A",
        },
        "server": {
            "python_version": platform.python_version(),
            "platform": sys.platform,
            "environment": current_app.config.get("ENV_NAME"),
            "uptime": {
                "days": uptime_seconds // 86400,
                "hours": uptime_seconds % 86400 // 3600,
                "minutes": uptime_seconds % 3600 // 60,
                "seconds": uptime_seconds % 60,
            },
        },
        "timestamp": to_utc_z(utcnow()),
    }
