# Overview: Service-layer operations for inventory; owns listing stock and sold status.

# backend/marketplace/services/inventory_service.py

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy import case, update

from ..extensions import db
from ..errors import (
    AlreadySold,
    InsufficientStock,
    InvalidAdjustment,
    NoMatch,
    NotAuthorized,
    NotFound,
    NotOwner,
    ValidationError,
)
from ..models import Account, Listing, MATERIALS, Role
from ..validation import MAX_PRICE_CENTS, parse_decimal, require_choice, require_int, require_text
from .concurrency import compare_and_set, compare_and_set_returning
"""
Marketplace Inventory Invariants (authoritative)

Stock model:
- Listing.stock is the single source of truth for availability.
- Listing.is_sold is a persisted copy of (stock == 0), kept for queries.
- Both fields are written ONLY here, and always in the same UPDATE
  statement, so no reader can observe them disagreeing.

Atomicity:
- Every stock mutation is one conditional UPDATE against one row.
  reserve() decrements only WHERE stock >= quantity AND NOT is_sold, so
  under any number of concurrent callers the stock never goes negative
  and at most stock/quantity reservations succeed.
- No multi-row transaction is needed for stock; listings are independent.

Release semantics:
- release() increments stock and clears is_sold unconditionally.
  Outstanding reservations are not tracked per order; the stock arithmetic
  stays exact, the flag simply reflects stock > 0 again.

Prices:
- rate_cents is an integer number of cents. Percentage adjustments round
  half-up to the cent.
"""


# Fields a seller may edit directly. stock/is_sold go through the ledger.
EDITABLE_FIELDS = {
    "name", "description", "material", "color",
    "height_cm", "width_cm", "depth_cm", "rate_cents",
}
LEDGER_FIELDS = {"stock", "is_sold", "seller_id"}


@dataclass(frozen=True)
class RateAdjustment:
    """Outcome of a bulk rate change for one seller and material."""
    material: str
    matched_count: int
    modified_count: int

    def to_dict(self) -> dict:
        return {
            "material": self.material,
            "matched_count": self.matched_count,
            "modified_count": self.modified_count,
        }


def _load_listing(listing_id: int) -> Listing | None:
    # populate_existing: the guarded UPDATEs bypass the identity map
    return (
        db.session.query(Listing)
        .filter_by(id=listing_id)
        .populate_existing()
        .first()
    )


def _ensure_owned_listing(listing_id: int, owner_id: int) -> Listing:
    listing = _load_listing(listing_id)
    if listing is None:
        raise NotFound("Listing not found", {"listing_id": listing_id})
    if listing.seller_id != owner_id:
        raise NotOwner("Listing does not belong to this seller", {"listing_id": listing_id})
    return listing


def _ensure_seller(account_id: int) -> Account:
    account = db.session.query(Account).filter_by(id=account_id).first()
    if account is None:
        raise NotFound("Seller account not found", {"account_id": account_id})
    if account.role_kind is not Role.SELLER:
        raise NotAuthorized("Only sellers can manage listings")
    return account


def _validate_quantity(quantity) -> int:
    return require_int("quantity", quantity, minimum=1)


def _validate_listing_fields(fields: dict, *, partial: bool) -> dict:
    clean: dict = {}

    def present(key: str) -> bool:
        return key in fields or not partial

    if present("name"):
        clean["name"] = require_text("name", fields.get("name"), max_length=100)
    if present("description"):
        clean["description"] = require_text(
            "description", fields.get("description"), max_length=500, required=False
        )
    if present("material"):
        clean["material"] = require_choice("material", fields.get("material"), MATERIALS)
    if present("color"):
        clean["color"] = require_text("color", fields.get("color"), max_length=64, required=False)
    if present("height_cm"):
        clean["height_cm"] = require_int("height_cm", fields.get("height_cm"), minimum=1)
    if present("width_cm"):
        clean["width_cm"] = require_int("width_cm", fields.get("width_cm"), minimum=1)
    if present("depth_cm"):
        depth = fields.get("depth_cm")
        clean["depth_cm"] = None if depth is None else require_int("depth_cm", depth, minimum=1)
    if present("rate_cents"):
        clean["rate_cents"] = require_int(
            "rate_cents", fields.get("rate_cents"), minimum=0, maximum=MAX_PRICE_CENTS
        )
    return clean


def get_listing(listing_id: int) -> Listing:
    listing = _load_listing(listing_id)
    if listing is None:
        raise NotFound("Listing not found", {"listing_id": listing_id})
    return listing


def list_listings(
    *,
    seller_id: int | None = None,
    material: str | None = None,
    available_only: bool = False,
) -> list[Listing]:
    query = db.session.query(Listing)
    if seller_id is not None:
        query = query.filter(Listing.seller_id == seller_id)
    if material is not None:
        query = query.filter(Listing.material == material)
    if available_only:
        query = query.filter(Listing.is_sold.is_(False))
    return query.order_by(Listing.created_at.desc(), Listing.id.desc()).all()


def create_listing(seller_id: int, fields: dict) -> Listing:
    """
    Create a listing owned by seller_id.

    stock defaults to 1. A listing created with stock 0 starts sold.
    """
    _ensure_seller(seller_id)
    clean = _validate_listing_fields(fields, partial=False)
    stock = require_int("stock", fields.get("stock", 1), minimum=0)

    listing = Listing(seller_id=seller_id, stock=stock, is_sold=(stock == 0), **clean)
    db.session.add(listing)
    db.session.commit()
    return listing


def update_listing(listing_id: int, owner_id: int, fields: dict) -> Listing:
    """Edit descriptive fields and price. Stock changes must use the ledger operations."""
    forbidden = LEDGER_FIELDS & set(fields)
    if forbidden:
        raise ValidationError(
            "Stock and ownership are managed by the inventory ledger",
            details={"fields": sorted(forbidden)},
        )
    unknown = set(fields) - EDITABLE_FIELDS
    if unknown:
        raise ValidationError("Unknown listing fields", details={"fields": sorted(unknown)})

    listing = _ensure_owned_listing(listing_id, owner_id)
    for key, value in _validate_listing_fields(fields, partial=True).items():
        setattr(listing, key, value)

    db.session.commit()
    return listing


def delete_listing(listing_id: int, owner_id: int) -> None:
    """Owner deletes a listing. Orders that reference it are left as they are."""
    listing = _ensure_owned_listing(listing_id, owner_id)
    db.session.delete(listing)
    db.session.commit()


def _raise_reservation_failure(listing_id: int, quantity: int) -> None:
    listing = _load_listing(listing_id)
    if listing is None:
        raise NotFound("Listing not found", {"listing_id": listing_id})
    if listing.is_sold:
        raise AlreadySold("Listing is already sold", {"listing_id": listing_id})
    raise InsufficientStock(
        f"Insufficient stock. Only {listing.stock} items available",
        details={
            "listing_id": listing_id,
            "requested_quantity": quantity,
            "available": listing.stock,
        },
    )


def reserve(listing_id: int, quantity: int, *, commit: bool = True) -> int:
    """
    Atomically take `quantity` units from a listing.

    Returns the unit price (cents) in effect at the moment of the
    reservation so the caller can snapshot an order total.

    Raises NotFound, AlreadySold or InsufficientStock; nothing is written
    in those cases.

    commit=False leaves the write in the caller's transaction (order
    placement reserves and inserts the order as one unit).
    """
    quantity = _validate_quantity(quantity)

    stmt = (
        update(Listing)
        .where(
            Listing.id == listing_id,
            Listing.is_sold.is_(False),
            Listing.stock >= quantity,
        )
        .values(
            stock=Listing.stock - quantity,
            # Evaluated against the pre-update row
            is_sold=case((Listing.stock == quantity, True), else_=False),
        )
        .returning(Listing.rate_cents)
    )
    row = compare_and_set_returning(stmt)
    if row is None:
        try:
            _raise_reservation_failure(listing_id, quantity)
        finally:
            if commit:
                db.session.rollback()

    if commit:
        db.session.commit()
    return row.rate_cents


def release(listing_id: int, quantity: int, *, commit: bool = True) -> int:
    """
    Return `quantity` units to a listing and mark it available.

    Returns the new stock. Raises NotFound when the listing no longer
    exists; callers restoring stock for a cancelled order treat that as
    nothing to restore.
    """
    quantity = _validate_quantity(quantity)

    stmt = (
        update(Listing)
        .where(Listing.id == listing_id)
        .values(stock=Listing.stock + quantity, is_sold=False)
        .returning(Listing.stock)
    )
    row = compare_and_set_returning(stmt)
    if row is None:
        raise NotFound("Listing not found", {"listing_id": listing_id})

    if commit:
        db.session.commit()
    return row.stock


def restock(listing_id: int, owner_id: int, quantity: int) -> Listing:
    """Owner adds units to a listing. Clears is_sold in the same write."""
    quantity = _validate_quantity(quantity)

    stmt = (
        update(Listing)
        .where(Listing.id == listing_id, Listing.seller_id == owner_id)
        .values(stock=Listing.stock + quantity, is_sold=False)
    )
    if compare_and_set(stmt) == 0:
        _ensure_owned_listing(listing_id, owner_id)

    db.session.commit()
    return _load_listing(listing_id)


def force_sold(listing_id: int, owner_id: int) -> Listing:
    """Manual delisting: stock to zero and flagged sold, whatever the current stock."""
    stmt = (
        update(Listing)
        .where(Listing.id == listing_id, Listing.seller_id == owner_id)
        .values(stock=0, is_sold=True)
    )
    if compare_and_set(stmt) == 0:
        _ensure_owned_listing(listing_id, owner_id)

    db.session.commit()
    return _load_listing(listing_id)


def _apply_percentage(rate_cents: int, percentage: Decimal) -> int:
    factor = (Decimal(100) + percentage) / Decimal(100)
    return int((Decimal(rate_cents) * factor).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _check_adjusted_rates(rates: list[int], material: str) -> None:
    if any(rate < 0 for rate in rates):
        raise InvalidAdjustment("Adjustment would make a rate negative", {"material": material})
    if any(rate > MAX_PRICE_CENTS for rate in rates):
        raise InvalidAdjustment("Adjustment would exceed the maximum rate", {"material": material})


def bulk_adjust_rate(
    owner_id: int,
    material: str,
    *,
    increase_cents: int | None = None,
    percentage: Decimal | float | int | None = None,
) -> RateAdjustment:
    """
    Change the price of every listing owned by owner_id with this material.

    Exactly one policy:
    - increase_cents: the same delta for every match, one batched UPDATE.
    - percentage: per listing, new = rate * (1 + pct/100) rounded half-up
      to the cent. Each row is written with a guard on its old rate, so a
      concurrent price edit is never overwritten with a stale result.

    Raises NoMatch when the seller has no listing of that material, and
    InvalidAdjustment when a resulting price would be negative or above
    MAX_PRICE_CENTS. Nothing is written in either case.
    """
    if (increase_cents is None) == (percentage is None):
        raise InvalidAdjustment("Either increase amount or percentage is required, not both")
    material = require_choice("material", material, MATERIALS)

    matching = (
        db.session.query(Listing.id, Listing.rate_cents)
        .filter(Listing.seller_id == owner_id, Listing.material == material)
        .all()
    )
    if not matching:
        raise NoMatch(f"No {material} listings found", {"material": material, "matched_count": 0})

    if increase_cents is not None:
        increase_cents = require_int("increase_cents", increase_cents)
        _check_adjusted_rates([rate + increase_cents for _, rate in matching], material)

        matched = compare_and_set(
            update(Listing)
            .where(Listing.seller_id == owner_id, Listing.material == material)
            .values(rate_cents=Listing.rate_cents + increase_cents)
        )
        db.session.commit()
        return RateAdjustment(
            material=material,
            matched_count=matched,
            modified_count=matched if increase_cents else 0,
        )

    percentage = parse_decimal("percentage", percentage)
    new_rates = [(listing_id, rate, _apply_percentage(rate, percentage)) for listing_id, rate in matching]
    _check_adjusted_rates([new_rate for _, _, new_rate in new_rates], material)

    modified = 0
    for listing_id, old_rate, new_rate in new_rates:
        if new_rate == old_rate:
            continue
        modified += compare_and_set(
            update(Listing)
            .where(Listing.id == listing_id, Listing.rate_cents == old_rate)
            .values(rate_cents=new_rate)
        )

    db.session.commit()
    return RateAdjustment(material=material, matched_count=len(matching), modified_count=modified)
