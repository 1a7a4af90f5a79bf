from __future__ import annotations

from sqlalchemy.orm import validates

from ..extensions import db
from marketplace.time_utils import to_utc_z


ORDER_STATUSES = ("pending", "confirmed", "shipped", "delivered", "cancelled")
PAYMENT_STATUSES = ("pending", "paid", "failed", "refunded")
PAYMENT_METHODS = ("cod", "online")


class Order(db.Model):
    """
    Buyer order against a single listing.

    WHY plain integer references: an order is a historical record. It
    outlives the listing (seller deletes it) and the buyer account (admin
    deletes it), so buyer_id/listing_id are not foreign keys.

    total_amount_cents is the price snapshot taken when the reservation
    succeeded. It is never recomputed.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.CheckConstraint("quantity >= 1", name="ck_orders_quantity_positive"),
        db.CheckConstraint("total_amount_cents >= 0", name="ck_orders_total_non_negative"),
        db.Index("ix_orders_buyer_created", "buyer_id", "created_at"),
        db.Index("ix_orders_buyer_status", "buyer_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_number = db.Column(db.String(32), nullable=False, unique=True)

    buyer_id = db.Column(db.Integer, nullable=False)
    listing_id = db.Column(db.Integer, nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False, default=1)
    total_amount_cents = db.Column(db.Integer, nullable=False)

    payment_method = db.Column(db.String(16), nullable=False)
    status = db.Column(db.String(16), nullable=False, default="pending", index=True)
    payment_status = db.Column(db.String(16), nullable=False, default="pending")

    shipping_address = db.Column(db.Text, nullable=False)
    order_notes = db.Column(db.String(200), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True, onupdate=db.func.now())

    @validates("total_amount_cents")
    def _freeze_total(self, key, value):
        if self.total_amount_cents is not None and value != self.total_amount_cents:
            raise ValueError("total_amount_cents is immutable once set")
        return value

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_number": self.order_number,
            "buyer_id": self.buyer_id,
            "listing_id": self.listing_id,
            "quantity": self.quantity,
            "total_amount_cents": self.total_amount_cents,
            "payment_method": self.payment_method,
            "status": self.status,
            "payment_status": self.payment_status,
            "shipping_address": self.shipping_address,
            "order_notes": self.order_notes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at) if self.updated_at else None,
        }
