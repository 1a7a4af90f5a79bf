from __future__ import annotations

from ..extensions import db
from marketplace.time_utils import to_utc_z


MATERIALS = ("leather", "plastic", "fabric", "aluminum", "carbon-fiber")


class Listing(db.Model):
    """
    A seller's product offering with trackable stock.

    INVARIANT: is_sold == (stock == 0). stock is the source of truth; the
    persisted is_sold flag exists for cheap "available" queries and is only
    ever written by the UPDATE statements in inventory_service, in the same
    statement as the stock change. The CHECK constraint rejects any other
    write that breaks the pairing.
    """
    __tablename__ = "listings"
    __table_args__ = (
        db.CheckConstraint("rate_cents >= 0", name="ck_listings_rate_non_negative"),
        db.CheckConstraint("stock >= 0", name="ck_listings_stock_non_negative"),
        db.CheckConstraint(
            "(is_sold AND stock = 0) OR (NOT is_sold AND stock > 0)",
            name="ck_listings_sold_matches_stock",
        ),
        db.Index("ix_listings_seller_sold", "seller_id", "is_sold"),
        db.Index("ix_listings_seller_material", "seller_id", "material"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    seller_id = db.Column(db.Integer, db.ForeignKey("accounts.id"), nullable=False, index=True)

    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.String(500), nullable=True)
    material = db.Column(db.String(32), nullable=False, index=True)
    color = db.Column(db.String(64), nullable=True)

    # Dimensions in centimetres
    height_cm = db.Column(db.Integer, nullable=False)
    width_cm = db.Column(db.Integer, nullable=False)
    depth_cm = db.Column(db.Integer, nullable=True)

    # Unit price in cents
    rate_cents = db.Column(db.Integer, nullable=False)

    stock = db.Column(db.Integer, nullable=False, default=1)
    is_sold = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True, onupdate=db.func.now())

    seller = db.relationship("Account", backref=db.backref("listings", lazy=True))

    @property
    def dimensions(self) -> str:
        depth = f" x {self.depth_cm}" if self.depth_cm else ""
        return f"{self.height_cm} x {self.width_cm}{depth} cm"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "seller_id": self.seller_id,
            "name": self.name,
            "description": self.description,
            "material": self.material,
            "color": self.color,
            "height_cm": self.height_cm,
            "width_cm": self.width_cm,
            "depth_cm": self.depth_cm,
            "dimensions": self.dimensions,
            "rate_cents": self.rate_cents,
            "stock": self.stock,
            "is_sold": self.is_sold,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at) if self.updated_at else None,
        }
