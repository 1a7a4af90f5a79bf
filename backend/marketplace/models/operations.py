from __future__ import annotations

from ..extensions import db
from marketplace.time_utils import to_utc_z

class OperatorEvent(db.Model):
    """
    Detected inconsistencies that need a human.

    WHY: Some two-step writes (cancel order, then restore stock) are not
    rolled back when the second step fails. The failure is recorded here
    instead so operators can reconcile by hand.

    IMMUTABLE: Never update or delete. Append-only.
    """
    __tablename__ = "operator_events"
    __table_args__ = (
        db.Index("ix_operator_events_type_occurred", "event_type", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    event_type = db.Column(db.String(64), nullable=False, index=True)  # STOCK_RELEASE_FAILED, ...
    entity_type = db.Column(db.String(32), nullable=False)
    entity_id = db.Column(db.Integer, nullable=True)
    account_id = db.Column(db.Integer, nullable=True)

    reason = db.Column(db.Text, nullable=True)
    payload = db.Column(db.Text, nullable=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "event_type": self.event_type,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "account_id": self.account_id,
            "reason": self.reason,
            "payload": self.payload,
            "occurred_at": to_utc_z(self.occurred_at),
        }
