# Overview: Service-layer operations for the operator channel; records detected inconsistencies.

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import OperatorEvent


STOCK_RELEASE_FAILED = "STOCK_RELEASE_FAILED"
RESERVATION_ROLLBACK_FAILED = "RESERVATION_ROLLBACK_FAILED"


def report_inconsistency(
    *,
    event_type: str,
    entity_type: str,
    entity_id: int | None,
    reason: str,
    account_id: int | None = None,
    payload: str | None = None,
) -> OperatorEvent | None:
    """
    Record a detected inconsistency for operators.

    Always logs at ERROR. The OperatorEvent row is written in its own
    transaction; if the store itself is failing the log line is the only
    record and None is returned.

    - No retries.
    - No attempt to repair the inconsistency.
    """
    current_app.logger.error(
        "Inconsistency detected: %s %s=%s account=%s reason=%s payload=%s",
        event_type, entity_type, entity_id, account_id, reason, payload,
    )

    event = OperatorEvent(
        event_type=event_type,
        entity_type=entity_type,
        entity_id=entity_id,
        account_id=account_id,
        reason=reason,
        payload=payload,
    )
    try:
        db.session.add(event)
        db.session.commit()
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to record operator event %s", event_type)
        return None
    return event


def list_events(event_type: str | None = None, limit: int = 100) -> list[OperatorEvent]:
    query = db.session.query(OperatorEvent)
    if event_type:
        query = query.filter(OperatorEvent.event_type == event_type)
    return query.order_by(OperatorEvent.occurred_at.desc(), OperatorEvent.id.desc()).limit(limit).all()
