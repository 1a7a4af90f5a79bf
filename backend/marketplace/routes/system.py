# backend/marketplace/routes/system.py
"""
System health endpoint.

Reports database reachability, the email channel in use, and how many
inconsistencies are waiting for an operator.
"""

import time
from flask import Blueprint, current_app
from ..extensions import db
from ..models import Account, Listing, Order, OperatorEvent
from ..notifications import get_email_channel
from marketplace.time_utils import utcnow

system_bp = Blueprint("system", __name__, url_prefix="/api/v1")


def check_database_health() -> dict:
    """
    Check database connectivity and basic operations.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        account_count = db.session.query(Account).count()
        listing_count = db.session.query(Listing).count()
        order_count = db.session.query(Order).count()

        elapsed_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "accounts": account_count,
                "listings": listing_count,
                "orders": order_count,
            }
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


def check_operator_queue_health() -> dict:
    """Outstanding inconsistencies degrade the status; they never make it unhealthy."""
    try:
        pending = db.session.query(OperatorEvent).count()
    except Exception:
        current_app.logger.exception("Operator event check failed")
        return {"status": "unhealthy", "error": "Operator event store error"}

    if pending:
        return {
            "status": "degraded",
            "warning": f"{pending} inconsistencies recorded for manual reconciliation",
            "details": {"operator_events": pending},
        }
    return {"status": "healthy", "details": {"operator_events": 0}}


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: healthy or degraded
    - 503: database unreachable
    """
    start_time = time.time()

    database_health = check_database_health()
    operator_health = check_operator_queue_health()

    all_checks = [database_health, operator_health]
    if any(check["status"] == "unhealthy" for check in all_checks):
        overall_status = "unhealthy"
        http_status = 503
    elif any(check["status"] == "degraded" for check in all_checks):
        overall_status = "degraded"
        http_status = 200  # Degraded is still operational
    else:
        overall_status = "healthy"
        http_status = 200

    total_elapsed_ms = (time.time() - start_time) * 1000

    response = {
        "status": overall_status,
        "timestamp": utcnow().isoformat() + "Z",
        "total_latency_ms": round(total_elapsed_ms, 2),
        "checks": {
            "database": database_health,
            "operator_events": operator_health,
            "email_channel": {"status": "healthy", "backend": type(get_email_channel()).__name__},
        }
    }

    return response, http_status
