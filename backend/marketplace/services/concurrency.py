# Overview: Service-layer helpers for concurrency; compare-and-set writes and row locking.

"""
Concurrency primitives for the service layer.

There are no in-process locks. Cross-request safety comes from the store:
- compare_and_set(): UPDATE ... WHERE <expected current values>. The row
  count tells the caller whether its expectation still held.
- lock_for_update(): SELECT ... FOR UPDATE where the dialect honors it.

Nothing here retries. A write whose outcome is unknown (timeout, lost
connection) must be re-checked by the caller, never blindly re-applied.
"""

from __future__ import annotations

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def compare_and_set(stmt) -> int:
    """
    Execute a guarded UPDATE and return the number of rows it changed.

    The statement's WHERE clause carries the expected state; a result of 0
    means another writer got there first (or the row does not exist).
    Identity-map objects are not synchronized; callers re-read with
    populate_existing() when they need the new values.
    """
    result = db.session.execute(stmt.execution_options(synchronize_session=False))
    return result.rowcount


def compare_and_set_returning(stmt):
    """Like compare_and_set(), but for statements with RETURNING. Returns the first row or None."""
    result = db.session.execute(stmt.execution_options(synchronize_session=False))
    return result.first()
