# Overview: Transaction helpers: row locking, bounded retry and all-or-nothing commits.

from __future__ import annotations

import time

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..validation import ConflictError, NotFoundError


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    The version_id_col on workflow documents covers SQLite.
    """
    return query.with_for_update()


def get_for_update(model, entity_id, *, label: str | None = None):
    """Load one row under lock or raise NotFoundError."""
    row = lock_for_update(db.session.query(model).filter_by(id=entity_id)).first()
    if row is None:
        raise NotFoundError(f"{label or model.__name__} {entity_id} not found")
    return row


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.05):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). A stale write that survives every attempt
    is raised as ConflictError.
    """
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                if isinstance(exc, StaleDataError):
                    raise ConflictError("Document was modified concurrently; reload and retry") from exc
                raise
            time.sleep(backoff_base * (2 ** attempt))


def run_in_transaction(func, *, attempts: int = 3):
    """
    Run func and commit, or roll back everything it staged.

    Business errors raised by func (validation, conflict, not found) are never
    retried; the session is rolled back so no partial state is visible.
    """
    def _op():
        try:
            result = func()
            db.session.commit()
            return result
        except (OperationalError, StaleDataError):
            raise
        except Exception:
            db.session.rollback()
            raise

    return run_with_retry(_op, attempts=attempts)
