# Overview: Transaction and retry helpers shared by the write-side services.

from __future__ import annotations

import time

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking to a read that precedes a write.

    NOTE: SQLite ignores SELECT ... FOR UPDATE (it locks the whole database
    on write instead); PostgreSQL/MySQL honor it.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, "database is locked") and
    StaleDataError. Any other exception rolls back and propagates at once.
    """
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError):
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))


def atomic(func, *, attempts: int = 3):
    """
    Run ``func`` and commit its work as a single transaction.

    The whole read-modify-write is retried on lock errors, so callers must
    re-read state inside ``func`` rather than closing over loaded rows.
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
