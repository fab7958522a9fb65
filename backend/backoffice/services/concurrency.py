# Overview: Concurrency helpers shared by the services; row locks and bounded retries of one business operation.

from __future__ import annotations

import time

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


class ConcurrencyConflictError(Exception):
    """Raised when an operation keeps losing races after every retry."""
    pass


def lock_for_update(query):
    """
    Apply row-level locking for document, stock and balance updates.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; version_id columns and
    conditional UPDATEs carry the guarantee there.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a whole business operation, re-running it on concurrency failures.

    Retries on OperationalError (locks) and StaleDataError (version_id
    mismatch). The session is rolled back before each new attempt so the
    operation re-reads fresh rows and re-validates against them.
    """
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise ConcurrencyConflictError(
                    "The record was modified concurrently, please retry"
                ) from exc
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            db.session.rollback()
            raise
