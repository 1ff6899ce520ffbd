# Overview: Transaction boundary, row locking and retry for stock-mutating operations.

from __future__ import annotations

import time

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db

RETRYABLE_ERRORS = (OperationalError, StaleDataError)

# Two transactions inserting the first row of a document sequence: the
# loser fails on the unique key and succeeds on a fresh attempt
NUMBERING_RETRYABLE_ERRORS = RETRYABLE_ERRORS + (IntegrityError,)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    On SQLite the version_id columns still turn a lost update into a
    StaleDataError at flush time. populate_existing() refreshes rows the
    session already holds so the check reads the locked values.
    """
    return query.with_for_update().populate_existing()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1, retry_on=RETRYABLE_ERRORS):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts) unless ``retry_on`` says otherwise.
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except retry_on as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc


def run_in_transaction(func, *, attempts: int = 3, backoff_base: float = 0.1, retry_on=RETRYABLE_ERRORS):
    """
    Run ``func`` as one atomic unit of work.

    Commits when ``func`` returns and rolls back on any exception, so a
    domain error raised half-way through (e.g. insufficient stock on the
    third item) leaves nothing behind. Concurrency conflicts are retried
    from scratch, re-reading every row.
    """
    def _op():
        try:
            result = func()
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
        return result

    return run_with_retry(_op, attempts=attempts, backoff_base=backoff_base, retry_on=retry_on)
