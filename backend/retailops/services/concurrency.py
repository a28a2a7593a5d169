# Overview: Locking, retry and atomic conditional-update helpers shared by the services.

from __future__ import annotations

import logging
import time

from sqlalchemy import update
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db

logger = logging.getLogger(__name__)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    The conditional updates below are what keeps SQLite correct.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts on versioned rows).
    """
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            delay = backoff_base * (2 ** attempt)
            logger.warning(
                "Concurrency conflict (%s), retrying in %.2fs (attempt %d/%d)",
                type(exc).__name__, delay, attempt + 1, attempts,
            )
            time.sleep(delay)


def commit_with_retry(work, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Run work() and commit its changes as one unit.

    On a retryable failure the session is rolled back and the whole unit
    runs again; the commit is never retried on its own. Returns the result
    of work().
    """
    def _op():
        result = work()
        db.session.commit()
        return result
    return run_with_retry(_op, attempts=attempts, backoff_base=backoff_base)


def conditional_decrement(model, row_id: int, amount: int, *, column: str = "quantity") -> bool:
    """
    Atomically subtract amount from a row's counter if it holds at least amount.

    Issues UPDATE ... SET col = col - amount WHERE id = ? AND col >= amount.
    Returns False when the row is missing or too small; nothing is written then.
    Loaded instances of the row are expired so the next access re-reads it.
    """
    table = model.__table__
    counter = table.c[column]
    values = {column: counter - amount}
    if "version_id" in table.c:
        values["version_id"] = table.c.version_id + 1

    result = db.session.execute(
        update(table)
        .where(table.c.id == row_id, counter >= amount)
        .values(**values)
    )
    _expire_loaded(model, row_id)
    return result.rowcount == 1


def increment(model, row_id: int, amount: int, *, column: str = "quantity") -> bool:
    """Atomically add amount to a row's counter. Returns False if the row is missing."""
    table = model.__table__
    counter = table.c[column]
    values = {column: counter + amount}
    if "version_id" in table.c:
        values["version_id"] = table.c.version_id + 1

    result = db.session.execute(
        update(table).where(table.c.id == row_id).values(**values)
    )
    _expire_loaded(model, row_id)
    return result.rowcount == 1


def compare_and_set(model, row_id: int, column: str, expected, new, **extra) -> bool:
    """
    Set column to new only if it currently equals expected.

    Used for one-shot status transitions: of two concurrent callers, only
    one sees True.
    """
    table = model.__table__
    result = db.session.execute(
        update(table)
        .where(table.c.id == row_id, table.c[column] == expected)
        .values(**{column: new}, **extra)
    )
    _expire_loaded(model, row_id)
    return result.rowcount == 1


def _expire_loaded(model, row_id: int) -> None:
    key = db.session.identity_key(model, row_id)
    instance = db.session.identity_map.get(key)
    if instance is not None:
        db.session.expire(instance)
