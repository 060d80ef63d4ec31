# Overview: Transaction helpers: row locking, bounded retry, and store error classification.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..errors import (
    GroceryError,
    ConcurrentModificationError,
    StoreFailureError,
    StoreTimeoutError,
)


# PostgreSQL SQLSTATEs
_RETRYABLE_PGCODES = {"40001", "40P01"}  # serialization_failure, deadlock_detected
_TIMEOUT_PGCODES = {"57014", "55P03"}    # query_canceled (statement_timeout), lock_not_available


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    Locked rows are reloaded from the database even if the session already
    holds them, so checks always see the committed values.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; acquire_write_lock() covers it.
    """
    return query.with_for_update().populate_existing()


def acquire_write_lock() -> None:
    """
    On SQLite, take the database write lock up front (BEGIN IMMEDIATE) so
    the stock check and the decrement cannot interleave with another writer.
    No-op on other dialects, which rely on lock_for_update().
    """
    if db.engine.dialect.name != "sqlite":
        return
    dbapi_connection = db.session.connection().connection.dbapi_connection
    if not dbapi_connection.in_transaction:
        db.session.execute(text("BEGIN IMMEDIATE"))


def _pgcode(exc: OperationalError) -> str | None:
    return getattr(exc.orig, "pgcode", None) or getattr(exc.orig, "sqlstate", None)


def is_timeout_error(exc: OperationalError) -> bool:
    if _pgcode(exc) in _TIMEOUT_PGCODES:
        return True
    message = str(exc.orig).lower()
    return "database is locked" in message or "timeout" in message


def is_retryable_error(exc: OperationalError) -> bool:
    if _pgcode(exc) in _RETRYABLE_PGCODES:
        return True
    message = str(exc.orig).lower()
    return "deadlock" in message or "could not serialize" in message


def run_with_retry(func, *, operation: str, retries: int | None = None, backoff_base: float = 0.05):
    """
    Execute a unit of work, retrying on concurrency conflicts.

    func must do all of its writes and its commit itself. On any exception the
    session is rolled back before the exception leaves this function, so no
    partial unit is ever left behind.

    - StaleDataError, deadlocks and serialization failures are retried
      `retries` times (STORE_RETRY_ATTEMPTS) with exponential backoff, then
      surface as ConcurrentModificationError.
    - Lock/statement timeouts surface as StoreTimeoutError.
    - Any other SQLAlchemy error surfaces as StoreFailureError.
    - Domain errors (GroceryError) and anything else are re-raised unchanged.
    """
    if retries is None:
        retries = current_app.config.get("STORE_RETRY_ATTEMPTS", 3)
    attempts = retries + 1

    for attempt in range(attempts):
        try:
            return func()
        except GroceryError:
            db.session.rollback()
            raise
        except StaleDataError:
            db.session.rollback()
        except OperationalError as exc:
            db.session.rollback()
            if is_timeout_error(exc):
                raise StoreTimeoutError(operation) from exc
            if not is_retryable_error(exc):
                raise StoreFailureError(operation, str(exc.orig)) from exc
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise StoreFailureError(operation, str(exc)) from exc
        except BaseException:
            # Includes cancellation (KeyboardInterrupt, SystemExit, GeneratorExit)
            db.session.rollback()
            raise

        if attempt < attempts - 1:
            current_app.logger.warning(
                "Concurrent modification during %s, retrying (attempt %d of %d)",
                operation, attempt + 1, attempts,
            )
            time.sleep(backoff_base * (2 ** attempt))

    raise ConcurrentModificationError(operation, attempts)
