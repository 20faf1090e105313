# Overview: Transaction, locking and retry helpers shared by every stock-affecting workflow.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..errors import InventoryError, InternalError

# IntegrityError is only retried for unique-constraint races (two writers
# creating the same balance row or store code); the replay sees the winner's
# row. Foreign-key and CHECK violations fail the same way on every attempt.
RETRYABLE_ERRORS = (OperationalError, StaleDataError, IntegrityError)


def is_unique_violation(exc: IntegrityError) -> bool:
    orig = getattr(exc, "orig", None)
    # PostgreSQL unique_violation
    if getattr(orig, "pgcode", None) == "23505":
        return True
    return "unique" in str(orig).lower()


def _is_retryable(exc: Exception) -> bool:
    if isinstance(exc, IntegrityError):
        return is_unique_violation(exc)
    return True


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    On SQLite, run_in_transaction takes the database write lock up front instead.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float | None = None):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks), StaleDataError
    (optimistic locking conflicts) and unique-constraint IntegrityError
    (insert races). Other integrity failures are raised at once.
    """
    if attempts is None:
        attempts = current_app.config.get("STOCK_RETRY_ATTEMPTS", 3)
    if backoff_base is None:
        backoff_base = current_app.config.get("STOCK_RETRY_BACKOFF", 0.1)

    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except RETRYABLE_ERRORS as exc:
            db.session.rollback()
            last_exc = exc
            if not _is_retryable(exc) or attempt >= attempts - 1:
                raise
            current_app.logger.info(
                "Retrying transaction after %s (attempt %d/%d)",
                type(exc).__name__, attempt + 1, attempts,
            )
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc


def _begin_write_transaction() -> None:
    # SQLite: take the RESERVED lock before the first read so the
    # check-then-write sequence cannot interleave with another writer.
    if db.engine.dialect.name == "sqlite":
        db.session.execute(text("BEGIN IMMEDIATE"))


def run_in_transaction(func, *, attempts: int | None = None, backoff_base: float | None = None):
    """
    Run func as one all-or-nothing unit of work and commit it.

    - Domain errors (InventoryError) roll back and propagate unchanged.
    - Concurrency conflicts roll back and replay func from scratch.
    - Any other storage failure rolls back, is logged, and surfaces as
      InternalError without engine details.
    """
    def _op():
        try:
            _begin_write_transaction()
            result = func()
            db.session.commit()
            return result
        except InventoryError:
            db.session.rollback()
            raise

    try:
        return run_with_retry(_op, attempts=attempts, backoff_base=backoff_base)
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Storage failure in stock transaction")
        raise InternalError("Internal storage error") from exc
