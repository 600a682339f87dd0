# Overview: Transaction helpers shared by every write path: row locks, write transactions, retry.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import TransientStorageError
from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    On SQLite, begin_write_transaction() takes the database write lock instead.
    """
    return query.with_for_update()


def begin_write_transaction() -> None:
    """
    Open the current transaction as a writer.

    SQLite defers the write lock until the first write, which lets two
    transactions both read the same stock level before either writes.
    BEGIN IMMEDIATE takes the lock up front so read-check-write sequences
    serialize. Other dialects rely on lock_for_update().
    """
    if db.engine.dialect.name == "sqlite":
        db.session.execute(text("BEGIN IMMEDIATE"))


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float | None = None):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, lock timeouts, dropped connections)
    and StaleDataError (optimistic locking conflicts). When the budget is
    spent the failure is raised as TransientStorageError.

    Any other exception rolls the session back and propagates unchanged, so a
    rejected operation never leaves half-applied writes in the session.
    """
    if attempts is None:
        attempts = current_app.config.get("STORAGE_RETRY_ATTEMPTS", 3)
    if backoff_base is None:
        backoff_base = current_app.config.get("STORAGE_RETRY_BACKOFF", 0.1)

    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                current_app.logger.warning(
                    "Storage operation failed after %s attempts: %s", attempts, exc
                )
                raise TransientStorageError(
                    "Storage temporarily unavailable, retry the operation",
                    details={"attempts": attempts},
                ) from exc
            current_app.logger.warning(
                "Retrying storage operation (attempt %s/%s): %s", attempt + 1, attempts, exc
            )
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            db.session.rollback()
            raise
