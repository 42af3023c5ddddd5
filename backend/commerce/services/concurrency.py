# Overview: Transaction helpers shared by every service that writes stock.

from __future__ import annotations

import time

from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


class ServiceUnavailable(Exception):
    """
    Storage was unreachable or stayed locked after bounded retries.

    Transient by definition: the caller may retry the whole request.
    """


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def begin_write_transaction() -> None:
    """
    Open the current transaction as a writer.

    SQLite only takes its write lock on the first DML statement, so two
    checkouts could interleave reads before either writes. BEGIN IMMEDIATE
    takes the lock up front. Other engines rely on the conditional UPDATE
    statements and their row locks.
    """
    if db.engine.dialect.name == "sqlite":
        db.session.execute(text("BEGIN IMMEDIATE"))


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). Domain exceptions raised by func are
    never retried. Exhausted retries surface as ServiceUnavailable.
    """
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise ServiceUnavailable("Storage temporarily unavailable") from exc
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            db.session.rollback()
            raise
    raise ServiceUnavailable("Storage temporarily unavailable")
