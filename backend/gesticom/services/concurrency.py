# Overview: Transaction helpers for the conditional-write workflows (sales, voids, attendance).

from __future__ import annotations

from sqlalchemy import text

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def begin_write_transaction() -> None:
    """
    Start the current unit of work as a write transaction.

    SQLite only takes its write lock at the first write, so two requests can
    both read stock before either decrements it. BEGIN IMMEDIATE takes the
    lock up front. Other engines rely on lock_for_update and the
    conditional UPDATE statements instead.
    """
    if db.engine.dialect.name != "sqlite":
        return
    raw = db.session.connection().connection.dbapi_connection
    if not raw.in_transaction:
        db.session.execute(text("BEGIN IMMEDIATE"))


def affected_rows(result) -> int:
    """Row count of an UPDATE/DELETE; drivers report -1 when unknown."""
    return max(result.rowcount or 0, 0)
