"""
Database engine and query instrumentation
"""

import re
import time
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import Engine, event
from sqlmodel import Session, create_engine

from app.core.config import settings
from app.core.metrics import (
    db_pool_in_use,
    db_pool_available,
    db_pool_wait_seconds,
    db_query_duration_seconds,
    db_queries_total,
    db_query_errors_total,
)

engine = create_engine(
    str(settings.SQLALCHEMY_DATABASE_URI),
    pool_size=10,
    max_overflow=20,
    pool_pre_ping=True,
    pool_recycle=3600,
)

_TABLE_PATTERN = re.compile(r"(?:from|into|update|join)\s+([a-z_][a-z0-9_]*)")


def update_pool_metrics(bind: Engine = engine) -> None:
    pool_obj = bind.pool
    if not hasattr(pool_obj, "checkedout"):
        # StaticPool / NullPool (tests, scripts) have no counters
        return
    checked_out = pool_obj.checkedout()
    size = pool_obj.size()
    overflow = pool_obj.overflow()

    db_pool_in_use.set(checked_out)
    db_pool_available.set(max(size - checked_out + overflow, 0))


def _extract_operation_and_table(statement: str) -> tuple[str, str]:
    """
    Reduce a SQL statement to (operation, first table) for metric labels.

    >>> _extract_operation_and_table("UPDATE orders SET payment_status=%(p)s")
    ('update', 'orders')
    """
    normalized = " ".join(statement.lower().split())
    operation = normalized.split(" ", 1)[0] if normalized else "other"
    if operation not in ("select", "insert", "update", "delete"):
        operation = "other"

    table_match = _TABLE_PATTERN.search(normalized)
    table = table_match.group(1) if table_match else "unknown"
    return operation, table


def instrument_engine(bind: Engine) -> None:
    """Attach pool and query metric listeners to an engine."""

    @event.listens_for(bind, "checkout")
    def receive_checkout(dbapi_conn, connection_record, connection_proxy):
        connection_record.info["checkout_start"] = time.time()
        update_pool_metrics(bind)

    @event.listens_for(bind, "checkin")
    def receive_checkin(dbapi_conn, connection_record):
        started = connection_record.info.pop("checkout_start", None)
        if started is not None:
            db_pool_wait_seconds.observe(time.time() - started)
        update_pool_metrics(bind)

    @event.listens_for(bind, "before_cursor_execute")
    def before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        context._query_start_time = time.time()

    @event.listens_for(bind, "after_cursor_execute")
    def after_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        if hasattr(context, "_query_start_time"):
            duration = time.time() - context._query_start_time
            operation, table = _extract_operation_and_table(statement)
            db_query_duration_seconds.labels(operation=operation, table=table).observe(
                duration
            )
            db_queries_total.labels(operation=operation).inc()

    @event.listens_for(bind, "handle_error")
    def handle_error(exception_context):
        error_type = type(exception_context.original_exception).__name__.lower()
        if "timeout" in error_type:
            error_category = "timeout"
        elif "constraint" in error_type or "integrity" in error_type:
            error_category = "constraint"
        elif "connection" in error_type:
            error_category = "connection"
        else:
            error_category = "other"
        db_query_errors_total.labels(error_type=error_category).inc()


instrument_engine(engine)


@contextmanager
def get_instrumented_session(bind: Engine = engine) -> Generator[Session, None, None]:
    """
    Session for work outside a request (background jobs). Commits on clean
    exit, rolls back on error.

    Usage:
        with get_instrumented_session() as session:
            session.exec(...)
    """
    session = Session(bind)
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
        update_pool_metrics(bind)
