"""
Read-only SQL executor.

Report queries run through `execute_readonly`, which:
  1. Opens a READ ONLY transaction (Postgres-enforced)
  2. Sends values as bound parameters, never as query text
  3. Converts Decimal/date/datetime to JSON-safe Python types
  4. Enforces a per-statement timeout (statement_timeout)
"""
from __future__ import annotations

import decimal
import datetime
from typing import Any

from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.sql import Executable

from report_engine.db.connection import readonly_connection
from report_engine.core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_QUERY_TIMEOUT_MS = 10_000  # 10 seconds max per query

# Postgres SQLSTATE for "canceling statement due to statement timeout"
QUERY_CANCELED = "57014"


def serialise_value(val: Any) -> Any:
    """Convert DB types to JSON-serialisable Python types."""
    if isinstance(val, decimal.Decimal):
        return float(val)
    if isinstance(val, (datetime.date, datetime.datetime)):
        return val.isoformat()
    if isinstance(val, datetime.timedelta):
        return str(val)
    return val


def is_statement_timeout(exc: BaseException) -> bool:
    orig = getattr(exc, "orig", None)
    return getattr(orig, "pgcode", None) == QUERY_CANCELED


def execute_readonly(
    statement: Executable | str,
    params: dict | None = None,
    timeout_ms: int = DEFAULT_QUERY_TIMEOUT_MS,
    engine: Engine | None = None,
) -> list[dict[str, Any]]:
    """Execute a read-only query and return rows as serialisable dicts.

    Raises
    ------
    sqlalchemy.exc.SQLAlchemyError
        If the query fails for any reason.
    """
    if isinstance(statement, str):
        statement = text(statement)

    with readonly_connection(engine) as conn:
        # Per-query timeout
        conn.execute(text(f"SET LOCAL statement_timeout = {int(timeout_ms)}"))

        result = conn.execute(statement, params or {})
        columns = list(result.keys())
        rows = [
            {col: serialise_value(val) for col, val in zip(columns, row)}
            for row in result.fetchall()
        ]

    logger.info("Returned %d rows", len(rows))
    return rows
