"""
Engine and read-only connection helpers for the record store.

One pooled engine per database URL. Report reads happen inside
``readonly_connection``, whose transaction is declared READ ONLY before
any statement runs and is rolled back on exit.
"""
from __future__ import annotations

from contextlib import contextmanager
from functools import lru_cache
from typing import Iterator

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Connection, Engine, make_url

from report_engine.core.config import get_settings
from report_engine.core.logging import get_logger

logger = get_logger(__name__)


@lru_cache
def _engine_for(url: str, pool_size: int, max_overflow: int) -> Engine:
    engine = create_engine(url, pool_pre_ping=True, pool_size=pool_size, max_overflow=max_overflow)
    parsed = make_url(url)
    logger.info("Record store engine ready  host=%s  db=%s  pool=%d+%d",
                parsed.host, parsed.database, pool_size, max_overflow)
    return engine


def get_engine() -> Engine:
    """Shared engine for the configured database."""
    settings = get_settings()
    return _engine_for(settings.database_url, settings.db_pool_size, settings.db_max_overflow)


@contextmanager
def readonly_connection(engine: Engine | None = None) -> Iterator[Connection]:
    engine = engine if engine is not None else get_engine()
    with engine.connect() as conn:
        trans = conn.begin()
        try:
            conn.execute(text("SET TRANSACTION READ ONLY"))
            yield conn
        finally:
            trans.rollback()
