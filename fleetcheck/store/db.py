"""SQLAlchemy engine construction for the reference store.

The store targets SQLite for local development and tests and works against
PostgreSQL. No declarative models are defined; repositories issue SQL
through `sqlalchemy.text`.
"""

from __future__ import annotations

import logging
import os

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = "sqlite+pysqlite:///:memory:"


def database_url() -> str:
    return os.getenv("DATABASE_URL") or DEFAULT_DATABASE_URL


def make_engine(url: str | None = None) -> Engine:
    """Build an Engine for the given URL.

    In-memory SQLite uses a StaticPool so every checkout shares the one
    connection that holds the database.
    """
    resolved_url = url or database_url()
    kwargs: dict = {"future": True, "pool_pre_ping": True}
    if resolved_url.startswith("sqlite") and ":memory:" in resolved_url:
        kwargs.update({
            "poolclass": StaticPool,
            "connect_args": {"check_same_thread": False},
        })
    logger.info("store_engine_created dialect=%s", resolved_url.split(":", 1)[0])
    return create_engine(resolved_url, **kwargs)


__all__ = ["DEFAULT_DATABASE_URL", "database_url", "make_engine"]
