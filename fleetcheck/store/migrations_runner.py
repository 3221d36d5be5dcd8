"""Lightweight SQL migrations runner.

Applies .sql files in lexical order from the store's `migrations/`
directory, skipping rollback files, and records applied filenames in a
`schema_migrations` table so a migration is never applied twice to the same
database.
"""

from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Set

from sqlalchemy import text as sql_text
from sqlalchemy.engine import Connection, Engine

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).resolve().parent / "migrations"


def _iter_sql_files(root: Path) -> Iterable[Path]:
    for p in sorted(root.glob("*.sql")):
        # Skip rollback scripts in forward runs
        if "rollback" in p.name.lower():
            continue
        yield p


def _statements(sql: str) -> Iterable[str]:
    lines = [line for line in sql.splitlines() if not line.strip().startswith("--")]
    for stmt in "\n".join(lines).split(";"):
        s = stmt.strip()
        if s and s.upper() not in {"BEGIN", "COMMIT", "END"}:
            yield s


def _applied(conn: Connection) -> Set[str]:
    conn.execute(
        sql_text("CREATE TABLE IF NOT EXISTS schema_migrations (filename TEXT PRIMARY KEY, applied_at TEXT NOT NULL)")
    )
    return {row[0] for row in conn.execute(sql_text("SELECT filename FROM schema_migrations"))}


def apply_migrations(engine: Engine, migrations_dir: str | os.PathLike[str] = MIGRATIONS_DIR) -> int:
    """Apply pending migrations; returns how many files were applied."""
    root = Path(migrations_dir)
    if not root.exists():
        logger.warning("migrations_dir_missing path=%s", root)
        return 0

    count = 0
    with engine.begin() as conn:
        applied = _applied(conn)
        for sql_path in _iter_sql_files(root):
            fname = sql_path.name
            if fname in applied:
                continue
            sql = sql_path.read_text(encoding="utf-8")
            # Executed one statement at a time; pysqlite rejects multi-statement strings
            for stmt in _statements(sql):
                conn.exec_driver_sql(stmt)
            conn.execute(
                sql_text("INSERT INTO schema_migrations (filename, applied_at) VALUES (:f, :at)"),
                {
                    "f": fname,
                    # ISO-8601 UTC without fractional seconds
                    "at": datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z"),
                },
            )
            count += 1
            logger.info("migration_applied file=%s", fname)
    return count


__all__ = ["MIGRATIONS_DIR", "apply_migrations"]
