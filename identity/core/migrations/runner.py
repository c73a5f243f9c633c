"""Forward-only SQLite migrations for the rate-limit state database."""

from __future__ import annotations

import logging
import sqlite3
import time
from contextlib import closing
from pathlib import Path

LOGGER = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).resolve().parent / "sql"

_CREATE_LEDGER = """
CREATE TABLE IF NOT EXISTS schema_migrations (
  migration_id TEXT PRIMARY KEY,
  applied_at INTEGER NOT NULL
)
"""


def pending_migrations(
    connection: sqlite3.Connection, migrations_dir: Path = MIGRATIONS_DIR
) -> list[Path]:
    """Return migration files not yet recorded in the ledger, oldest first."""
    connection.execute(_CREATE_LEDGER)
    done = {
        row[0] for row in connection.execute("SELECT migration_id FROM schema_migrations")
    }
    return [path for path in sorted(migrations_dir.glob("*.sql")) if path.name not in done]


def apply_migrations(
    database_path: Path, migrations_dir: Path = MIGRATIONS_DIR
) -> list[str]:
    """Run pending migrations against ``database_path`` and return their ids.

    Every script is committed together with its ledger row, so a failing
    script leaves earlier ones applied and is retried on the next start.
    """
    database_path.parent.mkdir(parents=True, exist_ok=True)
    applied: list[str] = []
    with closing(sqlite3.connect(str(database_path))) as connection:
        for script in pending_migrations(connection, migrations_dir):
            connection.executescript(
                "BEGIN;\n"
                + script.read_text(encoding="utf-8")
                + f"\nINSERT INTO schema_migrations(migration_id, applied_at)"
                f" VALUES ('{script.name}', {int(time.time())});\nCOMMIT;"
            )
            applied.append(script.name)

    if applied:
        LOGGER.info("sqlite_migrations_applied: %s", ", ".join(applied))
    return applied
