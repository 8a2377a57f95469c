"""Schema bootstrap and versioned upgrades.

``schema.sql`` describes the current tables with ``IF NOT EXISTS`` guards and
is replayed on every start.  Changes that cannot be expressed that way go in
:data:`MIGRATIONS`; each applied version is recorded in ``schema_version``.
"""

from __future__ import annotations

import logging
import sqlite3

from wikirag.config import settings

logger = logging.getLogger(__name__)

# (version, statement) pairs, applied in ascending version order.
MIGRATIONS: list[tuple[int, str]] = []

_VERSION_TABLE = """
CREATE TABLE IF NOT EXISTS schema_version (
    version    INTEGER PRIMARY KEY,
    applied_at INTEGER NOT NULL DEFAULT (strftime('%s', 'now'))
)
"""


def _schema_sql() -> str:
    text = settings.schema_path.read_text(encoding="utf-8")
    return text.replace("{embedding_dim}", str(settings.embedding_dim))


def init_db(conn: sqlite3.Connection) -> None:
    """Create any missing tables, then apply pending migrations."""
    conn.executescript(_schema_sql())
    with conn:
        conn.execute(_VERSION_TABLE)
    migrate(conn)


def current_version(conn: sqlite3.Connection) -> int:
    """Highest recorded migration version, ``0`` for a fresh database."""
    (version,) = conn.execute("SELECT IFNULL(MAX(version), 0) FROM schema_version").fetchone()
    return version


def migrate(conn: sqlite3.Connection) -> int:
    """Apply every migration newer than :func:`current_version`.

    Each one runs in its own transaction together with its version record.
    Returns how many were applied.
    """
    done = current_version(conn)
    pending = [(v, sql) for v, sql in sorted(MIGRATIONS) if v > done]
    for version, sql in pending:
        with conn:
            conn.execute(sql)
            conn.execute("INSERT INTO schema_version(version) VALUES (?)", (version,))
        logger.info("Applied schema migration %d", version)
    return len(pending)
