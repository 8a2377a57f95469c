"""Opening the wikirag database.

The API process holds one connection for its lifetime and shares it between
request handlers and the background sync worker; the CLI opens one per
command.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Optional

import sqlite_vec

from wikirag.config import settings

# Milliseconds a writer waits on a lock held by another process (e.g. the CLI
# syncing while the API serves reads).
BUSY_TIMEOUT_MS = 5000


def get_connection(db_path: Optional[Path] = None) -> sqlite3.Connection:
    """Return a connection with sqlite-vec loaded and rows addressable by name.

    Args:
        db_path: Database file, or ``":memory:"``.  Defaults to
            ``settings.db_path``; its workspace directory is created on
            demand.

    The connection uses WAL journaling and a busy timeout, and may be used
    from threads other than the one that opened it.
    """
    path = db_path or settings.db_path
    if str(path) != ":memory:":
        settings.ensure_workspace()

    conn = sqlite3.connect(str(path), check_same_thread=False)
    conn.row_factory = sqlite3.Row

    conn.enable_load_extension(True)
    try:
        sqlite_vec.load(conn)
    finally:
        conn.enable_load_extension(False)

    conn.execute(f"PRAGMA busy_timeout = {BUSY_TIMEOUT_MS}")
    conn.execute("PRAGMA journal_mode = WAL")
    return conn
