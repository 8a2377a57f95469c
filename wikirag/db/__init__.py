"""Database layer package.

Public re-exports so callers can write::

    from wikirag.db import get_connection, init_db
    from wikirag.db import DocumentStore, SqliteVecIndex
"""

from wikirag.db.connection import get_connection
from wikirag.db.documents import DocumentStore
from wikirag.db.migrations import init_db
from wikirag.db.vectors import SearchHit, SqliteVecIndex, VectorIndex

__all__ = [
    "get_connection",
    "init_db",
    "DocumentStore",
    "SearchHit",
    "SqliteVecIndex",
    "VectorIndex",
]
