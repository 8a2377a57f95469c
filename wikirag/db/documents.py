"""Durable per-page records in the ``documents`` table.

One row exists per external page id; the ``UNIQUE`` constraint on
``page_id`` enforces that at the store level.  Each mutating call runs in its
own transaction, and timestamps are assigned here rather than by triggers.
"""

from __future__ import annotations

import sqlite3
from time import time
from typing import Optional

from wikirag.db.models import IndexedDocument


def _row_to_document(row: sqlite3.Row) -> IndexedDocument:
    return IndexedDocument(
        id=row["id"],
        page_id=row["page_id"],
        title=row["title"],
        content=row["content"],
        space_key=row["space_key"],
        space_name=row["space_name"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class DocumentStore:
    """CRUD and count queries over ``documents``, keyed by external page id."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def get_by_page_id(self, page_id: str) -> Optional[IndexedDocument]:
        """Return the record for *page_id*, or ``None``."""
        row = self.conn.execute(
            "SELECT * FROM documents WHERE page_id = ?", (page_id,)
        ).fetchone()
        return _row_to_document(row) if row else None

    def exists(self, page_id: str) -> bool:
        row = self.conn.execute(
            "SELECT 1 FROM documents WHERE page_id = ?", (page_id,)
        ).fetchone()
        return row is not None

    def list_by_space(self, space_key: str) -> list[IndexedDocument]:
        """Return every record in *space_key*, most recently updated first."""
        rows = self.conn.execute(
            "SELECT * FROM documents WHERE space_key = ? ORDER BY updated_at DESC, id DESC",
            (space_key,),
        ).fetchall()
        return [_row_to_document(r) for r in rows]

    def count(self) -> int:
        return self.conn.execute("SELECT COUNT(*) FROM documents").fetchone()[0]

    def count_by_space(self, space_key: str) -> int:
        return self.conn.execute(
            "SELECT COUNT(*) FROM documents WHERE space_key = ?", (space_key,)
        ).fetchone()[0]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    def create(
        self,
        page_id: str,
        title: str,
        content: str,
        space_key: str,
        space_name: str,
    ) -> IndexedDocument:
        """Insert a new record; ``created_at`` and ``updated_at`` are set to now.

        Raises:
            sqlite3.IntegrityError: If a record for *page_id* already exists.
        """
        now = int(time())
        with self.conn:
            self.conn.execute(
                """
                INSERT INTO documents
                    (page_id, title, content, space_key, space_name, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (page_id, title, content, space_key, space_name, now, now),
            )
        return self.get_by_page_id(page_id)  # type: ignore[return-value]

    def update(self, document: IndexedDocument) -> IndexedDocument:
        """Persist *document*'s mutable fields and refresh ``updated_at``.

        Raises:
            ValueError: If no record exists for ``document.page_id``.
        """
        document.updated_at = int(time())
        with self.conn:
            cursor = self.conn.execute(
                """
                UPDATE documents
                SET    title = ?, content = ?, space_key = ?, space_name = ?, updated_at = ?
                WHERE  page_id = ?
                """,
                (
                    document.title,
                    document.content,
                    document.space_key,
                    document.space_name,
                    document.updated_at,
                    document.page_id,
                ),
            )
        if cursor.rowcount == 0:
            raise ValueError(f"Document not found: {document.page_id!r}")
        return self.get_by_page_id(document.page_id)  # type: ignore[return-value]

    def delete(self, page_id: str) -> bool:
        """Delete the record for *page_id*.  Returns ``False`` if none existed."""
        with self.conn:
            cursor = self.conn.execute(
                "DELETE FROM documents WHERE page_id = ?", (page_id,)
            )
        return cursor.rowcount > 0
