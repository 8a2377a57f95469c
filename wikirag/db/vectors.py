"""Vector index over page embeddings.

The sync pipeline and the query engine only depend on the
:class:`VectorIndex` protocol, so any store offering add / delete /
similarity-search by page id can be plugged in.  :class:`SqliteVecIndex` is
the bundled implementation: one ``vec0`` row per page (cosine distance) plus
a side table holding the indexed text and metadata bag.

Adding an entry for a page id that is already indexed replaces it, so an
entry left behind by an interrupted sync never blocks the next one.
"""

from __future__ import annotations

import json
import sqlite3
from dataclasses import dataclass, field
from typing import Any, Callable, Protocol

import sqlite_vec

EmbedFn = Callable[[str], list[float]]


@dataclass
class SearchHit:
    """One similarity-search result.  ``score`` is cosine similarity."""

    page_id: str
    content: str
    score: float
    metadata: dict[str, Any] = field(default_factory=dict)


class VectorIndex(Protocol):
    def add(self, page_id: str, text: str, metadata: dict[str, Any]) -> None: ...

    def delete(self, page_id: str) -> None: ...

    def exists(self, page_id: str) -> bool: ...

    def search(
        self, query: str, top_k: int, similarity_threshold: float
    ) -> list[SearchHit]: ...


class SqliteVecIndex:
    """:class:`VectorIndex` backed by sqlite-vec tables in the main database.

    Args:
        conn: Connection with sqlite-vec loaded and the schema initialised.
        embed: Text → vector function (the embedding capability).
        max_chars: Text is truncated to this many characters before
            embedding; the full text is still stored.
    """

    def __init__(
        self,
        conn: sqlite3.Connection,
        embed: EmbedFn,
        max_chars: int = 8000,
    ) -> None:
        self.conn = conn
        self.embed = embed
        self.max_chars = max_chars

    def add(self, page_id: str, text: str, metadata: dict[str, Any]) -> None:
        """Embed *text* and store it as the entry for *page_id*.

        Any existing entry for *page_id* is replaced in the same transaction.
        """
        embedding = self.embed(text[: self.max_chars])
        blob = sqlite_vec.serialize_float32(embedding)
        with self.conn:
            self._remove(page_id)
            self.conn.execute(
                "INSERT INTO page_vectors(page_id, embedding) VALUES (?, ?)",
                (page_id, blob),
            )
            self.conn.execute(
                "INSERT INTO page_vector_meta(page_id, content, metadata) VALUES (?, ?, ?)",
                (page_id, text, json.dumps(metadata)),
            )

    def delete(self, page_id: str) -> None:
        """Remove the entry for *page_id*.  No-op if it does not exist."""
        with self.conn:
            self._remove(page_id)

    def _remove(self, page_id: str) -> None:
        self.conn.execute("DELETE FROM page_vectors WHERE page_id = ?", (page_id,))
        self.conn.execute("DELETE FROM page_vector_meta WHERE page_id = ?", (page_id,))

    def exists(self, page_id: str) -> bool:
        row = self.conn.execute(
            "SELECT 1 FROM page_vector_meta WHERE page_id = ?", (page_id,)
        ).fetchone()
        return row is not None

    def count(self) -> int:
        return self.conn.execute("SELECT COUNT(*) FROM page_vector_meta").fetchone()[0]

    def search(
        self,
        query: str,
        top_k: int = 5,
        similarity_threshold: float = 0.5,
    ) -> list[SearchHit]:
        """Return at most *top_k* entries with similarity >= *similarity_threshold*.

        Results are ordered by descending similarity.
        """
        if top_k <= 0:
            return []
        blob = sqlite_vec.serialize_float32(self.embed(query[: self.max_chars]))
        rows = self.conn.execute(
            """
            SELECT v.page_id, v.distance, m.content, m.metadata
            FROM   page_vectors v
            JOIN   page_vector_meta m ON m.page_id = v.page_id
            WHERE  v.embedding MATCH ?
              AND  k = ?
            ORDER  BY v.distance
            """,
            (blob, top_k),
        ).fetchall()

        hits: list[SearchHit] = []
        for row in rows:
            score = 1.0 - row["distance"]
            if score < similarity_threshold:
                continue
            hits.append(
                SearchHit(
                    page_id=row["page_id"],
                    content=row["content"],
                    score=score,
                    metadata=json.loads(row["metadata"] or "{}"),
                )
            )
        hits.sort(key=lambda h: h.score, reverse=True)
        return hits[:top_k]
