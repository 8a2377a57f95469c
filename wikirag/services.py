"""Composition root.

Leaf components are built first and handed to the orchestrator and query
engine through their constructors.  The API lifespan and the CLI both go
through :func:`build_services`; tests pass their own collaborators.

Background sync runs go through ``Services.worker``.  When a separate
``sync_conn`` is supplied the worker writes through it, so a transaction
rolled back by a request thread never touches the worker's writes (and the
other way round).  Without one the worker is the request-side orchestrator.
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from typing import Optional

from wikirag.config import settings
from wikirag.db.documents import DocumentStore
from wikirag.db.vectors import EmbedFn, SqliteVecIndex, VectorIndex
from wikirag.rag.embedder import embed_text
from wikirag.rag.jobs import SyncJobs
from wikirag.rag.llm import ChatGenerator, LangChainGenerator
from wikirag.rag.orchestrator import SyncOrchestrator
from wikirag.rag.query import QueryEngine
from wikirag.source.client import WikiClient


@dataclass
class Services:
    conn: sqlite3.Connection
    client: WikiClient
    store: DocumentStore
    index: VectorIndex
    orchestrator: SyncOrchestrator
    worker: SyncOrchestrator
    engine: QueryEngine
    jobs: SyncJobs

    def close(self) -> None:
        self.jobs.shutdown()
        self.client.close()


def build_services(
    conn: sqlite3.Connection,
    client: Optional[WikiClient] = None,
    embed: Optional[EmbedFn] = None,
    generator: Optional[ChatGenerator] = None,
    index: Optional[VectorIndex] = None,
    sync_conn: Optional[sqlite3.Connection] = None,
) -> Services:
    """Wire every component on top of an open, initialised connection.

    Args:
        sync_conn: Optional second connection to the same database, used
            only by the background sync worker.
    """
    client = client or WikiClient.from_settings()
    embed = embed or embed_text
    store = DocumentStore(conn)
    injected_index = index
    if index is None:
        index = SqliteVecIndex(conn, embed, max_chars=settings.embed_max_chars)
    orchestrator = SyncOrchestrator(
        client, store, index, page_delay=settings.sync_page_delay
    )

    worker = orchestrator
    if sync_conn is not None:
        worker_index = injected_index or SqliteVecIndex(
            sync_conn, embed, max_chars=settings.embed_max_chars
        )
        worker = SyncOrchestrator(
            client,
            DocumentStore(sync_conn),
            worker_index,
            page_delay=settings.sync_page_delay,
        )

    engine = QueryEngine(
        index,
        generator or LangChainGenerator(),
        base_url=settings.confluence_base_url,
        top_k=settings.search_top_k,
        similarity_threshold=settings.similarity_threshold,
        stream_timeout=settings.stream_timeout,
    )
    return Services(
        conn=conn,
        client=client,
        store=store,
        index=index,
        orchestrator=orchestrator,
        worker=worker,
        engine=engine,
        jobs=SyncJobs(),
    )
