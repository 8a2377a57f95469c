"""FastAPI application factory.

Lifespan
--------
On startup the app opens one SQLite connection for request handlers and a
second one for the background sync worker, initialises the schema and wires
every component via :func:`~wikirag.services.build_services`; the result is
shared across requests as ``request.app.state.services``.  On shutdown the
sync pool, the content client and both connections are closed.

Routers
-------
    /api/chat        ask, streaming ask, relevant documents, reset, health
    /api/embeddings  sync triggers, single-page refresh/delete, status
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from wikirag import __version__
from wikirag.db import get_connection, init_db
from wikirag.log import configure_logging
from wikirag.services import Services, build_services

from wikirag.api.routers import chat as chat_router
from wikirag.api.routers import embeddings as embeddings_router


def create_app(services: Optional[Services] = None) -> FastAPI:
    """Return a fully-configured FastAPI application instance.

    Args:
        services: Pre-built components (tests).  When omitted they are built
            from ``settings`` at startup and torn down at shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        configure_logging()
        if services is not None:
            app.state.services = services
            yield
            return

        conn = get_connection()
        init_db(conn)
        sync_conn = get_connection()
        built = build_services(conn, sync_conn=sync_conn)
        app.state.services = built
        try:
            yield
        finally:
            built.close()
            sync_conn.close()
            conn.close()

    app = FastAPI(
        title="wikirag API",
        description=(
            "Retrieval-augmented chat over wiki pages: page sync into a "
            "vector-indexed store, grounded answers with cited sources, and "
            "streamed answers via Server-Sent Events."
        ),
        version=__version__,
        lifespan=lifespan,
    )

    # Allow browser frontends on any origin (tighten for production).
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(chat_router.router, prefix="/api/chat", tags=["chat"])
    app.include_router(embeddings_router.router, prefix="/api/embeddings", tags=["embeddings"])

    return app


# Module-level instance used by uvicorn:
#   uvicorn wikirag.api.app:app --reload
app = create_app()
