"""wikirag CLI: entry-point for sync and question-answering operations.

Usage:
    python cli/main.py --help

Command groups:
    db      → database setup
    sync    → pull pages from the wiki into the store and vector index
    ask     → answer a question (optionally streamed)
    search  → list the pages most similar to a query
    status  → document counts
    delete  → remove one page from index and store
    serve   → run the HTTP API
"""

from __future__ import annotations

import sys
from pathlib import Path

# Ensure the project root is on sys.path so that `from wikirag.xxx import ...`
# works when the CLI is invoked as `python cli/main.py` from any directory.
_ROOT = Path(__file__).resolve().parent.parent
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

import asyncio
from contextlib import contextmanager
from typing import Iterator, List, Optional

import typer
import uvicorn

from wikirag.config import settings
from wikirag.db import get_connection, init_db
from wikirag.log import configure_logging
from wikirag.rag.orchestrator import SyncReport
from wikirag.rag.query import CHUNK, COMPLETE, ERROR, SOURCES, QueryEngine
from wikirag.services import Services, build_services

app = typer.Typer(
    name="wikirag",
    help="Sync wiki pages and ask questions about them.",
    no_args_is_help=True,
)


@app.callback()
def main(
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Override LOG_LEVEL."),
) -> None:
    configure_logging(log_level)


@contextmanager
def open_services() -> Iterator[Services]:
    """Open the DB, wire all components, and tear them down afterwards."""
    conn = get_connection()
    init_db(conn)
    services = build_services(conn)
    try:
        yield services
    finally:
        services.close()
        conn.close()


# ---------------------------------------------------------------------------
# db
# ---------------------------------------------------------------------------
db_app = typer.Typer(help="Database operations.", no_args_is_help=True)
app.add_typer(db_app, name="db")


@db_app.command("init")
def db_init() -> None:
    """Initialise the SQLite database (create tables if they do not exist)."""
    conn = get_connection()
    init_db(conn)
    conn.close()
    typer.echo(f"[db init] Database ready at {settings.db_path}")


# ---------------------------------------------------------------------------
# sync
# ---------------------------------------------------------------------------
sync_app = typer.Typer(help="Sync wiki pages into the knowledge base.", no_args_is_help=True)
app.add_typer(sync_app, name="sync")


def _echo_report(prefix: str, report: SyncReport) -> None:
    typer.echo(
        f"[{prefix}] processed={report.processed} skipped={report.skipped} "
        f"errors={report.errors} duration={report.duration_ms} ms"
    )


@sync_app.command("all")
def sync_all(
    space: Optional[List[str]] = typer.Option(
        None, "--space", help="Restrict to this space key (repeatable)."
    ),
) -> None:
    """Fetch every page (or only the given spaces) and upsert it."""
    with open_services() as svc:
        typer.echo("[sync all] Syncing pages …")
        report = svc.orchestrator.sync_all(space or None)
        _echo_report("sync all", report)
        typer.echo(f"[sync all] Total documents: {svc.orchestrator.document_count()}")


@sync_app.command("space")
def sync_space(space_key: str = typer.Argument(..., help="Space key.")) -> None:
    """Sync the pages of a single space."""
    with open_services() as svc:
        typer.echo(f"[sync space] Syncing space {space_key!r} …")
        report = svc.orchestrator.sync_space(space_key)
        _echo_report("sync space", report)
        count = svc.orchestrator.document_count_by_space(space_key)
        typer.echo(f"[sync space] Documents in {space_key}: {count}")


@sync_app.command("page")
def sync_page(page_id: str = typer.Argument(..., help="Page id.")) -> None:
    """Re-fetch and upsert a single page."""
    with open_services() as svc:
        if not svc.orchestrator.sync_page(page_id):
            typer.echo(f"[sync page] Page {page_id!r} could not be fetched or has no content.")
            raise typer.Exit(1)
    typer.echo(f"[sync page] Page {page_id!r} stored.")


@app.command("delete")
def delete(page_id: str = typer.Argument(..., help="Page id.")) -> None:
    """Remove a page from the vector index and the document store."""
    with open_services() as svc:
        if not svc.orchestrator.is_known(page_id):
            typer.echo(f"[delete] Page {page_id!r} not found.")
            raise typer.Exit(1)
        try:
            svc.orchestrator.delete_page(page_id)
        except RuntimeError as exc:
            typer.echo(f"[delete] {exc}")
            raise typer.Exit(1)
    typer.echo(f"[delete] Page {page_id!r} deleted.")


# ---------------------------------------------------------------------------
# ask / search / status
# ---------------------------------------------------------------------------
async def _print_stream(engine: QueryEngine, question: str) -> bool:
    ok = True
    async for event in engine.answer_stream(question):
        if event.event == SOURCES:
            for page in event.data["sourcePages"]:
                typer.echo(f"  · {page['title']} [{page['spaceKey']}] {page['url']}")
            typer.echo("")
        elif event.event == CHUNK:
            typer.echo(event.data["content"], nl=False)
        elif event.event == COMPLETE:
            typer.echo("")
        elif event.event == ERROR:
            typer.echo(f"\n[ask] {event.data['message']}")
            ok = False
    return ok


@app.command("ask")
def ask(
    question: str = typer.Argument(..., help="Question to answer."),
    stream: bool = typer.Option(False, "--stream", help="Print the answer as it is generated."),
) -> None:
    """Answer a question from the synced wiki pages."""
    if not question.strip():
        typer.echo("[ask] Question cannot be empty")
        raise typer.Exit(1)

    with open_services() as svc:
        if stream:
            if not asyncio.run(_print_stream(svc.engine, question)):
                raise typer.Exit(1)
            return
        result = svc.engine.answer(question)

    typer.echo(result.answer)
    if result.sources:
        typer.echo("\nSources:")
        for src in result.sources:
            typer.echo(f"  · {src.title} [{src.space_key}] {src.url}")


@app.command("search")
def search(
    query: str = typer.Argument(..., help="Search query."),
    top_k: int = typer.Option(5, "--top-k", help="Maximum number of results."),
    threshold: float = typer.Option(0.5, "--threshold", help="Minimum similarity."),
) -> None:
    """List the titles of the pages most similar to a query."""
    with open_services() as svc:
        titles = svc.engine.relevant_titles(query, top_k, threshold)
    if not titles:
        typer.echo(f"[search] No results for {query!r}.")
        return
    for title in titles:
        typer.echo(f"  {title}")


@app.command("status")
def status(
    space: Optional[str] = typer.Option(None, "--space", help="Count only this space."),
    list_pages: bool = typer.Option(
        False, "--list", help="With --space, also list the stored page titles."
    ),
) -> None:
    """Show how many documents are stored."""
    with open_services() as svc:
        if space:
            count = svc.orchestrator.document_count_by_space(space)
            typer.echo(f"[status] Documents in {space}: {count}")
            if list_pages:
                for doc in svc.orchestrator.documents_in_space(space):
                    typer.echo(f"  {doc.page_id}  {doc.title}")
        else:
            typer.echo(f"[status] Total documents: {svc.orchestrator.document_count()}")


# ---------------------------------------------------------------------------
# serve
# ---------------------------------------------------------------------------
@app.command("serve")
def serve(
    host: str = typer.Option("127.0.0.1", "--host"),
    port: int = typer.Option(8000, "--port"),
    reload: bool = typer.Option(False, "--reload"),
) -> None:
    """Run the HTTP API with uvicorn."""
    uvicorn.run("wikirag.api.app:app", host=host, port=port, reload=reload)


# ---------------------------------------------------------------------------
# Entry-point
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    app()
