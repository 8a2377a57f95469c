"""Page sync pipeline.

``SyncOrchestrator.sync_all`` drives one full pass over the content source:

    fetch pages → extract text → upsert Document Store + Vector Index

Pages are handled strictly one at a time.  A failure on one page is logged
and counted but never stops the run, and a fixed delay after every page keeps
pressure on the content API and the embedding model bounded.  Each page's
store write is its own transaction; a run interrupted half-way leaves the
pages already processed committed.
"""

from __future__ import annotations

import logging
import time
from dataclasses import asdict, dataclass
from typing import Any, Iterable, Optional

from wikirag.db.documents import DocumentStore
from wikirag.db.models import IndexedDocument, UNKNOWN_SPACE_KEY, UNKNOWN_SPACE_NAME
from wikirag.db.vectors import VectorIndex
from wikirag.source.client import WikiClient
from wikirag.source.extractor import extract_text
from wikirag.source.models import Page

logger = logging.getLogger(__name__)

PAGE_TYPE = "page"
_PROGRESS_EVERY = 10


@dataclass
class SyncReport:
    processed: int = 0
    errors: int = 0
    skipped: int = 0
    duration_ms: int = 0

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


def page_metadata(page: Page, space_key: str, space_name: str) -> dict[str, Any]:
    """The metadata bag stored with a page's vector entry."""
    return {
        "id": page.id,
        "title": page.title,
        "spaceKey": space_key,
        "spaceName": space_name,
        "type": PAGE_TYPE,
    }


class SyncOrchestrator:
    """Keeps the document store and the vector index in step with the source.

    Args:
        client: Content source to read pages from.
        store: Durable per-page records.
        index: Vector index; written on every upsert and delete, since the
            two are never reconciled automatically.
        page_delay: Seconds to sleep after each page.
    """

    def __init__(
        self,
        client: WikiClient,
        store: DocumentStore,
        index: VectorIndex,
        page_delay: float = 0.1,
    ) -> None:
        self.client = client
        self.store = store
        self.index = index
        self.page_delay = page_delay

    # ------------------------------------------------------------------
    # Runs
    # ------------------------------------------------------------------
    def sync_all(self, space_keys: Optional[Iterable[str]] = None) -> SyncReport:
        """Fetch every page (optionally only from *space_keys*) and upsert it."""
        logger.info("Starting content sync")
        started = time.monotonic()
        pages = self.client.fetch_all_pages(space_keys)
        report = self._process(pages, started)
        self._log_summary(report)
        logger.info("Total documents in database: %d", self.store.count())
        return report

    def sync_space(self, space_key: str) -> SyncReport:
        """Sync only the pages of *space_key*.

        All pages are fetched unfiltered and then narrowed locally, so the
        run starts from the same superset ``sync_all`` sees.  This costs more
        requests than a server-side filter and is intentional.
        """
        logger.info("Starting content sync for space: %s", space_key)
        started = time.monotonic()
        pages = self.client.fetch_all_pages()
        if space_key and space_key.strip():
            pages = [p for p in pages if p.collection_key == space_key]
        report = self._process(pages, started)
        self._log_summary(report)
        logger.info(
            "Documents in space %s: %d", space_key, self.store.count_by_space(space_key)
        )
        return report

    def sync_page(self, page_id: str) -> bool:
        """Re-fetch and upsert a single page.

        Returns ``False`` if the page could not be fetched or has no content.
        """
        page = self.client.fetch_page_by_id(page_id)
        if page is None:
            return False
        return self.upsert_page(page)

    def _process(self, pages: list[Page], started: float) -> SyncReport:
        report = SyncReport()
        for page in pages:
            try:
                logger.debug("Processing page: %s - %s", page.id, page.title)
                if self.upsert_page(page):
                    report.processed += 1
                    if report.processed % _PROGRESS_EVERY == 0:
                        logger.info("Processed %d pages so far...", report.processed)
                else:
                    report.skipped += 1
            except Exception:  # noqa: BLE001
                report.errors += 1
                logger.exception("Error processing page %s", page.id)
            time.sleep(self.page_delay)
        report.duration_ms = int((time.monotonic() - started) * 1000)
        return report

    @staticmethod
    def _log_summary(report: SyncReport) -> None:
        logger.info("Content sync completed")
        logger.info("Total pages processed: %d", report.processed)
        logger.info("Total pages skipped: %d", report.skipped)
        logger.info("Total errors: %d", report.errors)
        logger.info(
            "Total time: %d ms (%.1f seconds)", report.duration_ms, report.duration_ms / 1000
        )

    # ------------------------------------------------------------------
    # Single-page operations
    # ------------------------------------------------------------------
    def upsert_page(self, page: Page) -> bool:
        """Create or replace the record and vector entry for *page*.

        Returns ``False`` (and writes nothing) when the page has no
        extractable text.  Exceptions propagate to the caller.  The vector
        entry is written first and replaces any stale one, so a page whose
        record was never stored is picked up again on the next run.
        """
        content = extract_text(page)
        if content is None:
            logger.warning("No content found for page: %s - %s", page.id, page.title)
            return False

        space_key = page.collection_key or UNKNOWN_SPACE_KEY
        space_name = page.collection_name or UNKNOWN_SPACE_NAME
        metadata = page_metadata(page, space_key, space_name)

        existing = self.store.get_by_page_id(page.id)
        if existing is None:
            logger.info("Processing new page: %s - %s", page.id, page.title)
            self.index.add(page.id, content, metadata)
            self.store.create(page.id, page.title, content, space_key, space_name)
            logger.info("Stored new document: %s - %s", page.id, page.title)
            return True

        logger.info("Page already exists, updating: %s - %s", page.id, page.title)
        existing.title = page.title
        existing.content = content
        existing.space_key = space_key
        existing.space_name = space_name
        self.index.add(page.id, content, metadata)
        self.store.update(existing)
        logger.info("Updated document: %s - %s", page.id, page.title)
        return True

    def delete_page(self, page_id: str) -> None:
        """Remove *page_id* from the vector index, then from the store.

        The two deletes share no transaction.  If the second fails the page
        is no longer searchable but its row remains; this is reported, not
        repaired.

        Raises:
            RuntimeError: If the store delete fails after the index delete.
        """
        self.index.delete(page_id)
        try:
            self.store.delete(page_id)
        except Exception as exc:
            logger.error(
                "Vector entry for page %s removed but its document row remains: %s",
                page_id,
                exc,
            )
            raise RuntimeError(
                f"Page {page_id!r} was removed from the index but its document "
                f"record could not be deleted: {exc}"
            ) from exc
        logger.info("Deleted document: %s", page_id)

    # ------------------------------------------------------------------
    # Counts
    # ------------------------------------------------------------------
    def document_count(self) -> int:
        return self.store.count()

    def document_count_by_space(self, space_key: str) -> int:
        return self.store.count_by_space(space_key)

    def documents_in_space(self, space_key: str) -> list[IndexedDocument]:
        return self.store.list_by_space(space_key)

    def is_known(self, page_id: str) -> bool:
        """``True`` if *page_id* has a document record or a vector entry."""
        return self.store.exists(page_id) or self.index.exists(page_id)
