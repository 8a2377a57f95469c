"""HTTP client for the wiki content API (``/rest/api/content``).

Pages are requested with ``expand=body.storage,space`` so that body markup
and space metadata come back inline, and are paged through in batches of
:data:`PAGE_SIZE`.  Listing favours availability over completeness: a
transport or parse error ends pagination early and whatever was collected so
far is returned.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Optional

import httpx

from wikirag.config import settings
from wikirag.source.models import Page

logger = logging.getLogger(__name__)

PAGE_SIZE = 50
CONTENT_ENDPOINT = "/rest/api/content"
EXPAND = "body.storage,space"


class WikiClient:
    """Paginating reader for the content API.

    Args:
        base_url: Wiki root, e.g. ``https://wiki.example.com``.
        username / password: Basic-auth credentials (passed through as-is).
        space_keys: Default space allowlist used when
            :meth:`fetch_all_pages` is called without a filter.
        timeout: Per-request timeout in seconds.
        transport: Optional ``httpx`` transport (tests).
    """

    def __init__(
        self,
        base_url: str,
        username: str = "",
        password: str = "",
        space_keys: Optional[Iterable[str]] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.space_keys = [k for k in (space_keys or []) if k]
        self._client = httpx.Client(
            base_url=self.base_url,
            auth=httpx.BasicAuth(username, password) if username else None,
            headers={"Accept": "application/json"},
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_settings(cls) -> WikiClient:
        return cls(
            base_url=settings.confluence_base_url,
            username=settings.confluence_username,
            password=settings.confluence_password,
            space_keys=settings.space_keys,
            timeout=settings.request_timeout,
        )

    def close(self) -> None:
        self._client.close()

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------
    def fetch_all_pages(self, space_keys: Optional[Iterable[str]] = None) -> list[Page]:
        """Return every page, optionally restricted to *space_keys*.

        With a non-empty filter each space is fetched in turn and the results
        concatenated; page ids are globally unique so no deduplication is
        done.  Without one, the client's configured allowlist is used, and if
        that is empty too, all pages of type ``page`` are fetched.
        """
        keys = [k.strip() for k in (space_keys or []) if k and k.strip()]
        if not keys:
            keys = self.space_keys

        if keys:
            pages: list[Page] = []
            for key in keys:
                logger.info("Fetching pages from space: %s", key)
                pages.extend(self._paginate({"space": key}))
            return pages

        logger.info("Fetching pages from all spaces")
        return self._paginate({"type": "page"})

    def _paginate(self, query: dict[str, str]) -> list[Page]:
        pages: list[Page] = []
        start = 0
        while True:
            params = {**query, "expand": EXPAND, "start": start, "limit": PAGE_SIZE}
            try:
                response = self._client.get(CONTENT_ENDPOINT, params=params)
                response.raise_for_status()
                payload = response.json()
            except (httpx.HTTPError, ValueError) as exc:
                logger.error("Error fetching pages (start=%d): %s", start, exc)
                break

            results = payload.get("results") if isinstance(payload, dict) else None
            if not isinstance(results, list):
                logger.error("Malformed content response at start=%d; stopping", start)
                break

            pages.extend(self._parse_results(results))
            size = payload.get("size")
            if not isinstance(size, int):
                size = len(results)
            logger.debug("Fetched %d pages, start: %d", size, start)

            if size < PAGE_SIZE:
                break
            start += PAGE_SIZE
        return pages

    @staticmethod
    def _parse_results(results: list[Any]) -> list[Page]:
        pages: list[Page] = []
        for entry in results:
            try:
                pages.append(Page.from_api(entry))
            except (ValueError, AttributeError) as exc:
                logger.warning("Skipping unreadable content entry: %s", exc)
        return pages

    # ------------------------------------------------------------------
    # Single page
    # ------------------------------------------------------------------
    def fetch_page_by_id(self, page_id: str) -> Optional[Page]:
        """Return one page, or ``None`` on any failure."""
        try:
            response = self._client.get(
                f"{CONTENT_ENDPOINT}/{page_id}", params={"expand": EXPAND}
            )
            response.raise_for_status()
            page = Page.from_api(response.json())
        except (httpx.HTTPError, ValueError, AttributeError) as exc:
            logger.error("Error fetching page %s: %s", page_id, exc)
            return None
        logger.debug("Fetched page: %s - %s", page.id, page.title)
        return page
