"""Data models for pages fetched from the content API."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional


@dataclass
class Page:
    """A single page as returned by ``/rest/api/content``."""

    id: str
    title: str
    body_markup: Optional[str] = None
    collection_key: Optional[str] = None
    collection_name: Optional[str] = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> Page:
        """Build a :class:`Page` from one API result, ignoring unknown fields.

        Expects the ``body.storage`` and ``space`` expansions to be inline.

        Raises:
            ValueError: If the entry has no ``id``.
        """
        page_id = data.get("id")
        if not page_id:
            raise ValueError("Content entry has no id")

        body = (data.get("body") or {}).get("storage") or {}
        space = data.get("space") or {}
        return cls(
            id=str(page_id),
            title=data.get("title") or "",
            body_markup=body.get("value"),
            collection_key=space.get("key"),
            collection_name=space.get("name"),
        )
