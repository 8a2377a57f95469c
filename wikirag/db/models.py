"""Dataclass models representing DB rows.

These are plain Python objects – not ORM models.  The DB layer serialises /
deserialises to and from these types.
"""

from __future__ import annotations

from dataclasses import dataclass

UNKNOWN_SPACE_KEY = "UNKNOWN"
UNKNOWN_SPACE_NAME = "Unknown Space"


@dataclass
class IndexedDocument:
    id: int
    page_id: str
    title: str
    content: str
    space_key: str
    space_name: str
    created_at: int
    updated_at: int
