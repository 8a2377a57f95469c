"""Content source package: API client and text extraction."""

from wikirag.source.client import WikiClient
from wikirag.source.extractor import extract_text
from wikirag.source.models import Page

__all__ = ["WikiClient", "extract_text", "Page"]
