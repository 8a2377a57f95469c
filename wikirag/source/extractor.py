"""Content extraction: turns a page's storage-format markup into plain text."""

from __future__ import annotations

import re
from typing import Optional

from bs4 import BeautifulSoup

from wikirag.source.models import Page

# Elements whose text is never useful for embedding.
_DROP_TAGS = ["script", "style", "ac:parameter"]

_BLOCK_TAGS = [
    "p", "div", "section", "article", "blockquote", "pre",
    "h1", "h2", "h3", "h4", "h5", "h6",
    "ul", "ol", "li", "dl", "dt", "dd",
    "table", "thead", "tbody", "tr",
    "hr", "ac:structured-macro", "ac:rich-text-body", "ac:task",
]
_CELL_TAGS = ["td", "th"]

_INLINE_WS = re.compile(r"[ \t\r\f\v\xa0]+")


def markup_to_text(markup: str) -> str:
    """Strip *markup* to whitespace-normalised, human-readable text.

    Block-level elements end up on their own lines, table cells are separated
    by spaces, entities are decoded by the parser, and blank lines are
    dropped.
    """
    soup = BeautifulSoup(markup, "html.parser")
    for tag in soup.find_all(_DROP_TAGS):
        tag.decompose()
    for br in soup.find_all("br"):
        br.replace_with("\n")
    for tag in soup.find_all(_BLOCK_TAGS):
        tag.insert_before("\n")
        tag.insert_after("\n")
    for tag in soup.find_all(_CELL_TAGS):
        tag.insert_after(" ")

    lines = (_INLINE_WS.sub(" ", line).strip() for line in soup.get_text().splitlines())
    return "\n".join(line for line in lines if line)


def extract_text(page: Page) -> Optional[str]:
    """Return the embeddable text for *page*, or ``None`` if it has none.

    The page title is prepended, followed by a blank line, so the topic
    survives even when the body is later truncated.
    """
    if page.body_markup is None:
        return None
    body = markup_to_text(page.body_markup)
    if not body:
        return None
    return f"{page.title}\n\n{body}"
