"""Content source tests: API client pagination and storage-markup extraction.

- ``respx`` patches ``httpx`` at the transport layer so no real network calls
  are made; a side-effect handler serves batches keyed on the ``start``
  query parameter.
- Extraction is pure and tested directly.
"""

from __future__ import annotations

from typing import Callable, Generator

import httpx
import pytest
import respx

from wikirag.source.client import EXPAND, PAGE_SIZE, WikiClient
from wikirag.source.extractor import extract_text, markup_to_text
from wikirag.source.models import Page

BASE_URL = "https://wiki.example.com"
CONTENT_URL = f"{BASE_URL}/rest/api/content"


def _entry(page_id: int, space: str = "ENG") -> dict:
    return {
        "id": str(page_id),
        "type": "page",
        "title": f"Page {page_id}",
        "body": {"storage": {"value": f"<p>Body {page_id}</p>", "representation": "storage"}},
        "space": {"key": space, "name": f"{space} space"},
        "_links": {"webui": f"/display/{space}/{page_id}"},
    }


def _batch(start: int, size: int, space: str = "ENG") -> dict:
    results = [_entry(start + i, space) for i in range(size)]
    return {"results": results, "start": start, "limit": PAGE_SIZE, "size": size}


def _serve(batches: dict[int, httpx.Response]) -> Callable[[httpx.Request], httpx.Response]:
    """Side effect that answers each request from *batches* by its ``start``."""

    def handler(request: httpx.Request) -> httpx.Response:
        start = int(request.url.params["start"])
        return batches[start]

    return handler


@pytest.fixture()
def client() -> Generator[WikiClient, None, None]:
    c = WikiClient(BASE_URL, username="bot", password="secret")
    yield c
    c.close()


# ---------------------------------------------------------------------------
# Page model
# ---------------------------------------------------------------------------

class TestPageFromApi:
    def test_reads_expanded_fields(self) -> None:
        page = Page.from_api(_entry(7, "HR"))
        assert page.id == "7"
        assert page.title == "Page 7"
        assert page.body_markup == "<p>Body 7</p>"
        assert page.collection_key == "HR"
        assert page.collection_name == "HR space"

    def test_missing_body_and_space(self) -> None:
        page = Page.from_api({"id": 9, "title": "Bare"})
        assert page.id == "9"
        assert page.body_markup is None
        assert page.collection_key is None
        assert page.collection_name is None

    def test_missing_id_raises(self) -> None:
        with pytest.raises(ValueError):
            Page.from_api({"title": "No id"})


# ---------------------------------------------------------------------------
# fetch_all_pages
# ---------------------------------------------------------------------------

class TestFetchAllPages:
    def test_paginates_until_short_batch(self, client: WikiClient) -> None:
        batches = {
            0: httpx.Response(200, json=_batch(0, 50)),
            50: httpx.Response(200, json=_batch(50, 50)),
            100: httpx.Response(200, json=_batch(100, 7)),
        }
        with respx.mock:
            route = respx.route(method="GET", url__startswith=CONTENT_URL).mock(
                side_effect=_serve(batches)
            )
            pages = client.fetch_all_pages()

        assert len(pages) == 107
        assert route.call_count == 3
        assert [p.id for p in pages[:2]] == ["0", "1"]

        params = route.calls[0].request.url.params
        assert params["type"] == "page"
        assert params["expand"] == EXPAND
        assert params["limit"] == str(PAGE_SIZE)
        assert [c.request.url.params["start"] for c in route.calls] == ["0", "50", "100"]

    def test_sends_basic_auth(self, client: WikiClient) -> None:
        with respx.mock:
            route = respx.route(method="GET", url__startswith=CONTENT_URL).mock(
                return_value=httpx.Response(200, json=_batch(0, 1))
            )
            client.fetch_all_pages()

        assert route.calls[0].request.headers["Authorization"].startswith("Basic ")

    def test_transport_error_returns_partial_results(self, client: WikiClient) -> None:
        batches = {
            0: httpx.Response(200, json=_batch(0, 50)),
            50: httpx.Response(500, text="boom"),
        }
        with respx.mock:
            respx.route(method="GET", url__startswith=CONTENT_URL).mock(
                side_effect=_serve(batches)
            )
            pages = client.fetch_all_pages()

        assert len(pages) == 50

    def test_connection_error_on_first_batch_returns_empty(self, client: WikiClient) -> None:
        with respx.mock:
            respx.route(method="GET", url__startswith=CONTENT_URL).mock(
                side_effect=httpx.ConnectError
            )
            assert client.fetch_all_pages() == []

    def test_malformed_body_stops(self, client: WikiClient) -> None:
        with respx.mock:
            respx.route(method="GET", url__startswith=CONTENT_URL).mock(
                return_value=httpx.Response(200, json={"unexpected": True})
            )
            assert client.fetch_all_pages() == []

    def test_non_json_body_stops(self, client: WikiClient) -> None:
        with respx.mock:
            respx.route(method="GET", url__startswith=CONTENT_URL).mock(
                return_value=httpx.Response(200, text="<html>login</html>")
            )
            assert client.fetch_all_pages() == []

    def test_unreadable_entries_skipped(self, client: WikiClient) -> None:
        payload = {"results": [_entry(1), {"title": "no id"}, _entry(2)], "size": 3}
        with respx.mock:
            respx.route(method="GET", url__startswith=CONTENT_URL).mock(
                return_value=httpx.Response(200, json=payload)
            )
            pages = client.fetch_all_pages()

        assert [p.id for p in pages] == ["1", "2"]

    def test_space_filter_fetches_each_space(self, client: WikiClient) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            space = request.url.params["space"]
            offset = 0 if space == "ENG" else 500
            return httpx.Response(200, json=_batch(offset, 2, space))

        with respx.mock:
            route = respx.route(method="GET", url__startswith=CONTENT_URL).mock(
                side_effect=handler
            )
            pages = client.fetch_all_pages(["ENG", " ", "HR"])

        assert route.call_count == 2
        assert [p.collection_key for p in pages] == ["ENG", "ENG", "HR", "HR"]
        assert all("type" not in c.request.url.params for c in route.calls)

    def test_configured_space_keys_used_by_default(self) -> None:
        client = WikiClient(BASE_URL, space_keys=["DOCS"])
        with respx.mock:
            route = respx.route(method="GET", url__startswith=CONTENT_URL).mock(
                return_value=httpx.Response(200, json=_batch(0, 1, "DOCS"))
            )
            client.fetch_all_pages()
        client.close()

        assert route.calls[0].request.url.params["space"] == "DOCS"
        assert "Authorization" not in route.calls[0].request.headers


# ---------------------------------------------------------------------------
# fetch_page_by_id
# ---------------------------------------------------------------------------

class TestFetchPageById:
    def test_returns_page(self, client: WikiClient) -> None:
        with respx.mock:
            route = respx.route(method="GET", url__startswith=f"{CONTENT_URL}/42").mock(
                return_value=httpx.Response(200, json=_entry(42))
            )
            page = client.fetch_page_by_id("42")

        assert page is not None
        assert page.id == "42"
        assert route.calls[0].request.url.params["expand"] == EXPAND

    def test_not_found_returns_none(self, client: WikiClient) -> None:
        with respx.mock:
            respx.route(method="GET", url__startswith=f"{CONTENT_URL}/404").mock(
                return_value=httpx.Response(404, json={"message": "No content"})
            )
            assert client.fetch_page_by_id("404") is None

    def test_network_error_returns_none(self, client: WikiClient) -> None:
        with respx.mock:
            respx.route(method="GET", url__startswith=f"{CONTENT_URL}/1").mock(
                side_effect=httpx.ReadTimeout
            )
            assert client.fetch_page_by_id("1") is None


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------

class TestMarkupToText:
    def test_blocks_on_separate_lines(self) -> None:
        text = markup_to_text("<h1>Title</h1><p>First para.</p><p>Second   para.</p>")
        assert text == "Title\nFirst para.\nSecond para."

    def test_entities_decoded(self) -> None:
        assert markup_to_text("<p>Fish &amp; Chips&nbsp;&lt;3</p>") == "Fish & Chips <3"

    def test_lists_and_breaks(self) -> None:
        text = markup_to_text("<ul><li>one</li><li>two</li></ul>line<br/>next")
        assert text.splitlines() == ["one", "two", "line", "next"]

    def test_table_cells_space_separated(self) -> None:
        text = markup_to_text(
            "<table><tr><th>Key</th><th>Value</th></tr><tr><td>a</td><td>1</td></tr></table>"
        )
        assert text.splitlines() == ["Key Value", "a 1"]

    def test_macro_parameters_dropped_body_kept(self) -> None:
        markup = (
            '<ac:structured-macro ac:name="info">'
            '<ac:parameter ac:name="title">hidden-param</ac:parameter>'
            "<ac:rich-text-body><p>Visible note</p></ac:rich-text-body>"
            "</ac:structured-macro>"
        )
        text = markup_to_text(markup)
        assert "hidden-param" not in text
        assert "Visible note" in text

    def test_scripts_and_styles_dropped(self) -> None:
        text = markup_to_text("<style>p{}</style><script>x()</script><p>kept</p>")
        assert text == "kept"


class TestExtractText:
    def test_title_prepended(self) -> None:
        page = Page(id="1", title="Onboarding", body_markup="<p>Welcome aboard</p>")
        assert extract_text(page) == "Onboarding\n\nWelcome aboard"

    def test_no_body_returns_none(self) -> None:
        assert extract_text(Page(id="1", title="Empty")) is None

    def test_empty_body_returns_none(self) -> None:
        assert extract_text(Page(id="1", title="Empty", body_markup="")) is None

    def test_whitespace_only_markup_returns_none(self) -> None:
        page = Page(id="1", title="Blank", body_markup="<p>  </p><p>&nbsp;</p>")
        assert extract_text(page) is None
