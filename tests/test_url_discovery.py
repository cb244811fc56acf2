"""Tests for category link discovery on the index page."""

import asyncio

import httpx
import pytest

from bisac_tools.scraping.url_discovery import extract_category_urls, fetch_index_html

INDEX_URL = "https://www.bisg.org/complete-bisac-subject-headings-list"

INDEX_HTML = """
<html><body>
  <nav><a href="/about">About</a></nav>
  <table>
    <tr><td><a href="/antiques-collectibles">ANTIQUES &amp; COLLECTIBLES</a></td></tr>
    <tr><td><a href="https://www.bisg.org/architecture#top">ARCHITECTURE</a></td></tr>
    <tr><td><a href="/antiques-collectibles">ANTIQUES &amp; COLLECTIBLES (again)</a></td></tr>
    <tr><td><a href="https://elsewhere.example/art">ART (offsite)</a></td></tr>
    <tr><td><a href="mailto:info@bisg.org">mail</a></td></tr>
    <tr><td><a>no href</a></td></tr>
  </table>
</body></html>
"""


def test_extract_category_urls():
    urls = extract_category_urls(INDEX_HTML, INDEX_URL, link_selector="table a", host="bisg.org")
    assert urls == [
        "https://www.bisg.org/antiques-collectibles",
        "https://www.bisg.org/architecture",
    ]


def test_extract_without_host_filter():
    urls = extract_category_urls(INDEX_HTML, INDEX_URL, host=None)
    assert "https://elsewhere.example/art" in urls
    assert all("about" not in u for u in urls)


def test_fetch_index_html_retries_transient_status(sleep):
    responses = [httpx.Response(503), httpx.Response(200, text=INDEX_HTML)]

    def handler(request):
        return responses.pop(0)

    html = asyncio.run(fetch_index_html(INDEX_URL, transport=httpx.MockTransport(handler), sleep=sleep))
    assert "ANTIQUES" in html
    assert responses == []
    assert sleep.delays == [1]


def test_fetch_index_html_gives_up(sleep):
    with pytest.raises(httpx.HTTPStatusError):
        asyncio.run(
            fetch_index_html(
                INDEX_URL,
                max_retries=2,
                transport=httpx.MockTransport(lambda r: httpx.Response(502)),
                sleep=sleep,
            )
        )
    assert sleep.delays == [1]


def test_fetch_index_html_sends_browser_headers(sleep):
    seen = {}

    def handler(request):
        seen["user-agent"] = request.headers["user-agent"]
        return httpx.Response(200, text="<html></html>")

    asyncio.run(fetch_index_html(INDEX_URL, transport=httpx.MockTransport(handler), sleep=sleep))
    assert "Mozilla" in seen["user-agent"]


def test_fetch_index_html_does_not_retry_not_found(sleep):
    calls = []

    def handler(request):
        calls.append(request.url)
        return httpx.Response(404)

    with pytest.raises(httpx.HTTPStatusError):
        asyncio.run(fetch_index_html(INDEX_URL, transport=httpx.MockTransport(handler), sleep=sleep))
    assert len(calls) == 1
    assert sleep.delays == []


def test_fetch_index_html_retries_connection_errors_with_backoff(sleep):
    outcomes = [httpx.ConnectError("reset"), httpx.ConnectError("reset"), httpx.Response(200, text=INDEX_HTML)]

    def handler(request):
        outcome = outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    html = asyncio.run(fetch_index_html(INDEX_URL, transport=httpx.MockTransport(handler), sleep=sleep))
    assert "ANTIQUES" in html
    assert sleep.delays == [1, 2]


def test_fetch_index_html_rejects_zero_retries():
    with pytest.raises(ValueError):
        asyncio.run(fetch_index_html(INDEX_URL, max_retries=0))
