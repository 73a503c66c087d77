from __future__ import annotations

import asyncio

import httpx

from conftest import make_entry

from obn_wiki.context import extract_main_text, gather_pattern_contents
from obn_wiki.index_cache import PatternIndexCache, parse_pattern_index

PAGE = """
<html><head><style>.x{}</style><script>var leak = 1;</script></head>
<body>
<nav>Sidebar link soup</nav>
<main><div class="sl-markdown-content"><h2>Problem</h2><p>Tokens leak.</p><script>track()</script></div></main>
</body></html>
"""


def test_extract_main_text_given_page_when_extracted_then_only_content_region_text_remains() -> None:
    # Given
    html = PAGE

    # When
    text = extract_main_text(html)

    # Then
    assert text == "Problem\nTokens leak."


def test_extract_main_text_given_page_without_content_region_when_extracted_then_empty() -> None:
    # Given
    html = "<html><body><p>Just a landing page</p></body></html>"

    # When
    text = extract_main_text(html)

    # Then
    assert text == ""


def test_gather_pattern_contents_given_four_entries_when_gathered_then_top_three_fetched_in_order() -> None:
    # Given
    entries = [make_entry(f"Pattern {idx}", slug=f"p{idx}") for idx in range(4)]
    requested: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requested.append(request.url.path)
        if request.url.path.endswith("/p1/"):
            return httpx.Response(404)
        slug = request.url.path.rstrip("/").rsplit("/", 1)[-1]
        return httpx.Response(200, text=f'<div class="sl-markdown-content">Body {slug}</div>')

    # When
    async def run() -> list[str]:
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            return await gather_pattern_contents(
                client,
                entries,
                resolve_url=lambda path: f"https://site.test{path}",
                limit=3,
            )

    contents = asyncio.run(run())

    # Then
    assert contents == ["Body p0", "", "Body p2"]
    assert sorted(requested) == ["/patterns/security/p0/", "/patterns/security/p1/", "/patterns/security/p2/"]


def test_pattern_index_cache_given_repeated_get_when_loaded_then_loader_runs_once() -> None:
    # Given
    cache = PatternIndexCache()
    calls: list[int] = []
    payload = (
        '[{"title": "A", "category": "soul", "categoryLabel": "Soul", "slug": "a", "status": "tested",'
        ' "version": "0.40+", "description": "d", "problemStatement": "p", "url": "/patterns/soul/a/"}]'
    )

    async def loader():
        calls.append(1)
        return parse_pattern_index(payload)

    # When
    async def run():
        first = await cache.get(loader)
        second = await cache.get(loader)
        return first, second

    first, second = asyncio.run(run())

    # Then
    assert first is second
    assert calls == [1]
    assert cache.loaded is True
    assert first[0].category_label == "Soul"

    cache.reset()
    assert cache.loaded is False
