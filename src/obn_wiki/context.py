"""Fetch rendered pattern pages and reduce them to their article text."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence

import httpx
from bs4 import BeautifulSoup

from obn_wiki.models import PatternIndexEntry

logger = logging.getLogger(__name__)

CONTENT_SELECTOR = ".sl-markdown-content"
NON_CONTENT_TAGS = ["script", "style", "noscript", "nav", "svg"]


def extract_main_text(html: str) -> str:
    """Return the text of the page's primary content region, or ``""``."""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(NON_CONTENT_TAGS):
        tag.decompose()
    main = soup.select_one(CONTENT_SELECTOR)
    if main is None:
        return ""
    return main.get_text(separator="\n", strip=True)


async def fetch_pattern_content(client: httpx.AsyncClient, url: str) -> str:
    """Fetch one page; HTTP failures degrade to ``""`` so the prompt can fall back."""
    try:
        response = await client.get(url)
        response.raise_for_status()
    except httpx.HTTPError as exc:
        logger.warning("Could not fetch pattern page %s: %s", url, exc)
        return ""
    return extract_main_text(response.text)


async def gather_pattern_contents(
    client: httpx.AsyncClient,
    entries: Sequence[PatternIndexEntry],
    resolve_url: Callable[[str], str],
    limit: int = 3,
    concurrency: int = 3,
) -> list[str]:
    """Fetch page text for the first ``limit`` entries concurrently.

    All fetches settle before this returns; results keep entry order.
    """
    semaphore = asyncio.Semaphore(max(1, concurrency))

    async def bounded(entry: PatternIndexEntry) -> str:
        async with semaphore:
            return await fetch_pattern_content(client, resolve_url(entry.url))

    return list(await asyncio.gather(*(bounded(entry) for entry in entries[:limit])))
