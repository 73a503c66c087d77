"""Load the pattern index once per process and share it across queries."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Awaitable, Callable
from pathlib import Path

import httpx
from pydantic import TypeAdapter

from obn_wiki.models import PatternIndexEntry

IndexLoader = Callable[[], Awaitable[list[PatternIndexEntry]]]

_INDEX_ADAPTER = TypeAdapter(list[PatternIndexEntry])


def parse_pattern_index(payload: str | bytes) -> list[PatternIndexEntry]:
    """Validate a ``pattern-index.json`` payload into entries."""
    return _INDEX_ADAPTER.validate_python(json.loads(payload))


async def fetch_pattern_index(client: httpx.AsyncClient, url: str) -> list[PatternIndexEntry]:
    response = await client.get(url)
    response.raise_for_status()
    return parse_pattern_index(response.content)


async def read_pattern_index(path: Path) -> list[PatternIndexEntry]:
    return parse_pattern_index(path.read_bytes())


class PatternIndexCache:
    """Memoization cell for the pattern index.

    The first ``get`` runs its loader; every later call returns the same list
    until ``reset`` is called. A failed load leaves the cell empty so the next
    request tries again.
    """

    def __init__(self) -> None:
        self._entries: list[PatternIndexEntry] | None = None
        self._lock = asyncio.Lock()

    @property
    def loaded(self) -> bool:
        return self._entries is not None

    async def get(self, loader: IndexLoader) -> list[PatternIndexEntry]:
        if self._entries is not None:
            return self._entries
        async with self._lock:
            if self._entries is None:
                self._entries = await loader()
            return self._entries

    def reset(self) -> None:
        self._entries = None
