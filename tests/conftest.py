from __future__ import annotations

import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from obn_wiki.credentials import CredentialStore
from obn_wiki.models import PatternIndexEntry

GATEWAY_PATTERN = """# Pattern: Gateway Hardening

> **Category:** Security | **Status:** Stable | **OpenClaw Version:** 0.42+ | **Last Validated:** 2026-03-01

> **See also:** [Cost](../operations/cost-optimization.md)

## Problem

Exposed gateways leak tokens. Attackers scan for open ports.

## Solution

See [Compaction](../memory/compaction-strategy.md) and [Local](prompt-injection.md).

```bash
# [Not a link](../memory/compaction-strategy.md)
```
"""

COST_PATTERN = """# Pattern: Cost Optimization Strategies

> **Category:** Operations | **Status:** tested

## Problem

Model bills grow quickly when every request uses the largest model.
"""

COMPACTION_PATTERN = """# Pattern: Compaction Strategy

## Problem

Long sessions overflow the context window. Summaries lose detail.
"""


@pytest.fixture
def corpus_root(tmp_path) -> Path:
    root = tmp_path / "repo"
    files = {
        "patterns/security/gateway-hardening.md": GATEWAY_PATTERN,
        "patterns/operations/cost-optimization.md": COST_PATTERN,
        "patterns/memory/compaction-strategy.md": COMPACTION_PATTERN,
        "patterns/memory/untitled-notes.md": "Just some notes without a title.\n",
        "patterns/misc/stray.md": "# Pattern: Stray\n",
        "CONTRIBUTING.md": "# Contributing\n\nRead [the gateway](patterns/security/gateway-hardening.md).\n",
        "stacks/docker/README.md": "# Docker\n\nCompose file lives here.\n",
        "README.md": (
            "# OBN\n\n## Version Matrix\n\n| Pattern | Version |\n"
            "| [Gateway](patterns/security/gateway-hardening.md) | 0.42+ |\n\n"
            "## Pattern Categories\n\nStuff.\n"
        ),
    }
    for rel, text in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
    return root


def make_entry(
    title: str,
    category: str = "security",
    description: str = "",
    problem_statement: str = "",
    slug: str | None = None,
) -> PatternIndexEntry:
    slug = slug or title.lower().replace(" ", "-")
    return PatternIndexEntry(
        title=title,
        category=category,
        category_label=category.capitalize(),
        slug=slug,
        status="tested",
        version="0.40+",
        description=description,
        problem_statement=problem_statement,
        url=f"/patterns/{category}/{slug}/",
    )


@pytest.fixture
def sample_entries() -> list[PatternIndexEntry]:
    return [
        make_entry(
            "Gateway Hardening",
            category="security",
            description="Exposed gateways leak tokens.",
            problem_statement="Exposed gateways leak tokens. Attackers scan for open ports.",
        ),
        make_entry(
            "Cost Optimization Strategies",
            category="operations",
            description="Model bills grow quickly.",
            problem_statement="Model bills grow quickly when every request uses the largest model.",
        ),
    ]


@pytest.fixture
def credential_store(tmp_path) -> CredentialStore:
    return CredentialStore(tmp_path / "home" / "storage.json")
