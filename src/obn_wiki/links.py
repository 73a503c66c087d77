"""Rewrite relative pattern links into absolute site routes."""

from __future__ import annotations

import re

from obn_wiki.models import CATEGORIES, pattern_url

FENCE_MARKER = "```"
LINK_RE = re.compile(r"\[([^\]]+)\]\(([^)]+\.md)\)")
SCHEME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9+.-]*:")
TITLE_LINE_RE = re.compile(r"^# Pattern:.*\n?", re.MULTILINE)
LEADING_H1_RE = re.compile(r"\A# .+\n?")

PARENT_PREFIX = "../"


def resolve_link_target(href: str, source_category: str | None) -> tuple[str, str] | None:
    """Resolve a relative ``.md`` link to ``(category, slug)``.

    Returns ``None`` for external links and for targets that do not land in a
    known category.
    """
    if SCHEME_RE.match(href):
        return None

    if href.startswith(PARENT_PREFIX):
        parts = href[len(PARENT_PREFIX):].split("/")
        if len(parts) < 2:
            return None
        category, filename = parts[0], parts[1]
    elif "/" in href:
        parts = href.split("/")
        category, filename = parts[-2], parts[-1]
    else:
        if source_category is None:
            return None
        category, filename = source_category, href

    slug = filename.removesuffix(".md")
    if category not in CATEGORIES or not slug:
        return None
    return category, slug


def _rewrite_line(line: str, source_category: str | None) -> str:
    def replace(match: re.Match[str]) -> str:
        text, href = match.group(1), match.group(2)
        target = resolve_link_target(href, source_category)
        if target is None:
            return match.group(0)
        return f"[{text}]({pattern_url(*target)})"

    return LINK_RE.sub(replace, line)


def rewrite_cross_links(content: str, source_category: str | None) -> str:
    """Rewrite intra-corpus links outside fenced code blocks.

    Args:
        content: Markdown body.
        source_category: Category of the document being rewritten, or ``None``
            for top-level documents that live outside any category.

    Returns:
        The body with relative pattern links replaced by ``/patterns/...`` routes.
    """
    in_code_block = False
    out: list[str] = []
    for line in content.split("\n"):
        if line.strip().startswith(FENCE_MARKER):
            in_code_block = not in_code_block
            out.append(line)
            continue
        if in_code_block:
            out.append(line)
            continue
        out.append(_rewrite_line(line, source_category))
    return "\n".join(out)


def strip_title_line(content: str) -> str:
    """Drop the first ``# Pattern:`` line; the site derives the H1 from frontmatter."""
    return TITLE_LINE_RE.sub("", content, count=1)


def strip_leading_heading(content: str) -> str:
    """Drop a leading H1 from a top-level document."""
    return LEADING_H1_RE.sub("", content, count=1)
