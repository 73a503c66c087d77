"""Extract typed metadata from hand-authored pattern Markdown."""

from __future__ import annotations

import logging
import re
from pathlib import Path

from obn_wiki.models import (
    DEFAULT_LAST_VALIDATED,
    DEFAULT_STATUS,
    DEFAULT_VERSION,
    DESCRIPTION_MAX_CHARS,
    PATTERN_STATUSES,
    PatternMetadata,
)

logger = logging.getLogger(__name__)

TITLE_MARKER = "# Pattern:"

CATEGORY_RE = re.compile(r"\*\*Category:\*\*\s*(\w+)")
STATUS_RE = re.compile(r"\*\*Status:\*\*\s*(\w+)")
VERSION_RE = re.compile(r"\*\*OpenClaw Version:\*\*\s*(.+?)(?:\s*\||$)")
DATE_RE = re.compile(r"\*\*Last Validated:\*\*\s*([\d-]+)")
LAYER_RE = re.compile(r"\*\*Layer on top of:\*\*\s*(.+)")
ISSUES_RE = re.compile(r"\*\*Known ecosystem issues this addresses:\*\*\s*(.+)")
SEE_ALSO_RE = re.compile(r"\*\*See also:\*\*\s*(.+)")

PROBLEM_HEADING_RE = re.compile(r"^##\s*Problem\b")
HEADING_RE = re.compile(r"^#{1,6}\s")
SENTENCE_BREAK_RE = re.compile(r"\.\s")


def _extract_title(lines: list[str]) -> str | None:
    for line in lines:
        if line.startswith(TITLE_MARKER):
            title = line[len(TITLE_MARKER):].strip()
            return title or None
    return None


def _extract_fields(lines: list[str]) -> dict[str, str]:
    """Collect labeled blockquote fields; later lines override earlier ones."""
    fields: dict[str, str] = {}
    patterns = {
        "category": CATEGORY_RE,
        "status": STATUS_RE,
        "version": VERSION_RE,
        "last_validated": DATE_RE,
        "layer_on_top_of": LAYER_RE,
        "known_issues": ISSUES_RE,
        "see_also": SEE_ALSO_RE,
    }
    for line in lines:
        if not line.startswith(">"):
            continue
        for name, pattern in patterns.items():
            match = pattern.search(line)
            if match and match.group(1).strip():
                fields[name] = match.group(1).strip()
    return fields


def extract_problem_statement(lines: list[str]) -> str:
    """Return the first paragraph under the ``## Problem`` heading as one line."""
    parts: list[str] = []
    in_problem = False
    for line in lines:
        if not in_problem:
            if PROBLEM_HEADING_RE.match(line):
                in_problem = True
            continue
        if HEADING_RE.match(line) or (parts and not line.strip()):
            break
        if line.strip():
            parts.append(line.strip())
    return " ".join(parts)


def derive_description(problem_statement: str, fallback: str) -> str:
    first_sentence = SENTENCE_BREAK_RE.split(problem_statement, maxsplit=1)[0]
    description = f"{first_sentence}." if first_sentence else fallback
    return description[:DESCRIPTION_MAX_CHARS]


def parse_pattern_text(text: str, category: str, source_path: str) -> PatternMetadata | None:
    """Parse one pattern document into ``PatternMetadata``.

    Every field except the title is optional and falls back to a default when
    absent or malformed, so a sloppy metadata line never fails the document.

    Args:
        text: Raw Markdown of the pattern.
        category: Category directory the document was found in.
        source_path: Path recorded on the metadata for diagnostics.

    Returns:
        The parsed metadata, or ``None`` when no ``# Pattern:`` title exists.
    """
    lines = text.splitlines()

    title = _extract_title(lines)
    if title is None:
        logger.warning('Skipping %s: no "%s" title found', source_path, TITLE_MARKER)
        return None

    fields = _extract_fields(lines)

    status = fields.get("status", DEFAULT_STATUS).lower()
    if status not in PATTERN_STATUSES:
        logger.warning("%s: unknown status %r, using %r", source_path, status, DEFAULT_STATUS)
        status = DEFAULT_STATUS

    declared_category = fields.get("category", "").lower()
    if declared_category and declared_category != category:
        logger.info(
            "%s: declares category %r but lives under %r; using directory",
            source_path,
            declared_category,
            category,
        )

    problem_statement = extract_problem_statement(lines)

    return PatternMetadata(
        title=title,
        category=category,
        status=status,
        version=fields.get("version", DEFAULT_VERSION),
        last_validated=fields.get("last_validated", DEFAULT_LAST_VALIDATED),
        slug=Path(source_path).stem,
        source_path=source_path,
        problem_statement=problem_statement,
        description=derive_description(problem_statement, fallback=title),
        layer_on_top_of=fields.get("layer_on_top_of"),
        known_issues=fields.get("known_issues"),
        see_also=fields.get("see_also"),
    )
