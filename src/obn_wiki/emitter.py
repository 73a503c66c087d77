"""Turn the pattern corpus into site content plus the runtime pattern index."""

from __future__ import annotations

import json
import logging
import shutil
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from pathlib import Path

from obn_wiki.config import INDEX_FILENAME, BuildSettings
from obn_wiki.links import rewrite_cross_links, strip_leading_heading, strip_title_line
from obn_wiki.models import CATEGORIES, STATUS_BADGES, PatternIndexEntry, PatternMetadata
from obn_wiki.parser import parse_pattern_text

logger = logging.getLogger(__name__)

GENERATED_DIRS = ("patterns", "stacks", "reference")

TOP_LEVEL_DOCS: tuple[tuple[str, str, str, str], ...] = (
    ("CONTRIBUTING.md", "contributing.md", "Contributing", "How to submit patterns to OBN"),
    (
        "PATTERN_TEMPLATE.md",
        "reference/pattern-template.md",
        "Pattern Template",
        "Standard template for new pattern submissions",
    ),
    (
        "GAP_ANALYSIS.md",
        "reference/gap-analysis.md",
        "Gap Analysis",
        "Community research vs current pattern coverage",
    ),
)

STACK_LABELS: dict[str, str] = {
    "daemon": "systemd / launchd",
    "docker": "Docker",
    "cloud": "Cloud VM",
    "n8n": "n8n Workflows",
}

VERSION_MATRIX_START = "## Version Matrix"
VERSION_MATRIX_END = "## Pattern Categories"


class CorpusNotFoundError(RuntimeError):
    """Raised when the pattern corpus root does not exist."""


@dataclass
class BuildReport:
    """Summary of one ``build_site`` run."""

    patterns: list[PatternMetadata] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    extra_docs: list[Path] = field(default_factory=list)
    index_path: Path | None = None


def _quote(value: str) -> str:
    return json.dumps(value, ensure_ascii=False)


def _frontmatter(lines: Iterable[str]) -> str:
    return "\n".join(["---", *lines, "---", "", ""])


def generate_frontmatter(meta: PatternMetadata) -> str:
    """Render the fixed-order metadata header consumed by the site renderer."""
    badge = STATUS_BADGES.get(meta.status, STATUS_BADGES["tested"])
    return _frontmatter(
        [
            f"title: {_quote(meta.title)}",
            f"description: {_quote(meta.description)}",
            f"category: {meta.category}",
            f"status: {meta.status}",
            f"version: {_quote(meta.version)}",
            f"lastValidated: {_quote(meta.last_validated)}",
            "sidebar:",
            "  badge:",
            f"    text: {_quote(badge['text'])}",
            f"    variant: {_quote(badge['variant'])}",
        ]
    )


def _write(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


def _read_source(path: Path) -> str | None:
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        logger.warning("Skipping %s: unreadable (%s)", path, exc)
        return None


def process_pattern(path: Path, category: str, docs_dir: Path) -> PatternMetadata | None:
    """Parse, rewrite, and emit one pattern; ``None`` means it was skipped."""
    text = _read_source(path)
    if text is None:
        return None

    meta = parse_pattern_text(text, category=category, source_path=str(path))
    if meta is None:
        return None

    body = strip_title_line(text)
    body = rewrite_cross_links(body, category)

    _write(docs_dir / "patterns" / category / f"{meta.slug}.md", generate_frontmatter(meta) + body)
    return meta


def process_top_level_doc(src: Path, dest: Path, title: str, description: str) -> bool:
    """Emit a non-pattern document with a simple title/description header."""
    if not src.exists():
        logger.warning("Skipping %s: not found", src)
        return False

    text = _read_source(src)
    if text is None:
        return False

    body = strip_leading_heading(text)
    body = rewrite_cross_links(body, source_category=None)
    header = _frontmatter([f"title: {_quote(title)}", f"description: {_quote(description)}"])
    _write(dest, header + body)
    return True


def process_stack(root: Path, docs_dir: Path, name: str) -> Path | None:
    src = root / "stacks" / name / "README.md"
    if not src.exists():
        return None
    label = STACK_LABELS.get(name, name)
    dest = docs_dir / "stacks" / f"{name}.md"
    title = f"Stack: {label}"
    if not process_top_level_doc(src, dest, title, f"Deployment configuration for {label}"):
        return None
    return dest


def extract_version_matrix(root: Path, docs_dir: Path) -> Path | None:
    """Copy the README's Version Matrix section into ``reference/``."""
    readme = root / "README.md"
    if not readme.exists():
        return None

    content = _read_source(readme)
    if content is None:
        return None

    start = content.find(VERSION_MATRIX_START)
    end = content.find(VERSION_MATRIX_END)
    if start == -1 or end == -1:
        logger.warning("Could not extract Version Matrix from %s", readme)
        return None

    section = rewrite_cross_links(content[start:end].strip(), source_category=None)
    header = _frontmatter(
        [
            f"title: {_quote('Version Matrix')}",
            f"description: {_quote('Which patterns work with which OpenClaw version')}",
        ]
    )
    dest = docs_dir / "reference" / "version-matrix.md"
    _write(dest, header + section)
    return dest


def write_pattern_index(patterns: Iterable[PatternMetadata], public_dir: Path) -> Path:
    """Serialize parsed patterns as a JSON array of ``PatternIndexEntry``."""
    entries = [PatternIndexEntry.from_metadata(meta).to_json_dict() for meta in patterns]
    path = public_dir / INDEX_FILENAME
    _write(path, json.dumps(entries, indent=2, ensure_ascii=False) + "\n")
    return path


def clean_generated_dirs(docs_dir: Path) -> None:
    """Remove previous output so renamed or deleted sources leave no stale pages."""
    for name in GENERATED_DIRS:
        target = docs_dir / name
        if target.exists():
            shutil.rmtree(target)
    # Top-level docs written outside the generated dirs.
    for _, dest_name, _, _ in TOP_LEVEL_DOCS:
        if Path(dest_name).parts[0] in GENERATED_DIRS:
            continue
        (docs_dir / dest_name).unlink(missing_ok=True)


def _unknown_category_dirs(patterns_dir: Path) -> list[Path]:
    return sorted(
        child for child in patterns_dir.iterdir() if child.is_dir() and child.name not in CATEGORIES
    )


def build_site(
    settings: BuildSettings,
    progress_callback: Callable[[str], None] | None = None,
) -> BuildReport:
    """Run the whole content pipeline once.

    Categories are walked in their fixed order and files in sorted order, so
    the output for an unchanged corpus is byte-identical between runs.

    Raises:
        CorpusNotFoundError: If ``settings.patterns_dir`` is missing.
    """
    patterns_dir = settings.patterns_dir
    if not patterns_dir.is_dir():
        raise CorpusNotFoundError(f"Pattern corpus not found: {patterns_dir}")

    report = BuildReport()
    docs_dir = settings.docs_dir
    clean_generated_dirs(docs_dir)

    for extra in _unknown_category_dirs(patterns_dir):
        logger.warning("Ignoring %s: %r is not a known category", extra, extra.name)

    for category in CATEGORIES:
        category_dir = patterns_dir / category
        if not category_dir.is_dir():
            continue
        for path in sorted(category_dir.glob("*.md")):
            meta = process_pattern(path, category, docs_dir)
            if meta is None:
                report.skipped.append(str(path))
                continue
            report.patterns.append(meta)
            if progress_callback:
                progress_callback(f"{category}/{meta.slug} -> {meta.title}")

    for src_name, dest_name, title, description in TOP_LEVEL_DOCS:
        dest = docs_dir / dest_name
        if process_top_level_doc(settings.root / src_name, dest, title, description):
            report.extra_docs.append(dest)

    for stack in STACK_LABELS:
        dest = process_stack(settings.root, docs_dir, stack)
        if dest:
            report.extra_docs.append(dest)

    matrix = extract_version_matrix(settings.root, docs_dir)
    if matrix:
        report.extra_docs.append(matrix)

    report.index_path = write_pattern_index(report.patterns, settings.public_dir)
    return report
