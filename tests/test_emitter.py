from __future__ import annotations

import json
import logging

import pytest

from obn_wiki.config import BuildSettings
from obn_wiki.emitter import CorpusNotFoundError, build_site, generate_frontmatter
from obn_wiki.parser import parse_pattern_text


def _snapshot(root) -> dict[str, bytes]:
    return {
        str(path.relative_to(root)): path.read_bytes()
        for path in sorted(root.rglob("*"))
        if path.is_file()
    }


def test_build_site_given_corpus_when_built_then_pages_and_index_are_written(corpus_root) -> None:
    # Given
    settings = BuildSettings(root=corpus_root)

    # When
    report = build_site(settings)

    # Then
    docs = settings.docs_dir
    assert [meta.slug for meta in report.patterns] == [
        "compaction-strategy",
        "gateway-hardening",
        "cost-optimization",
    ]
    page = (docs / "patterns" / "security" / "gateway-hardening.md").read_text(encoding="utf-8")
    assert page.startswith('---\ntitle: "Gateway Hardening"\n')
    assert "# Pattern:" not in page
    assert "[Compaction](/patterns/memory/compaction-strategy/)" in page
    assert "[Local](/patterns/security/prompt-injection/)" in page
    assert "# [Not a link](../memory/compaction-strategy.md)" in page
    assert (docs / "contributing.md").exists()
    assert "(/patterns/security/gateway-hardening/)" in (docs / "contributing.md").read_text(encoding="utf-8")
    assert (docs / "stacks" / "docker.md").read_text(encoding="utf-8").startswith('---\ntitle: "Stack: Docker"')
    assert (docs / "reference" / "version-matrix.md").exists()
    assert report.index_path == settings.index_path


def test_build_site_given_untitled_document_when_built_then_others_survive_and_warning_logged(
    corpus_root,
    caplog,
) -> None:
    # Given
    settings = BuildSettings(root=corpus_root)

    # When
    with caplog.at_level(logging.WARNING):
        report = build_site(settings)

    # Then
    assert len(report.patterns) == 3
    assert any("untitled-notes.md" in path for path in report.skipped)
    assert not (settings.docs_dir / "patterns" / "memory" / "untitled-notes.md").exists()
    assert "untitled-notes.md" in caplog.text
    assert "'misc' is not a known category" in caplog.text


def test_build_site_given_unchanged_corpus_when_built_twice_then_output_is_byte_identical(corpus_root) -> None:
    # Given
    settings = BuildSettings(root=corpus_root)
    build_site(settings)
    first = _snapshot(corpus_root / "site")

    # When
    build_site(settings)
    second = _snapshot(corpus_root / "site")

    # Then
    assert first == second


def test_build_site_given_removed_pattern_when_rebuilt_then_stale_page_is_deleted(corpus_root) -> None:
    # Given
    settings = BuildSettings(root=corpus_root)
    build_site(settings)
    (corpus_root / "patterns" / "operations" / "cost-optimization.md").unlink()

    # When
    report = build_site(settings)

    # Then
    assert not (settings.docs_dir / "patterns" / "operations" / "cost-optimization.md").exists()
    assert "cost-optimization" not in [meta.slug for meta in report.patterns]


def test_build_site_given_removed_contributing_doc_when_rebuilt_then_stale_root_page_is_deleted(
    corpus_root,
) -> None:
    # Given
    settings = BuildSettings(root=corpus_root)
    build_site(settings)
    assert (settings.docs_dir / "contributing.md").exists()
    (corpus_root / "CONTRIBUTING.md").unlink()

    # When
    report = build_site(settings)

    # Then
    assert not (settings.docs_dir / "contributing.md").exists()
    assert settings.docs_dir / "contributing.md" not in report.extra_docs


def test_build_site_given_non_utf8_extra_docs_when_built_then_they_are_skipped_and_index_written(
    corpus_root,
    caplog,
) -> None:
    # Given
    settings = BuildSettings(root=corpus_root)
    bad_bytes = b"# Broken\n\xff\xfe bad bytes\n"
    (corpus_root / "CONTRIBUTING.md").write_bytes(bad_bytes)
    (corpus_root / "stacks" / "docker" / "README.md").write_bytes(bad_bytes)
    (corpus_root / "README.md").write_bytes(b"## Version Matrix\n\xff\n## Pattern Categories\n")

    # When
    with caplog.at_level(logging.WARNING, logger="obn_wiki.emitter"):
        report = build_site(settings)

    # Then
    assert report.extra_docs == []
    assert not (settings.docs_dir / "contributing.md").exists()
    assert not (settings.docs_dir / "stacks" / "docker.md").exists()
    assert not (settings.docs_dir / "reference" / "version-matrix.md").exists()
    assert len(report.patterns) == 3
    assert json.loads(settings.index_path.read_text(encoding="utf-8"))
    assert sum("unreadable" in record.getMessage() for record in caplog.records) == 3


def test_build_site_given_corpus_when_built_then_index_entries_match_schema(corpus_root) -> None:
    # Given
    settings = BuildSettings(root=corpus_root)

    # When
    build_site(settings)
    entries = json.loads(settings.index_path.read_text(encoding="utf-8"))

    # Then
    assert len(entries) == 3
    for entry in entries:
        assert list(entry) == [
            "title",
            "category",
            "categoryLabel",
            "slug",
            "status",
            "version",
            "description",
            "problemStatement",
            "url",
        ]
        assert all(entry[key] for key in entry)
        assert entry["url"] == f"/patterns/{entry['category']}/{entry['slug']}/"
        assert len(entry["problemStatement"]) <= 500
    gateway = next(entry for entry in entries if entry["slug"] == "gateway-hardening")
    assert gateway["categoryLabel"] == "Security"
    assert gateway["status"] == "stable"


def test_build_site_given_missing_corpus_when_built_then_fatal_error_is_raised(tmp_path) -> None:
    # Given
    settings = BuildSettings(root=tmp_path / "empty")

    # When
    with pytest.raises(CorpusNotFoundError):
        build_site(settings)

    # Then
    assert not settings.index_path.exists()


def test_generate_frontmatter_given_quotes_in_description_when_rendered_then_values_are_escaped() -> None:
    # Given
    meta = parse_pattern_text(
        '# Pattern: Quote "Test"\n\n## Problem\n\nSay "hi" first. Then more.\n',
        category="soul",
        source_path="quote-test.md",
    )
    assert meta is not None

    # When
    header = generate_frontmatter(meta)

    # Then
    assert header.splitlines() == [
        "---",
        'title: "Quote \\"Test\\""',
        'description: "Say \\"hi\\" first."',
        "category: soul",
        "status: tested",
        'version: "0.40+"',
        'lastValidated: "2026-02-13"',
        "sidebar:",
        "  badge:",
        '    text: "Tested"',
        '    variant: "success"',
        "---",
        "",
    ]
