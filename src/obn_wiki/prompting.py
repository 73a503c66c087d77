from __future__ import annotations

from collections.abc import Sequence

from obn_wiki.models import PatternIndexEntry

DEFAULT_CONTEXT_CHARS = 2000

NO_MATCH_MESSAGE = (
    "I couldn't find relevant patterns for that question. Try asking about security, "
    "memory, cost optimization, or other OpenClaw operational topics."
)


def _pattern_section(entry: PatternIndexEntry, content: str, char_cap: int) -> str:
    body = (content or entry.problem_statement)[:char_cap]
    return (
        f"### {entry.title} ({entry.category_label})\n"
        f"URL: {entry.url}\n"
        f"Version: {entry.version}\n\n"
        f"{body}"
    )


def build_system_prompt(
    relevant: Sequence[PatternIndexEntry],
    contents: Sequence[str],
    char_cap: int = DEFAULT_CONTEXT_CHARS,
) -> str:
    """Assemble the grounding prompt from retrieved patterns.

    ``contents`` may be shorter than ``relevant``; entries without fetched page
    text fall back to their indexed problem statement.
    """
    sections = [
        _pattern_section(entry, contents[idx] if idx < len(contents) else "", char_cap)
        for idx, entry in enumerate(relevant)
    ]
    pattern_context = "\n\n---\n\n".join(sections)

    return (
        "You are the OBN (OpenClaw Builder Network) assistant. "
        "You help operators run OpenClaw agents in production.\n"
        "\n"
        "RULES:\n"
        "- Answer questions using ONLY the pattern content provided below\n"
        "- Be concise: 2-4 sentences for simple questions, up to a paragraph for complex ones\n"
        "- Always reference specific patterns by name and include their URL path "
        '(e.g., "see [Pattern Name](/patterns/category/slug/)")\n'
        "- If the patterns don't cover the question, say so honestly\n"
        "- Never make up configuration values; only reference what's in the patterns\n"
        "- Format responses in markdown\n"
        "\n"
        "RELEVANT PATTERNS:\n"
        "\n"
        f"{pattern_context}"
    )
