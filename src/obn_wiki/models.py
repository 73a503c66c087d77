"""Pydantic models shared by the site build, the pattern index, and the chat client."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

CATEGORIES: tuple[str, ...] = (
    "soul",
    "agents",
    "memory",
    "context",
    "tools",
    "security",
    "operations",
    "gateway",
)

CATEGORY_LABELS: dict[str, str] = {
    "soul": "Soul",
    "agents": "Agents",
    "memory": "Memory",
    "context": "Context",
    "tools": "Tools",
    "security": "Security",
    "operations": "Operations",
    "gateway": "Gateway",
}

PatternStatus = Literal["draft", "tested", "stable", "deprecated"]
PATTERN_STATUSES: tuple[str, ...] = ("draft", "tested", "stable", "deprecated")

STATUS_BADGES: dict[str, dict[str, str]] = {
    "tested": {"text": "Tested", "variant": "success"},
    "stable": {"text": "Stable", "variant": "note"},
    "draft": {"text": "Draft", "variant": "caution"},
    "deprecated": {"text": "Deprecated", "variant": "danger"},
}

DEFAULT_STATUS = "tested"
DEFAULT_VERSION = "0.40+"
DEFAULT_LAST_VALIDATED = "2026-02-13"

DESCRIPTION_MAX_CHARS = 200
INDEX_PROBLEM_MAX_CHARS = 500


def pattern_url(category: str, slug: str) -> str:
    """Return the router path for a pattern page."""
    return f"/patterns/{category}/{slug}/"


class PatternMetadata(BaseModel):
    """Metadata extracted from one pattern document at build time."""

    title: str
    category: str
    status: PatternStatus = DEFAULT_STATUS
    version: str = DEFAULT_VERSION
    last_validated: str = DEFAULT_LAST_VALIDATED
    slug: str
    source_path: str
    problem_statement: str = ""
    description: str = ""
    layer_on_top_of: str | None = None
    known_issues: str | None = None
    see_also: str | None = None

    @property
    def url(self) -> str:
        return pattern_url(self.category, self.slug)


class PatternIndexEntry(BaseModel):
    """Slim projection of ``PatternMetadata`` written to ``pattern-index.json``."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    title: str
    category: str
    category_label: str = Field(alias="categoryLabel")
    slug: str
    status: str
    version: str
    description: str
    problem_statement: str = Field(alias="problemStatement")
    url: str

    @classmethod
    def from_metadata(cls, meta: PatternMetadata) -> PatternIndexEntry:
        return cls(
            title=meta.title,
            category=meta.category,
            category_label=CATEGORY_LABELS[meta.category],
            slug=meta.slug,
            status=meta.status,
            version=meta.version,
            description=meta.description,
            problem_statement=meta.problem_statement[:INDEX_PROBLEM_MAX_CHARS],
            url=meta.url,
        )

    def to_json_dict(self) -> dict[str, str]:
        """Return the wire shape with camelCase keys in declaration order."""
        return self.model_dump(mode="json", by_alias=True)


class ChatMessage(BaseModel):
    """One transcript entry; assistant content grows while a reply streams."""

    role: Literal["user", "assistant"]
    content: str = ""
