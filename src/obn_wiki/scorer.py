from __future__ import annotations

from collections.abc import Sequence

from obn_wiki.models import PatternIndexEntry

STOP_WORDS = frozenset(
    {"the", "and", "for", "how", "what", "why", "can", "does", "with", "this", "that", "from"}
)

MIN_TERM_LENGTH = 3

TITLE_WEIGHT = 10
CATEGORY_WEIGHT = 8
DESCRIPTION_WEIGHT = 5
PROBLEM_WEIGHT = 3
ANYWHERE_WEIGHT = 1

DEFAULT_TOP_K = 5


def tokenize_query(query: str) -> list[str]:
    terms = query.lower().split()
    return [term for term in terms if len(term) >= MIN_TERM_LENGTH and term not in STOP_WORDS]


def score_entry(entry: PatternIndexEntry, terms: Sequence[str]) -> int:
    """Sum tiered keyword weights for ``terms`` against one index entry.

    Tiers are additive: a term found in the title also counts toward the
    description, problem statement, and anywhere tiers when it appears there.
    """
    title = entry.title.lower()
    category = entry.category.lower()
    label = entry.category_label.lower()
    description = entry.description.lower()
    problem = entry.problem_statement.lower()
    search_text = " ".join([title, category, label, description, problem])

    score = 0
    for term in terms:
        if term in title:
            score += TITLE_WEIGHT
        if term == category or term == label:
            score += CATEGORY_WEIGHT
        if term in description:
            score += DESCRIPTION_WEIGHT
        if term in problem:
            score += PROBLEM_WEIGHT
        if term in search_text:
            score += ANYWHERE_WEIGHT
    return score


def find_relevant_patterns(
    query: str,
    entries: Sequence[PatternIndexEntry],
    top_k: int = DEFAULT_TOP_K,
) -> list[PatternIndexEntry]:
    """Return up to ``top_k`` entries with a positive score, best first.

    Ties keep index order because ``sorted`` is stable.
    """
    terms = tokenize_query(query)
    if not terms:
        return []

    scored = [(score_entry(entry, terms), entry) for entry in entries]
    matched = [item for item in scored if item[0] > 0]
    ranked = sorted(matched, key=lambda item: item[0], reverse=True)
    return [entry for _, entry in ranked[:top_k]]
