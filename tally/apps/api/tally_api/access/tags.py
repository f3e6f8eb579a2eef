"""Closed tag vocabulary. Unknown tags are dropped, never rejected."""

from typing import Iterable, Optional

TAG_VOCABULARY: frozenset[str] = frozenset(
    {
        "meeting",
        "sync",
        "standup",
        "daily",
        "development",
        "design",
        "review",
        "research",
        "planning",
        "support",
        "testing",
        "documentation",
        "admin",
        "bug",
        "feature",
    }
)


def filter_valid_tags(tags: Optional[Iterable[str]]) -> list[str]:
    """Keep vocabulary tags, normalized to lower case, first occurrence order."""
    if not tags:
        return []
    result: list[str] = []
    for tag in tags:
        if not isinstance(tag, str):
            continue
        normalized = tag.strip().lower()
        if normalized in TAG_VOCABULARY and normalized not in result:
            result.append(normalized)
    return result
