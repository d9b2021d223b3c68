from __future__ import annotations

from collections.abc import Sequence

from opportunity_feed.schemas.content import ContentItem


def normalize_query(query: str | None) -> str:
    return (query or "").strip().casefold()


def matches_query(item: ContentItem, needle: str) -> bool:
    if not needle:
        return True
    haystack = item.searchable_fields()
    token = item.paid_token()
    if token is not None:
        haystack.append(token)
    return any(needle in value.casefold() for value in haystack if value)


def apply_text_filter(feed: Sequence[ContentItem], query: str | None) -> list[ContentItem]:
    needle = normalize_query(query)
    if not needle:
        return list(feed)
    return [item for item in feed if matches_query(item, needle)]
