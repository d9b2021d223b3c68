from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from opportunity_feed.schemas.content import ContentItem, SourceResult


@dataclass(slots=True)
class MergeOutcome:
    items: list[ContentItem]
    total_count: int
    regular_ok: bool
    promoted_count: int
    recommended_count: int
    regular_count: int


def merge_result_sets(
    promoted: Sequence[ContentItem],
    recommended: Sequence[ContentItem],
    regular: Sequence[ContentItem],
) -> list[ContentItem]:
    """Concatenate the three sources by priority, keeping the first occurrence of each id."""
    seen: set[str] = set()
    merged: list[ContentItem] = []
    for source in (promoted, recommended, regular):
        merged.extend(_take_unseen(source, seen))
    return merged


def dedupe_against(existing: Iterable[ContentItem], incoming: Sequence[ContentItem]) -> list[ContentItem]:
    seen = {item.id for item in existing}
    return _take_unseen(incoming, seen)


def combine_sources(
    promoted: SourceResult,
    recommended: SourceResult | None,
    regular: SourceResult,
) -> MergeOutcome:
    promoted_items = promoted.items if promoted.ok else []
    recommended_items = recommended.items if recommended is not None and recommended.ok else []
    regular_items = regular.items if regular.ok else []

    merged = merge_result_sets(promoted_items, recommended_items, regular_items)
    if regular.ok and regular.total_count is not None:
        total_count = regular.total_count
    else:
        total_count = len(regular_items)

    return MergeOutcome(
        items=merged,
        total_count=total_count,
        regular_ok=regular.ok,
        promoted_count=len(promoted_items),
        recommended_count=len(recommended_items),
        regular_count=len(regular_items),
    )


def _take_unseen(items: Iterable[ContentItem], seen: set[str]) -> list[ContentItem]:
    taken: list[ContentItem] = []
    for item in items:
        if item.id in seen:
            continue
        seen.add(item.id)
        taken.append(item)
    return taken
