from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, replace

from opportunity_feed.feeds.merge import dedupe_against
from opportunity_feed.schemas.content import ContentItem, SourceResult

ITEMS_PER_PAGE = 20


@dataclass(frozen=True, slots=True)
class PaginationCursor:
    current_page: int = 1
    has_more: bool = True
    items_per_page: int = ITEMS_PER_PAGE

    def __post_init__(self) -> None:
        if self.current_page < 1:
            raise ValueError(f"current_page must be >= 1, got {self.current_page}")
        if self.items_per_page < 1:
            raise ValueError(f"items_per_page must be >= 1, got {self.items_per_page}")

    @property
    def next_offset(self) -> int:
        return self.current_page * self.items_per_page

    def advance(self) -> PaginationCursor:
        return replace(self, current_page=self.current_page + 1)

    def exhausted(self) -> PaginationCursor:
        return replace(self, has_more=False)

    def resume_from(self, page: int) -> PaginationCursor:
        """Move forward to ``page`` when the cursor is behind it; never moves back."""
        if page <= self.current_page:
            return self
        return replace(self, current_page=page)

    def reset(self) -> PaginationCursor:
        return PaginationCursor(items_per_page=self.items_per_page)


@dataclass(slots=True)
class PageOutcome:
    items: list[ContentItem]
    new_items: list[ContentItem]
    cursor: PaginationCursor
    fetched: bool
    failed: bool = False


def apply_page(
    feed: Sequence[ContentItem],
    cursor: PaginationCursor,
    result: SourceResult,
) -> PageOutcome:
    """Fold one fetched regular page into the feed.

    The returned ``items`` is always a new list; ``feed`` is never mutated.
    A page made up entirely of already-shown ids ends pagination, as does an
    empty page. A failed fetch leaves the cursor untouched so the next trigger
    retries the same offset.
    """
    if not result.ok:
        return PageOutcome(items=list(feed), new_items=[], cursor=cursor, fetched=True, failed=True)

    if not result.items:
        return PageOutcome(items=list(feed), new_items=[], cursor=cursor.exhausted(), fetched=True)

    fresh = dedupe_against(feed, result.items)
    if not fresh:
        return PageOutcome(items=list(feed), new_items=[], cursor=cursor.exhausted(), fetched=True)

    return PageOutcome(
        items=[*feed, *fresh],
        new_items=fresh,
        cursor=cursor.advance(),
        fetched=True,
    )
