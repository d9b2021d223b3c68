from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import logging

from opportunity_feed.feeds.aggregator import ANONYMOUS, ResultAggregator, Viewer
from opportunity_feed.feeds.pagination import PaginationCursor
from opportunity_feed.feeds.text_filter import apply_text_filter, normalize_query
from opportunity_feed.schemas.content import CONTENT_KINDS, ContentItem

logger = logging.getLogger(__name__)

_PLURAL_LABELS = {
    "jobs": ("job", "jobs"),
    "opportunities": ("opportunity", "opportunities"),
    "events": ("event", "events"),
    "resources": ("resource", "resources"),
}


class FeedStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    LOADING_MORE = "loading_more"
    EXHAUSTED = "exhausted"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class FeedSummary:
    status: FeedStatus
    shown: int
    loaded: int
    total: int
    query: str
    empty_reason: str | None
    show_end_of_results: bool
    label: str


class ListingSession:
    """State of one listing page: the loaded feed, its cursor and the active query.

    ``items`` is only ever replaced with a new tuple. A refresh starts a new
    feed generation and a query change a new query generation; an initial
    feed is dropped if another refresh started meanwhile, a page is dropped
    if either generation moved.
    """

    def __init__(self, aggregator: ResultAggregator, *, viewer: Viewer = ANONYMOUS) -> None:
        self.aggregator = aggregator
        self.viewer = viewer
        self.items: tuple[ContentItem, ...] = ()
        self.cursor: PaginationCursor = aggregator.new_cursor()
        self.query = ""
        self.total_count = 0
        self.status = FeedStatus.IDLE
        self._loading_more = False
        self._feed_generation = 0
        self._query_generation = 0
        self._loaded_through_page = 0
        self._viewed_ids: set[str] = set()

    @property
    def content_type(self) -> str:
        return self.aggregator.content_type

    @property
    def is_loading_more(self) -> bool:
        return self._loading_more

    @property
    def visible_items(self) -> list[ContentItem]:
        return apply_text_filter(self.items, self.query)

    async def refresh(self, viewer: Viewer | None = None) -> None:
        if viewer is not None:
            self.viewer = viewer
        self._feed_generation += 1
        generation = self._feed_generation
        self.status = FeedStatus.LOADING

        initial = await self.aggregator.build_initial_feed(self.viewer)
        if generation != self._feed_generation:
            logger.info("discarding stale initial feed content_type=%s", self.content_type)
            return

        self.items = tuple(initial.items)
        self.total_count = initial.total_count
        self.cursor = self.cursor.reset()
        self._loaded_through_page = 1 if initial.regular_ok else 0
        self._loading_more = False
        self.status = FeedStatus.READY if initial.regular_ok else FeedStatus.FAILED

    async def set_viewer(self, viewer: Viewer) -> bool:
        if viewer == self.viewer:
            return False
        logger.info(
            "viewer changed content_type=%s authenticated=%s; rebuilding feed",
            self.content_type,
            viewer.is_authenticated,
        )
        self._viewed_ids.clear()
        await self.refresh(viewer)
        return True

    async def load_more(self) -> list[ContentItem]:
        if self._loading_more or not self.cursor.has_more:
            return []
        if self.status is not FeedStatus.READY:
            return []

        self._loading_more = True
        previous_status = self.status
        self.status = FeedStatus.LOADING_MORE
        context = self._context()
        # Regular pages up to _loaded_through_page are already in the feed.
        cursor = self.cursor.resume_from(self._loaded_through_page)
        try:
            outcome = await self.aggregator.load_more(self.items, cursor)
        finally:
            if context == self._context():
                self._loading_more = False
                self.status = previous_status

        if context != self._context():
            logger.info("discarding stale page content_type=%s", self.content_type)
            return []
        if outcome.failed:
            return []

        self.items = tuple(outcome.items)
        self.cursor = outcome.cursor
        self._loaded_through_page = max(self._loaded_through_page, self.cursor.current_page)
        if not self.cursor.has_more:
            self.status = FeedStatus.EXHAUSTED
        return outcome.new_items

    def set_query(self, query: str | None) -> bool:
        normalized = (query or "").strip()
        if normalize_query(normalized) == normalize_query(self.query):
            self.query = normalized
            return False

        self.query = normalized
        self._query_generation += 1
        self._loading_more = False
        self.cursor = self.cursor.reset()
        if self.status in (FeedStatus.EXHAUSTED, FeedStatus.LOADING_MORE):
            self.status = FeedStatus.READY
        return True

    async def track_view(self, item_id: str) -> bool:
        if not self.viewer.can_personalize or item_id in self._viewed_ids:
            return False
        self._viewed_ids.add(item_id)
        assert self.viewer.token is not None
        return await self.aggregator.client.track_engagement(
            CONTENT_KINDS[self.aggregator.content_type],
            item_id,
            "view",
            token=self.viewer.token,
        )

    def summary(self) -> FeedSummary:
        visible = self.visible_items
        shown = len(visible)
        loaded = len(self.items)

        empty_reason: str | None = None
        if self.status is FeedStatus.FAILED and not self.items:
            empty_reason = "load_failed"
        elif shown == 0 and self.query and self.items:
            empty_reason = "no_search_results"
        elif shown == 0 and self.status not in (FeedStatus.IDLE, FeedStatus.LOADING):
            empty_reason = "no_content"

        show_end = not self.cursor.has_more and self._loaded_through_page > 1
        return FeedSummary(
            status=self.status,
            shown=shown,
            loaded=loaded,
            total=max(self.total_count, loaded),
            query=self.query,
            empty_reason=empty_reason,
            show_end_of_results=show_end,
            label=self._label(shown, loaded),
        )

    def _context(self) -> tuple[int, int]:
        return (self._feed_generation, self._query_generation)

    def _label(self, shown: int, loaded: int) -> str:
        if self.status in (FeedStatus.IDLE, FeedStatus.LOADING):
            return f"Loading {self.content_type}..."
        if self.query:
            noun = "result" if shown == 1 else "results"
            return f'Showing {shown} {noun} for "{self.query}"'
        total = max(self.total_count, loaded)
        singular, plural = _PLURAL_LABELS[self.content_type]
        return f"Showing {shown} of {total} {singular if total == 1 else plural}"
