from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass

from opentelemetry import trace

from opportunity_feed.feeds.merge import combine_sources
from opportunity_feed.feeds.pagination import ITEMS_PER_PAGE, PageOutcome, PaginationCursor, apply_page
from opportunity_feed.feeds.text_filter import apply_text_filter
from opportunity_feed.schemas.content import ContentItem, ContentType, SourceResult, require_content_type
from opportunity_feed.services.content_client import ContentClient

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

__all__ = ["InitialFeed", "ResultAggregator", "Viewer", "apply_text_filter"]


@dataclass(frozen=True, slots=True)
class Viewer:
    is_authenticated: bool = False
    token: str | None = None

    @property
    def can_personalize(self) -> bool:
        return self.is_authenticated and bool(self.token)


ANONYMOUS = Viewer()


@dataclass(slots=True)
class InitialFeed:
    items: list[ContentItem]
    total_count: int
    regular_ok: bool
    sources: dict[str, SourceResult]


class ResultAggregator:
    def __init__(
        self,
        client: ContentClient,
        content_type: ContentType,
        *,
        items_per_page: int = ITEMS_PER_PAGE,
        promoted_limit: int = 10,
        recommended_limit: int = 20,
    ) -> None:
        self.client = client
        self.content_type = require_content_type(content_type)
        self.items_per_page = items_per_page
        self.promoted_limit = promoted_limit
        self.recommended_limit = recommended_limit

    def new_cursor(self) -> PaginationCursor:
        return PaginationCursor(items_per_page=self.items_per_page)

    async def build_initial_feed(self, viewer: Viewer = ANONYMOUS) -> InitialFeed:
        with tracer.start_as_current_span("feed.build_initial") as span:
            span.set_attribute("feed.content_type", self.content_type)
            span.set_attribute("feed.personalized", viewer.can_personalize)

            promoted_call = self.client.fetch_promoted(self.content_type, limit=self.promoted_limit)
            regular_call = self.client.fetch_regular(self.content_type, limit=self.items_per_page, offset=0)
            recommended: SourceResult | None = None
            if viewer.can_personalize:
                assert viewer.token is not None
                promoted, recommended, regular = await asyncio.gather(
                    promoted_call,
                    self.client.fetch_recommended(
                        self.content_type,
                        token=viewer.token,
                        limit=self.recommended_limit,
                    ),
                    regular_call,
                )
            else:
                promoted, regular = await asyncio.gather(promoted_call, regular_call)

            outcome = combine_sources(promoted, recommended, regular)
            span.set_attribute("feed.item_count", len(outcome.items))

        logger.info(
            "feed built content_type=%s promoted=%s recommended=%s regular=%s merged=%s total=%s",
            self.content_type,
            outcome.promoted_count,
            outcome.recommended_count,
            outcome.regular_count,
            len(outcome.items),
            outcome.total_count,
        )
        sources = {"promoted": promoted, "regular": regular}
        if recommended is not None:
            sources["recommended"] = recommended
        return InitialFeed(
            items=outcome.items,
            total_count=outcome.total_count,
            regular_ok=outcome.regular_ok,
            sources=sources,
        )

    async def load_more(self, feed: Sequence[ContentItem], cursor: PaginationCursor) -> PageOutcome:
        if not cursor.has_more:
            return PageOutcome(items=list(feed), new_items=[], cursor=cursor, fetched=False)

        with tracer.start_as_current_span("feed.load_more") as span:
            span.set_attribute("feed.content_type", self.content_type)
            span.set_attribute("feed.page", cursor.current_page + 1)
            result = await self.client.fetch_regular(
                self.content_type,
                limit=cursor.items_per_page,
                offset=cursor.next_offset,
            )
            outcome = apply_page(feed, cursor, result)
            span.set_attribute("feed.new_item_count", len(outcome.new_items))

        if outcome.failed:
            logger.warning(
                "load more failed content_type=%s offset=%s; pagination left unchanged",
                self.content_type,
                cursor.next_offset,
            )
        elif not outcome.cursor.has_more:
            logger.info(
                "feed exhausted content_type=%s page=%s raw_items=%s",
                self.content_type,
                cursor.current_page,
                len(result.items),
            )
        return outcome
