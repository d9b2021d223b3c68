from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from collections.abc import Sequence

from opportunity_feed.core.config import Settings, get_settings
from opportunity_feed.core.telemetry import (
    configure_feed_logging,
    setup_feed_telemetry,
    shutdown_feed_telemetry,
)
from opportunity_feed.feeds.aggregator import ResultAggregator, Viewer
from opportunity_feed.feeds.session import FeedStatus, ListingSession
from opportunity_feed.schemas.content import CONTENT_TYPES, ContentItem
from opportunity_feed.services.content_client import ContentClient

logger = logging.getLogger(__name__)


def build_session(settings: Settings, content_type: str, *, client: ContentClient | None = None) -> ListingSession:
    content_client = client or ContentClient(
        settings.api_base_url,
        timeout_seconds=settings.request_timeout_seconds,
    )
    aggregator = ResultAggregator(
        content_client,
        content_type,  # type: ignore[arg-type]
        items_per_page=settings.items_per_page,
        promoted_limit=settings.promoted_limit,
        recommended_limit=settings.recommended_limit,
    )
    viewer = Viewer(is_authenticated=bool(settings.access_token), token=settings.access_token)
    return ListingSession(aggregator, viewer=viewer)


def render_item(item: ContentItem) -> str:
    marker = "*" if item.is_promoted else "-"
    token = item.paid_token()
    suffix = f" [{token}]" if token else ""
    return f"{marker} {item.id} {item.title}{suffix}"


async def run_listing(
    session: ListingSession,
    *,
    extra_pages: int = 0,
    query: str | None = None,
) -> int:
    await session.refresh()
    if session.status is FeedStatus.FAILED:
        logger.error("initial load failed content_type=%s", session.content_type)
        print(f"Failed to load {session.content_type}.")
        return 1

    session.set_query(query)
    for _ in range(extra_pages):
        if not session.cursor.has_more:
            break
        await session.load_more()

    summary = session.summary()
    print(summary.label)
    for item in session.visible_items:
        print(render_item(item))
    if summary.empty_reason == "no_search_results":
        print(f'No {session.content_type} match "{summary.query}".')
    elif summary.empty_reason == "no_content":
        print(f"No {session.content_type} yet.")
    elif summary.show_end_of_results:
        print("End of results.")
    return 0


async def run(content_type: str, *, extra_pages: int, query: str | None) -> int:
    settings = get_settings()
    configure_feed_logging()
    telemetry_runtime = setup_feed_telemetry(settings)
    try:
        session = build_session(settings, content_type)
        return await run_listing(session, extra_pages=extra_pages, query=query)
    finally:
        shutdown_feed_telemetry(telemetry_runtime)


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Load a merged marketplace listing feed.")
    parser.add_argument("content_type", choices=CONTENT_TYPES, help="Listing to load")
    parser.add_argument(
        "--pages",
        type=int,
        default=0,
        help="Additional regular pages to load after the initial feed",
    )
    parser.add_argument("--query", default=None, help="Client-side text filter applied to the loaded feed")
    args = parser.parse_args(argv)
    if args.pages < 0:
        parser.error("--pages must be >= 0")
    return args


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    return asyncio.run(run(args.content_type, extra_pages=args.pages, query=args.query))


if __name__ == "__main__":
    sys.exit(main())
