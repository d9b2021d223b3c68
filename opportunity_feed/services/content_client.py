from __future__ import annotations

import logging
from typing import Any

import httpx
from opentelemetry import trace
from pydantic import ValidationError

from opportunity_feed.schemas.content import (
    ContentEnvelope,
    ContentKind,
    ContentType,
    SourceName,
    SourceResult,
    parse_items,
    require_content_type,
)

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class ContentClient:
    """Read-side client for the marketplace content API.

    Every fetch resolves to a ``SourceResult``; transport errors, error statuses
    and ``success: false`` bodies become failed results instead of exceptions.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout_seconds: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._client = client

    async def fetch_promoted(self, content_type: ContentType, *, limit: int) -> SourceResult:
        return await self._fetch_source(
            "promoted",
            content_type,
            f"/api/promoted/{content_type}",
            params={"limit": limit},
        )

    async def fetch_recommended(self, content_type: ContentType, *, token: str, limit: int) -> SourceResult:
        return await self._fetch_source(
            "recommended",
            content_type,
            f"/api/recommended/{content_type}",
            params={"limit": limit},
            headers=_bearer(token),
        )

    async def fetch_regular(self, content_type: ContentType, *, limit: int, offset: int) -> SourceResult:
        return await self._fetch_source(
            "regular",
            content_type,
            f"/api/{content_type}",
            params={"limit": limit, "offset": offset},
        )

    async def track_engagement(
        self,
        content_kind: ContentKind,
        content_id: str,
        action: str,
        *,
        token: str,
    ) -> bool:
        payload = {"contentType": content_kind, "contentId": content_id, "action": action}
        try:
            response = await self._request(
                "POST",
                "/api/recommended/engagement",
                json=payload,
                headers=_bearer(token),
            )
        except httpx.HTTPError as exc:
            logger.warning("engagement tracking failed content_id=%s action=%s: %s", content_id, action, exc)
            return False
        if response.is_error:
            logger.warning(
                "engagement tracking rejected content_id=%s action=%s status=%s",
                content_id,
                action,
                response.status_code,
            )
            return False
        return True

    async def _fetch_source(
        self,
        source: SourceName,
        content_type: ContentType,
        path: str,
        *,
        params: dict[str, Any],
        headers: dict[str, str] | None = None,
    ) -> SourceResult:
        require_content_type(content_type)
        with tracer.start_as_current_span("feed.fetch_source") as span:
            span.set_attribute("feed.source", source)
            span.set_attribute("feed.content_type", content_type)
            result = await self._load(source, content_type, path, params=params, headers=headers)
            span.set_attribute("feed.source_ok", result.ok)
            span.set_attribute("feed.item_count", len(result.items))

        if not result.ok:
            logger.warning(
                "content source unavailable source=%s content_type=%s reason=%s",
                source,
                content_type,
                result.reason,
            )
        return result

    async def _load(
        self,
        source: SourceName,
        content_type: ContentType,
        path: str,
        *,
        params: dict[str, Any],
        headers: dict[str, str] | None,
    ) -> SourceResult:
        try:
            response = await self._request("GET", path, params=params, headers=headers)
        except httpx.HTTPError as exc:
            return SourceResult.failed(source, f"transport_error: {exc.__class__.__name__}")

        if response.is_error:
            return SourceResult.failed(source, f"http_status_{response.status_code}")

        try:
            payload = response.json()
        except ValueError:
            return SourceResult.failed(source, "invalid_json")
        if not isinstance(payload, dict):
            return SourceResult.failed(source, "invalid_body")

        try:
            envelope = ContentEnvelope.model_validate(payload)
        except ValidationError:
            return SourceResult.failed(source, "invalid_body")
        if not envelope.success:
            return SourceResult.failed(source, f"unsuccessful_response: {envelope.message or 'no message'}")

        items, dropped = parse_items(content_type, envelope.raw_items_for(content_type))
        if dropped:
            logger.warning(
                "dropped malformed items source=%s content_type=%s dropped=%s",
                source,
                content_type,
                dropped,
            )
        return SourceResult.loaded(source, items, total_count=envelope.total_count)

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        url = f"{self.base_url}{path}"
        if self._client is not None:
            return await self._client.request(method, url, params=params, json=json, headers=headers)
        async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
            return await client.request(method, url, params=params, json=json, headers=headers)


def _bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}
