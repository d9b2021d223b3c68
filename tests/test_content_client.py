from __future__ import annotations

import asyncio
import json

import httpx

from conftest import FakeContentApi, raw_item
from opportunity_feed.services.content_client import ContentClient


def test_fetch_promoted_is_public_and_limited(fake_api: FakeContentApi) -> None:
    fake_api.promoted = [raw_item("a"), raw_item("b")]

    result = asyncio.run(fake_api.client().fetch_promoted("jobs", limit=10))

    assert result.ok
    assert result.source == "promoted"
    assert [item.id for item in result.items] == ["a", "b"]
    request = fake_api.requests[0]
    assert request.url.path == "/api/promoted/jobs"
    assert request.url.params["limit"] == "10"
    assert "authorization" not in request.headers


def test_fetch_recommended_sends_bearer_token(fake_api: FakeContentApi) -> None:
    fake_api.recommended = [raw_item("c")]

    result = asyncio.run(fake_api.client().fetch_recommended("jobs", token="tok-123", limit=20))

    assert result.ok
    assert fake_api.requests[0].url.path == "/api/recommended/jobs"
    assert fake_api.requests[0].headers["authorization"] == "Bearer tok-123"


def test_fetch_regular_passes_offset_and_reads_total(fake_api: FakeContentApi) -> None:
    fake_api.regular_pages[40] = [raw_item("x")]
    fake_api.total_count = 87

    result = asyncio.run(fake_api.client().fetch_regular("jobs", limit=20, offset=40))

    assert result.ok
    assert result.total_count == 87
    assert [item.id for item in result.items] == ["x"]
    params = fake_api.requests[0].url.params
    assert params["limit"] == "20"
    assert params["offset"] == "40"


def test_error_status_becomes_failed_result(fake_api: FakeContentApi) -> None:
    fake_api.failures["promoted"] = 503

    result = asyncio.run(fake_api.client().fetch_promoted("jobs", limit=10))

    assert not result.ok
    assert result.items == []
    assert result.reason == "http_status_503"


def test_unsuccessful_body_becomes_failed_result(fake_api: FakeContentApi) -> None:
    fake_api.failures["regular"] = "unsuccessful"

    result = asyncio.run(fake_api.client().fetch_regular("jobs", limit=20, offset=0))

    assert not result.ok
    assert result.reason is not None and "source disabled" in result.reason


def test_transport_error_and_bad_json_do_not_raise(fake_api: FakeContentApi) -> None:
    fake_api.failures["recommended"] = "transport"
    fake_api.failures["promoted"] = "not_json"
    client = fake_api.client()

    async def run() -> tuple:
        return (
            await client.fetch_recommended("jobs", token="t", limit=5),
            await client.fetch_promoted("jobs", limit=5),
        )

    recommended, promoted = asyncio.run(run())

    assert not recommended.ok
    assert recommended.reason == "transport_error: ConnectError"
    assert not promoted.ok
    assert promoted.reason == "invalid_json"


def test_malformed_items_are_dropped_not_fatal(fake_api: FakeContentApi) -> None:
    fake_api.regular_pages[0] = [raw_item("a"), {"title": "no id"}, raw_item("b")]

    result = asyncio.run(fake_api.client().fetch_regular("jobs", limit=20, offset=0))

    assert result.ok
    assert [item.id for item in result.items] == ["a", "b"]


def test_track_engagement_posts_view_event(fake_api: FakeContentApi) -> None:
    ok = asyncio.run(fake_api.client().track_engagement("job", "a", "view", token="tok"))

    assert ok is True
    assert fake_api.engagements[0]["authorization"] == "Bearer tok"
    assert json.loads(fake_api.engagements[0]["body"]) == {
        "contentType": "job",
        "contentId": "a",
        "action": "view",
    }


def test_track_engagement_reports_rejection(fake_api: FakeContentApi) -> None:
    fake_api.failures["engagement"] = 401
    ok = asyncio.run(fake_api.client().track_engagement("job", "a", "view", token="expired"))
    assert ok is False


def test_client_without_injected_transport_uses_configured_timeout(monkeypatch) -> None:
    captured: dict = {}

    class FakeAsyncClient:
        async def __aenter__(self) -> "FakeAsyncClient":
            return self

        async def __aexit__(self, exc_type, exc, tb) -> None:
            return None

        async def request(self, method: str, url: str, **kwargs) -> httpx.Response:
            captured["url"] = url
            request = httpx.Request(method, url, params=kwargs.get("params"))
            return httpx.Response(200, json={"success": True, "data": {"events": []}}, request=request)

    def fake_async_client(*args, **kwargs) -> FakeAsyncClient:
        captured.update(kwargs)
        return FakeAsyncClient()

    monkeypatch.setattr(httpx, "AsyncClient", fake_async_client)
    client = ContentClient("http://backend.test/", timeout_seconds=3.5)
    result = asyncio.run(client.fetch_promoted("events", limit=3))

    assert result.ok
    assert captured["timeout"] == 3.5
    assert captured["url"] == "http://backend.test/api/promoted/events"
