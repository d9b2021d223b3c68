from __future__ import annotations

import asyncio
from collections.abc import Iterator
from typing import Any

import httpx
import pytest

from opportunity_feed.services.content_client import ContentClient

BASE_URL = "http://backend.test"


def raw_item(item_id: str, **fields: Any) -> dict[str, Any]:
    fields.setdefault("title", f"Item {item_id}")
    return {"_id": item_id, **fields}


class FakeContentApi:
    """In-memory stand-in for the content backend, served through httpx.MockTransport."""

    def __init__(self, content_type: str = "jobs") -> None:
        self.content_type = content_type
        self.promoted: list[dict[str, Any]] = []
        self.recommended: list[dict[str, Any]] = []
        self.regular_pages: dict[int, list[dict[str, Any]]] = {}
        self.total_count: int | None = None
        self.failures: dict[str, Any] = {}
        self.requests: list[httpx.Request] = []
        self.engagements: list[dict[str, Any]] = []
        self.regular_delay = 0.0
        self.regular_delay_queue: list[float] = []
        self.concurrency_gate: int | None = None
        self._arrived = 0
        self._gate: asyncio.Event | None = None
        self._http_clients: list[httpx.AsyncClient] = []

    def source_of(self, request: httpx.Request) -> str:
        path = request.url.path
        if path == "/api/recommended/engagement":
            return "engagement"
        if path.startswith("/api/promoted/"):
            return "promoted"
        if path.startswith("/api/recommended/"):
            return "recommended"
        return "regular"

    def requests_for(self, source: str) -> list[httpx.Request]:
        return [request for request in self.requests if self.source_of(request) == source]

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        source = self.source_of(request)

        if self.concurrency_gate is not None:
            if self._gate is None:
                self._gate = asyncio.Event()
            self._arrived += 1
            if self._arrived >= self.concurrency_gate:
                self._gate.set()
            await asyncio.wait_for(self._gate.wait(), timeout=1.0)

        if source == "regular":
            delay = self.regular_delay_queue.pop(0) if self.regular_delay_queue else self.regular_delay
            if delay:
                await asyncio.sleep(delay)

        failure = self.failures.get(source)
        if failure == "transport":
            raise httpx.ConnectError("connection refused", request=request)
        if failure == "unsuccessful":
            return httpx.Response(200, json={"success": False, "message": "source disabled"}, request=request)
        if failure == "not_json":
            return httpx.Response(200, text="<html>oops</html>", request=request)
        if isinstance(failure, int):
            return httpx.Response(failure, json={"success": False, "message": "error"}, request=request)

        if source == "engagement":
            self.engagements.append(
                {"authorization": request.headers.get("authorization"), "body": request.content.decode()}
            )
            return httpx.Response(200, json={"success": True, "message": "tracked"}, request=request)

        if source == "promoted":
            items = self.promoted
        elif source == "recommended":
            items = self.recommended
        else:
            offset = int(request.url.params.get("offset", "0"))
            items = self.regular_pages.get(offset, [])

        data: dict[str, Any] = {self.content_type: items}
        if source == "regular" and self.total_count is not None:
            data["totalCount"] = self.total_count
        return httpx.Response(200, json={"success": True, "data": data}, request=request)

    def client(self) -> ContentClient:
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(self.handler))
        self._http_clients.append(http_client)
        return ContentClient(BASE_URL, client=http_client)

    async def aclose(self) -> None:
        for http_client in self._http_clients:
            await http_client.aclose()
        self._http_clients.clear()


@pytest.fixture()
def fake_api() -> Iterator[FakeContentApi]:
    api = FakeContentApi("jobs")
    yield api
    asyncio.run(api.aclose())
