from __future__ import annotations

import asyncio
from typing import Awaitable, Callable

import httpx
import pytest

from services.api_gateway.app.aggregation import DocumentFetcher

from .factories import descriptor, op, openapi_doc

Handler = Callable[[httpx.Request], Awaitable[httpx.Response]]


def _transport(handlers: dict[str, Handler], calls: list[str] | None = None) -> httpx.MockTransport:
    async def dispatch(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append(request.url.host)
        return await handlers[request.url.host](request)

    return httpx.MockTransport(dispatch)


def _ok(document: dict) -> Handler:
    async def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=document)

    return handler


def _slow(seconds: float) -> Handler:
    async def handler(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(seconds)
        return httpx.Response(200, json=openapi_doc({}))

    return handler


@pytest.mark.asyncio
async def test_fetch_parses_the_service_document():
    calls: list[str] = []
    fetcher = DocumentFetcher(
        transport=_transport({"task-service": _ok(openapi_doc({"/api/tasks": {"get": op("list")}}))}, calls)
    )
    result = await fetcher.fetch(descriptor("task"))
    assert result.ok
    assert ("get", "/api/tasks") in result.document.operations
    assert calls == ["task-service"]


@pytest.mark.asyncio
async def test_non_success_status_becomes_fetch_error():
    async def unavailable(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, text="starting")

    fetcher = DocumentFetcher(transport=_transport({"task-service": unavailable}))
    result = await fetcher.fetch(descriptor("task"))
    assert not result.ok
    assert result.error.service_id == "task"
    assert "503" in result.error.reason


@pytest.mark.asyncio
async def test_unparseable_body_becomes_fetch_error():
    async def html(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>Swagger UI</html>")

    async def wrong_shape(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=["not", "a", "document"])

    fetcher = DocumentFetcher(transport=_transport({"a-service": html, "b-service": wrong_shape}))
    first, second = await fetcher.fetch_all([descriptor("a"), descriptor("b")])
    assert "malformed" in first.error.reason
    assert "malformed" in second.error.reason


@pytest.mark.asyncio
async def test_connection_failure_becomes_fetch_error():
    async def refused(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    fetcher = DocumentFetcher(transport=_transport({"admin-service": refused}))
    result = await fetcher.fetch(descriptor("admin"))
    assert not result.ok
    assert "ConnectError" in result.error.reason


@pytest.mark.asyncio
async def test_timeout_is_enforced_per_fetch():
    fetcher = DocumentFetcher(timeout=0.05, transport=_transport({"slow-service": _slow(2.0)}))
    result = await fetcher.fetch(descriptor("slow"))
    assert not result.ok
    assert "timed out" in result.error.reason


@pytest.mark.asyncio
async def test_fetch_all_runs_concurrently_and_keeps_registry_order():
    handlers = {
        "slow-service": _slow(2.0),
        "fast-service": _ok(openapi_doc({"/api/x": {"get": op("x")}})),
        "other-service": _ok(openapi_doc({"/api/y": {"get": op("y")}})),
    }
    fetcher = DocumentFetcher(timeout=0.2, transport=_transport(handlers))
    loop = asyncio.get_running_loop()
    started = loop.time()
    results = await fetcher.fetch_all([descriptor("slow"), descriptor("fast"), descriptor("other")])
    elapsed = loop.time() - started

    assert [r.descriptor.service_id for r in results] == ["slow", "fast", "other"]
    assert [r.ok for r in results] == [False, True, True]
    # Bounded by the single slow fetch's own deadline, not the sum of all fetches.
    assert elapsed < 1.0
    assert results[1].elapsed_seconds < 0.2


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body",
    [
        {"paths": {}, "tags": 5},
        {"paths": {"/api/x": {"parameters": 5, "get": {}}}},
        {"paths": {"/api/x": {"get": {"tags": 7}}}},
    ],
)
async def test_wrongly_typed_fields_become_fetch_errors(body):
    fetcher = DocumentFetcher(transport=_transport({"bad-service": _ok(body)}))
    result = await fetcher.fetch(descriptor("bad"))
    assert not result.ok
    assert result.error.service_id == "bad"
    assert result.error.reason.startswith("malformed document:")


@pytest.mark.asyncio
async def test_pathologically_nested_body_becomes_fetch_error():
    depth = 100_000

    async def nested(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"[" * depth + b"]" * depth, headers={"content-type": "application/json"})

    fetcher = DocumentFetcher(transport=_transport({"deep-service": nested, "fast-service": _ok(openapi_doc({}))}))
    deep, fast = await fetcher.fetch_all([descriptor("deep"), descriptor("fast")])
    assert not deep.ok
    assert "malformed document" in deep.error.reason
    assert fast.ok
