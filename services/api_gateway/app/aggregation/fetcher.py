"""Concurrent retrieval of downstream API descriptions.

A failing service never fails the batch: connection errors, timeouts,
non-success statuses and unreadable bodies all come back as a ``FetchResult``
carrying a ``FetchError``. Each fetch has its own deadline, so the batch takes
as long as its slowest service and no longer than one timeout.
"""

from __future__ import annotations

import asyncio
from typing import Iterable

import httpx
from loguru import logger
from opentelemetry import trace

from ..metrics import TimedFetch
from .errors import DocumentParseError, FetchError
from .models import ApiDescription, FetchResult, ServiceDescriptor


class DocumentFetcher:
    def __init__(self, timeout: float = 5.0, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout),
            transport=self._transport,
            follow_redirects=True,
        )

    async def fetch_all(self, descriptors: Iterable[ServiceDescriptor]) -> list[FetchResult]:
        """Fetch every descriptor concurrently; results keep the input order."""
        descriptors = list(descriptors)
        async with self._client() as client:
            results = await asyncio.gather(*(self.fetch(d, client) for d in descriptors))
        succeeded = [r.descriptor.service_id for r in results if r.ok]
        failed = [r.descriptor.service_id for r in results if not r.ok]
        logger.info(f"Fetched {len(succeeded)}/{len(results)} API descriptions (failed: {', '.join(failed) or 'none'})")
        return list(results)

    async def fetch(self, descriptor: ServiceDescriptor, client: httpx.AsyncClient | None = None) -> FetchResult:
        if client is None:
            async with self._client() as owned:
                return await self.fetch(descriptor, owned)

        sid = descriptor.service_id
        document: ApiDescription | None = None
        error: FetchError | None = None
        tracer = trace.get_tracer(__name__)
        with tracer.start_as_current_span("docs.fetch") as span, TimedFetch(sid) as timer:
            span.set_attribute("gateway.service", sid)
            span.set_attribute("http.url", descriptor.document_url)
            try:
                document = await asyncio.wait_for(self._get_document(client, descriptor), timeout=self.timeout)
            except (asyncio.TimeoutError, httpx.TimeoutException):
                timer.outcome = "timeout"
                error = FetchError(sid, f"timed out after {self.timeout:g}s")
            except httpx.HTTPStatusError as exc:
                timer.outcome = "status"
                error = FetchError(sid, f"unexpected status {exc.response.status_code}")
            except (httpx.HTTPError, httpx.InvalidURL) as exc:
                timer.outcome = "connection"
                error = FetchError(sid, f"request failed: {exc.__class__.__name__}: {exc}")
            except DocumentParseError as exc:
                timer.outcome = "malformed"
                error = FetchError(sid, f"malformed document: {exc}")
            except (TypeError, ValueError, RecursionError) as exc:
                # Structure the parser does not check, e.g. deeply nested or oddly typed fields.
                timer.outcome = "malformed"
                error = FetchError(sid, f"malformed document: {exc.__class__.__name__}: {exc}")
            if error is not None:
                span.set_attribute("gateway.fetch_error", error.reason)

        if error is not None:
            logger.warning(f"Failed to fetch API description from {sid} at {descriptor.document_url}: {error.reason}")
            return FetchResult(descriptor=descriptor, error=error, elapsed_seconds=timer.elapsed)
        logger.info(f"Fetched API description from {sid}: {len(document.operations)} operations in {timer.elapsed * 1000:.1f}ms")
        return FetchResult(descriptor=descriptor, document=document, elapsed_seconds=timer.elapsed)

    async def _get_document(self, client: httpx.AsyncClient, descriptor: ServiceDescriptor) -> ApiDescription:
        logger.debug(f"Fetching API description from {descriptor.service_id} at {descriptor.document_url}")
        response = await client.get(descriptor.document_url, headers={"accept": "application/json"})
        response.raise_for_status()
        try:
            payload = response.json()
        except ValueError as exc:
            raise DocumentParseError(f"body is not valid JSON ({exc})") from exc
        return ApiDescription.from_payload(payload)
