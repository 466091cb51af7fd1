"""Fetch -> transform -> merge, plus the gateway's own baseline document."""

from __future__ import annotations

import copy
from typing import Any, Callable

from fastapi import FastAPI

from .fetcher import DocumentFetcher
from .merger import DocumentMerger
from .models import AggregateDocument, ApiDescription, MergeWarning, ServiceDescriptor, ServiceOutcome
from .paths import PathTransformer
from .registry import ServiceRegistry

BEARER_SCHEME: dict[str, Any] = {
    "type": "http",
    "scheme": "bearer",
    "bearerFormat": "JWT",
    "description": "JWT Authorization header using the Bearer scheme. "
    "Obtain a token from POST /api/v1/auth/login and send it as 'Bearer <token>'.",
}


def gateway_baseline(app: FastAPI) -> Callable[[], dict[str, Any]]:
    """Return a provider of the gateway's own OpenAPI document.

    The gateway's routes come from FastAPI's generated schema; the bearer
    scheme is declared here because downstream services validate the token
    the gateway forwards.
    """

    def provide() -> dict[str, Any]:
        document = copy.deepcopy(app.openapi())
        components = document.setdefault("components", {})
        components.setdefault("securitySchemes", {}).setdefault("Bearer", BEARER_SCHEME)
        document.setdefault("security", [{"Bearer": []}])
        return document

    return provide


def placeholder_document(descriptor: ServiceDescriptor, reason: str) -> dict[str, Any]:
    """Stand-in for a service whose document could not be fetched."""
    return {
        "openapi": "3.0.1",
        "info": {
            "title": f"{descriptor.service_id} service API",
            "version": "v1",
            "description": (
                f"Could not fetch API documentation from {descriptor.service_id} at {descriptor.document_url}: "
                f"{reason}. The service may be down, still starting, or not publishing its document."
            ),
        },
        "paths": {},
        "components": {"schemas": {}},
    }


class AggregationPipeline:
    def __init__(
        self,
        registry: ServiceRegistry,
        fetcher: DocumentFetcher,
        baseline: Callable[[], dict[str, Any]],
        transformer: PathTransformer | None = None,
        merger: DocumentMerger | None = None,
    ) -> None:
        self.registry = registry
        self.fetcher = fetcher
        self.transformer = transformer or PathTransformer()
        self.merger = merger or DocumentMerger()
        self._baseline = baseline

    async def build(self) -> AggregateDocument:
        baseline = ApiDescription.from_payload(self._baseline())
        results = await self.fetcher.fetch_all(self.registry.list())

        documents: list[tuple[ServiceDescriptor, ApiDescription]] = []
        outcomes: list[ServiceOutcome] = []
        warnings: list[MergeWarning] = []
        for result in results:
            sid = result.descriptor.service_id
            if not result.ok:
                outcomes.append(ServiceOutcome(service_id=sid, status="failed", error=result.error.reason))
                continue
            transformed, path_warnings = self.transformer.transform_document(result.descriptor, result.document)
            warnings.extend(path_warnings)
            documents.append((result.descriptor, transformed))
            outcomes.append(ServiceOutcome(service_id=sid, status="ok", paths=tuple(transformed.paths)))

        return self.merger.merge(baseline, documents, outcomes=outcomes, warnings=warnings)

    async def service_document(self, descriptor: ServiceDescriptor) -> dict[str, Any]:
        """One service's document with gateway paths, or a placeholder."""
        result = await self.fetcher.fetch(descriptor)
        if not result.ok:
            return placeholder_document(descriptor, result.error.reason)
        transformed, _ = self.transformer.transform_document(descriptor, result.document)
        return transformed.to_openapi()
