"""Aggregated and per-service API description endpoints.

Provides:
* GET {aggregate_document_path}          -> merged document (default /swagger/gateway/swagger.json)
* GET /api/v1/openapi-aggregate          -> same document under the versioned API root
* GET /swagger/{service}/swagger.json    -> one service's document with gateway paths
* POST /api/v1/docs/refresh              -> rebuild the merged document now

Notes:
* The merged document is served from the aggregate cache and answers 200
  even when some or all services are down; it only covers fewer paths.
* A per-service document is fetched live. An unreachable service yields a
  placeholder document explaining why, still with status 200.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse

from ..aggregation import AggregateCache, AggregationPipeline, ServiceRegistry
from ..dependencies import get_aggregate_cache, get_pipeline, get_registry

router = APIRouter()


async def aggregate_document(cache: AggregateCache = Depends(get_aggregate_cache)) -> JSONResponse:
    document = await cache.get()
    return JSONResponse(content=document.to_openapi())


router.add_api_route(
    "/api/v1/openapi-aggregate",
    aggregate_document,
    methods=["GET"],
    include_in_schema=False,
)


@router.post("/api/v1/docs/refresh")
async def refresh_documents(cache: AggregateCache = Depends(get_aggregate_cache)) -> dict[str, Any]:
    """Rebuild the merged document, sharing any rebuild already in progress."""
    document = await cache.get(force_refresh=True)
    return {
        "generated_at": document.generated_at.isoformat(),
        "services": [outcome.as_dict() for outcome in document.outcomes],
        "total_paths": len(document.paths),
        "warnings": len(document.warnings),
    }


@router.get("/swagger/{service_id}/swagger.json", include_in_schema=False)
async def service_document(
    service_id: str,
    registry: ServiceRegistry = Depends(get_registry),
    pipeline: AggregationPipeline = Depends(get_pipeline),
) -> JSONResponse:
    descriptor = registry.get(service_id)
    if descriptor is None:
        raise HTTPException(status_code=404, detail=f"Unknown service '{service_id}'")
    return JSONResponse(content=await pipeline.service_document(descriptor))
