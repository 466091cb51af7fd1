from fastapi import APIRouter, Depends, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from ..aggregation import AggregateCache
from ..dependencies import get_aggregate_cache, get_settings
from ..settings import GatewaySettings

router = APIRouter()


@router.get("/healthz")
async def health_check(
    settings: GatewaySettings = Depends(get_settings),
    cache: AggregateCache = Depends(get_aggregate_cache),
) -> dict[str, str | bool]:
    return {"status": "ok", "service": settings.service_name, "docs_cached": cache.entry is not None}


@router.get("/api/v1/healthz")
async def health_check_v1(
    settings: GatewaySettings = Depends(get_settings),
    cache: AggregateCache = Depends(get_aggregate_cache),
) -> dict[str, str | bool]:
    return await health_check(settings, cache)


@router.get("/api/v1/metrics")
async def metrics() -> Response:
    data = generate_latest()
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)
