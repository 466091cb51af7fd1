"""Service catalog endpoint.

Summarizes, per registered service, what the latest merged document holds:
whether the service's document was fetched, which gateway paths it
contributed, and why it is missing otherwise. Served from the aggregate
cache, so it never triggers more downstream traffic than the docs endpoint.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends

from ..aggregation import AggregateCache, ServiceRegistry
from ..dependencies import get_aggregate_cache, get_registry

router = APIRouter()


@router.get("/api/v1/catalog")
async def catalog(
    cache: AggregateCache = Depends(get_aggregate_cache),
    registry: ServiceRegistry = Depends(get_registry),
) -> Dict[str, Any]:
    document = await cache.get()
    out: Dict[str, Any] = {"generated_at": document.generated_at.isoformat(), "services": []}
    for descriptor in registry.list():
        entry: Dict[str, Any] = {
            "name": descriptor.service_id,
            "root": descriptor.base_url,
            "document_url": descriptor.document_url,
            "routes": descriptor.public_routes,
        }
        outcome = document.outcome(descriptor.service_id)
        if outcome is None:
            entry["status"] = "unknown"
        else:
            entry["status"] = outcome.status
            entry["path_count"] = len(outcome.paths)
            entry["paths"] = list(outcome.paths)
            if outcome.error:
                entry["error"] = outcome.error
        out["services"].append(entry)
    out["warnings"] = [warning.as_dict() for warning in document.warnings]
    return out
