from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends

from ..aggregation import ServiceRegistry
from ..dependencies import get_registry, get_settings
from ..settings import GatewaySettings

router = APIRouter()


@router.get("/api/v1/info")
async def api_info(
    settings: GatewaySettings = Depends(get_settings),
    registry: ServiceRegistry = Depends(get_registry),
) -> dict[str, Any]:
    """Describe the gateway: registered services, their public routes and doc links."""
    return {
        "name": settings.docs_title,
        "version": settings.docs_version,
        "environment": settings.environment,
        "timestamp": datetime.now(tz=timezone.utc).isoformat(),
        "services": [
            {
                "name": descriptor.service_id,
                "description": descriptor.description or f"{descriptor.service_id} service",
                "base_routes": descriptor.public_routes,
                "documentation": f"/swagger/{descriptor.service_id}/swagger.json",
            }
            for descriptor in registry.list()
        ],
        "documentation": {
            "openapi_url": settings.aggregate_document_path,
            "catalog": "/api/v1/catalog",
        },
    }
