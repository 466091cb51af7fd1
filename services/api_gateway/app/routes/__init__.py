"""Route registration for the API Gateway.

Aggregates and mounts all routers under a single root for the application.
"""

from fastapi import APIRouter, FastAPI

from ..settings import GatewaySettings
from . import catalog, docs, health, info


def register_routes(app: FastAPI, settings: GatewaySettings) -> None:
    """Register system, info, catalog, and documentation routers on the app."""
    # Registered before the per-service route, which would otherwise capture
    # the default /swagger/gateway/swagger.json.
    app.add_api_route(
        settings.aggregate_document_path,
        docs.aggregate_document,
        methods=["GET"],
        include_in_schema=False,
    )
    router = APIRouter()
    router.include_router(health.router, tags=["system"])
    router.include_router(info.router, tags=["gateway"])
    router.include_router(catalog.router, tags=["catalog"])
    router.include_router(docs.router, tags=["docs"])
    app.include_router(router)
