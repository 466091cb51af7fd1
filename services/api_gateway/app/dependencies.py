from fastapi import Request

from .aggregation import AggregateCache, AggregationPipeline, ServiceRegistry
from .settings import GatewaySettings


def get_settings(request: Request) -> GatewaySettings:
    return request.app.state.settings


def get_registry(request: Request) -> ServiceRegistry:
    return request.app.state.registry


def get_pipeline(request: Request) -> AggregationPipeline:
    return request.app.state.pipeline


def get_aggregate_cache(request: Request) -> AggregateCache:
    return request.app.state.docs_cache
