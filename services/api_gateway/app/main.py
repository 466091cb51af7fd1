from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI

from shared.errors import register_exception_handlers

from .aggregation import (
    AggregateCache,
    AggregateUnavailableError,
    AggregationPipeline,
    DocumentFetcher,
    ServiceRegistry,
    gateway_baseline,
)
from .middleware import setup_middleware
from .routes import register_routes
from .settings import GatewaySettings, gateway_settings
from .startup import setup_instrumentation, setup_logging, shutdown_instrumentation


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await shutdown_instrumentation(app)


def create_app(
    settings: GatewaySettings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    settings = settings or gateway_settings()
    setup_logging(settings)
    # Raises ConfigurationError on an inconsistent service table; the gateway must not start.
    registry = ServiceRegistry.from_settings(settings)

    app = FastAPI(
        title=settings.docs_title,
        version=settings.docs_version,
        description=settings.docs_description,
        lifespan=lifespan,
    )
    app.state.settings = settings
    setup_middleware(app)
    register_exception_handlers(app, unavailable=(AggregateUnavailableError,))
    setup_instrumentation(app, settings)
    register_routes(app, settings)

    fetcher = DocumentFetcher(timeout=settings.fetch_timeout_seconds, transport=transport)
    pipeline = AggregationPipeline(registry, fetcher, baseline=gateway_baseline(app))
    app.state.registry = registry
    app.state.pipeline = pipeline
    app.state.docs_cache = AggregateCache(
        pipeline.build,
        ttl=settings.cache_ttl_seconds,
        retry_interval=settings.cache_retry_seconds,
    )
    return app
