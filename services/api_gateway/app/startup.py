from fastapi import FastAPI
from loguru import logger
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from .settings import GatewaySettings, gateway_settings


def setup_logging(settings: GatewaySettings | None = None) -> None:
    """Configure Loguru for consistent, structured gateway logs."""
    settings = settings or gateway_settings()
    logger.remove()
    logger.add(
        sink=lambda msg: print(msg, end=""),
        level=settings.log_level.upper(),
        backtrace=False,
        diagnose=False,
        colorize=False,
        serialize=False,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
               "<level>{level: <8}</level> | "
               "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
               "<level>{message}</level>",
    )
    logger.info("🪵 Logging configured successfully.")


def setup_instrumentation(app: FastAPI, settings: GatewaySettings | None = None) -> None:
    """Attach OpenTelemetry tracing to the FastAPI app. This function is idempotent."""
    settings = settings or gateway_settings()
    if not settings.tracing_enabled:
        logger.info("📈 Tracing disabled by configuration.")
        return
    if isinstance(trace.get_tracer_provider(), TracerProvider):
        logger.info("📈 OpenTelemetry instrumentation already initialized. Skipping reconfiguration.")
        return

    resource = Resource(attributes={SERVICE_NAME: settings.service_name})
    tracer_provider = TracerProvider(resource=resource)
    tracer_provider.add_span_processor(
        BatchSpanProcessor(OTLPSpanExporter(endpoint=str(settings.otel_endpoint)))
    )
    trace.set_tracer_provider(tracer_provider)
    FastAPIInstrumentor.instrument_app(app, tracer_provider=tracer_provider)
    app.state.tracer_provider = tracer_provider
    logger.info("📈 OpenTelemetry instrumentation configured.")


async def shutdown_instrumentation(app: FastAPI) -> None:
    """Flush and stop the tracer provider, if one was configured."""
    tracer_provider = getattr(app.state, "tracer_provider", None)
    if tracer_provider:
        try:
            tracer_provider.shutdown()
        except Exception as e:
            logger.warning(f"⚠️ Error shutting down tracer provider: {e}")
        logger.info("🧹 OpenTelemetry instrumentation shut down gracefully.")
