"""Gateway configuration using Pydantic Settings.

Defines typed, environment-driven configuration with safe defaults for local
development. Real values are injected via environment variables in Compose/CI
or production. See ``env_prefix=GATEWAY_`` for variable names.

The downstream service table is a nested setting: override it with a JSON list
in ``GATEWAY_SERVICES``. Each entry mirrors one service's block in the reverse
proxy's routing table, so the documentation aggregator and the proxy read the
same prefixes.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class RewriteRuleConfig(BaseModel):
    """One proxy rewrite: gateway paths under ``match_prefix`` are forwarded
    to the service with that prefix replaced by ``replace_prefix``."""

    match_prefix: str
    replace_prefix: str
    ignore_case: bool = False


class ServiceConfig(BaseModel):
    id: str
    base_url: str
    document_path: str = "/swagger/v1/swagger.json"
    description: str | None = None
    rewrite_rules: list[RewriteRuleConfig] = Field(default_factory=list)


def _default_services() -> list[ServiceConfig]:
    return [
        ServiceConfig(
            id="identity",
            base_url="http://identity-service:8080",
            description="Authentication and user management",
            rewrite_rules=[
                RewriteRuleConfig(
                    match_prefix="/api/v1/identity/appusers",
                    replace_prefix="/api/v1/appusers",
                    ignore_case=True,
                ),
                RewriteRuleConfig(match_prefix="/api/v1/auth", replace_prefix="/api/v1/auth"),
            ],
        ),
        ServiceConfig(
            id="user",
            base_url="http://user-service:8080",
            description="User profile management",
            rewrite_rules=[
                RewriteRuleConfig(match_prefix="/api/v1/users", replace_prefix="/api/users"),
                RewriteRuleConfig(match_prefix="/api/v1/users", replace_prefix="/api"),
            ],
        ),
        ServiceConfig(
            id="task",
            base_url="http://task-service:8080",
            description="Task management and tracking",
            rewrite_rules=[
                RewriteRuleConfig(match_prefix="/api/v1/tasks", replace_prefix="/api/tasks"),
                RewriteRuleConfig(match_prefix="/api/v1/tasks", replace_prefix="/api"),
            ],
        ),
        ServiceConfig(
            id="admin",
            base_url="http://admin-service:8080",
            description="Administrative operations",
            rewrite_rules=[RewriteRuleConfig(match_prefix="/api/v1/admin", replace_prefix="/api")],
        ),
        ServiceConfig(
            id="notification",
            base_url="http://notif-service:8080",
            description="Notification delivery",
            rewrite_rules=[RewriteRuleConfig(match_prefix="/api/v1/notifications", replace_prefix="/api")],
        ),
    ]


class GatewaySettings(BaseSettings):
    """Typed configuration for the API Gateway.

    Resolution precedence: environment variables > .env file > code defaults.
    """
    model_config = SettingsConfigDict(env_prefix="GATEWAY_", env_file=".env", env_file_encoding="utf-8")

    service_name: str = "api-gateway"
    environment: str = "development"
    port: int = 8080
    log_level: str = "info"
    tracing_enabled: bool = True
    otel_endpoint: str = "http://jaeger:4317"

    # Metadata of the gateway's own (baseline) document
    docs_title: str = "TaskFlow API Gateway"
    docs_version: str = "v1"
    docs_description: str = "Unified entry point for all TaskFlow microservices."
    # Where the merged document is served
    aggregate_document_path: str = "/swagger/gateway/swagger.json"
    # How long a merged document is served before it is rebuilt
    cache_ttl_seconds: float = 300.0
    # After a failed rebuild, the previous document is served this long before retrying
    cache_retry_seconds: float = 30.0
    # Deadline for a single downstream document fetch
    fetch_timeout_seconds: float = 5.0

    services: list[ServiceConfig] = Field(default_factory=_default_services)


@lru_cache
def gateway_settings() -> GatewaySettings:
    """Return a cached settings instance for reuse across the app."""
    return GatewaySettings()
