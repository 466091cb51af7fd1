from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from .errors import DocumentParseError, FetchError

HTTP_METHODS = ("get", "put", "post", "delete", "options", "head", "patch", "trace")

# Component sections addressed by "$ref"; securitySchemes are referenced by name instead.
COMPONENT_SECTIONS = (
    "schemas",
    "responses",
    "parameters",
    "examples",
    "requestBodies",
    "headers",
    "links",
    "callbacks",
)

OperationKey = tuple[str, str]


@dataclass(frozen=True)
class RewriteRule:
    """One row of the reverse proxy's routing table.

    The proxy forwards a gateway path starting with ``match_prefix`` to the
    service after replacing that prefix with ``replace_prefix``. Documents are
    published with the replaced (internal) prefix, so the aggregator reads the
    rule backwards.
    """

    match_prefix: str
    replace_prefix: str
    ignore_case: bool = False


@dataclass(frozen=True)
class ServiceDescriptor:
    service_id: str
    base_url: str
    document_path: str = "/swagger/v1/swagger.json"
    rewrite_rules: tuple[RewriteRule, ...] = ()
    description: str | None = None

    @property
    def document_url(self) -> str:
        return f"{self.base_url.rstrip('/')}{self.document_path}"

    @property
    def public_routes(self) -> list[str]:
        routes: list[str] = []
        for rule in self.rewrite_rules:
            if rule.match_prefix not in routes:
                routes.append(rule.match_prefix)
        return routes


@dataclass(frozen=True)
class Operation:
    method: str
    path: str
    spec: dict[str, Any]

    @property
    def key(self) -> OperationKey:
        return (self.method, self.path)

    @property
    def tags(self) -> tuple[str, ...]:
        tags = self.spec.get("tags") or ()
        return tuple(tag for tag in tags if isinstance(tag, str))


@dataclass(frozen=True)
class ApiDescription:
    """A parsed OpenAPI document, reduced to what aggregation needs."""

    title: str
    version: str
    description: str | None = None
    openapi: str = "3.0.1"
    operations: dict[OperationKey, Operation] = field(default_factory=dict)
    components: dict[str, dict[str, Any]] = field(default_factory=dict)
    security_schemes: dict[str, Any] = field(default_factory=dict)
    security: list[dict[str, Any]] = field(default_factory=list)
    tags: list[dict[str, Any]] = field(default_factory=list)
    servers: list[dict[str, Any]] = field(default_factory=list)

    @property
    def schemas(self) -> dict[str, Any]:
        return self.components.get("schemas", {})

    @property
    def paths(self) -> list[str]:
        seen: list[str] = []
        for _method, path in self.operations:
            if path not in seen:
                seen.append(path)
        return seen

    @classmethod
    def from_payload(cls, payload: Any) -> ApiDescription:
        """Parse a decoded JSON document.

        Raises ``DocumentParseError`` when the structure cannot be read as an
        OpenAPI document. Content of individual operations is not validated.
        """
        if not isinstance(payload, dict):
            raise DocumentParseError("document root must be a JSON object")
        info = payload.get("info", {})
        if not isinstance(info, dict):
            raise DocumentParseError("'info' must be an object")
        paths = payload.get("paths", {})
        if not isinstance(paths, dict):
            raise DocumentParseError("'paths' must be an object")

        operations: dict[OperationKey, Operation] = {}
        for path, item in paths.items():
            if not isinstance(path, str) or not path.startswith("/"):
                raise DocumentParseError(f"invalid path key {path!r}")
            if not isinstance(item, dict):
                raise DocumentParseError(f"path item {path} must be an object")
            shared_parameters = _list_field(item, "parameters", f"path item {path}")
            for method in HTTP_METHODS:
                raw = item.get(method)
                if raw is None:
                    continue
                where = f"operation {method.upper()} {path}"
                if not isinstance(raw, dict):
                    raise DocumentParseError(f"{where} must be an object")
                _list_field(raw, "tags", where)
                _list_field(raw, "security", where)
                own_parameters = _list_field(raw, "parameters", where)
                spec = copy.deepcopy(raw)
                if shared_parameters:
                    spec["parameters"] = _merge_parameters(shared_parameters, own_parameters)
                operations[(method, path)] = Operation(method=method, path=path, spec=spec)

        components_raw = payload.get("components", {})
        if not isinstance(components_raw, dict):
            raise DocumentParseError("'components' must be an object")
        components = {
            section: copy.deepcopy(components_raw[section])
            for section in COMPONENT_SECTIONS
            if isinstance(components_raw.get(section), dict)
        }
        security_schemes = components_raw.get("securitySchemes") or {}
        description = info.get("description")

        return cls(
            title=str(info.get("title", "")),
            version=str(info.get("version", "")),
            description=description if isinstance(description, str) else None,
            openapi=str(payload.get("openapi") or payload.get("swagger") or "3.0.1"),
            operations=operations,
            components=components,
            security_schemes=copy.deepcopy(security_schemes) if isinstance(security_schemes, dict) else {},
            security=copy.deepcopy(_list_field(payload, "security", "document")),
            tags=dedupe_tags(_list_field(payload, "tags", "document")),
            servers=copy.deepcopy(_list_field(payload, "servers", "document")),
        )

    def to_openapi(self) -> dict[str, Any]:
        info: dict[str, Any] = {"title": self.title, "version": self.version}
        if self.description:
            info["description"] = self.description
        paths: dict[str, dict[str, Any]] = {}
        for (method, path), operation in self.operations.items():
            paths.setdefault(path, {})[method] = copy.deepcopy(operation.spec)
        components: dict[str, Any] = copy.deepcopy(self.components)
        if self.security_schemes:
            components["securitySchemes"] = copy.deepcopy(self.security_schemes)
        document: dict[str, Any] = {
            "openapi": self.openapi,
            "info": info,
            "paths": paths,
            "components": components,
        }
        if self.servers:
            document["servers"] = copy.deepcopy(self.servers)
        if self.security:
            document["security"] = copy.deepcopy(self.security)
        if self.tags:
            document["tags"] = copy.deepcopy(self.tags)
        return document


def _list_field(node: dict[str, Any], name: str, where: str) -> list[Any]:
    value = node.get(name)
    if value is None:
        return []
    if not isinstance(value, list):
        raise DocumentParseError(f"'{name}' of {where} must be an array")
    return value


def _parameter_key(parameter: Any) -> Any:
    if not isinstance(parameter, dict):
        return id(parameter)
    if "$ref" in parameter:
        return parameter["$ref"]
    return (parameter.get("name"), parameter.get("in"))


def _merge_parameters(path_level: list[Any], operation_level: list[Any]) -> list[Any]:
    # Operation-level parameters override path-level ones with the same name and location.
    overridden = {_parameter_key(p) for p in operation_level}
    inherited = [copy.deepcopy(p) for p in path_level if _parameter_key(p) not in overridden]
    return inherited + list(operation_level)


def dedupe_tags(tags: list[Any]) -> list[dict[str, Any]]:
    """Normalize tags to objects and keep the first of each name."""
    out: list[dict[str, Any]] = []
    names: set[str] = set()
    for tag in tags:
        if isinstance(tag, str):
            tag = {"name": tag}
        if not isinstance(tag, dict) or not isinstance(tag.get("name"), str) or not tag["name"]:
            continue
        if tag["name"] in names:
            continue
        names.add(tag["name"])
        out.append(copy.deepcopy(tag))
    return out


@dataclass(frozen=True)
class MergeWarning:
    kind: str
    service_id: str
    detail: str
    path: str | None = None
    method: str | None = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "service": self.service_id,
            "method": self.method.upper() if self.method else None,
            "path": self.path,
            "detail": self.detail,
        }


@dataclass(frozen=True)
class FetchResult:
    descriptor: ServiceDescriptor
    document: ApiDescription | None = None
    error: FetchError | None = None
    elapsed_seconds: float = 0.0

    @property
    def ok(self) -> bool:
        return self.document is not None and self.error is None


@dataclass(frozen=True)
class ServiceOutcome:
    service_id: str
    status: str
    paths: tuple[str, ...] = ()
    error: str | None = None

    def as_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"name": self.service_id, "status": self.status, "path_count": len(self.paths)}
        if self.error:
            out["error"] = self.error
        return out


@dataclass(frozen=True)
class AggregateDocument:
    """The merged document. Built once by the merger, then only read."""

    openapi: str
    info: dict[str, Any]
    paths: dict[str, dict[str, Any]]
    components: dict[str, dict[str, Any]]
    security_schemes: dict[str, Any] = field(default_factory=dict)
    security: list[dict[str, Any]] = field(default_factory=list)
    tags: list[dict[str, Any]] = field(default_factory=list)
    servers: list[dict[str, Any]] = field(default_factory=list)
    outcomes: tuple[ServiceOutcome, ...] = ()
    warnings: tuple[MergeWarning, ...] = ()
    generated_at: datetime = field(default_factory=lambda: datetime.now(tz=timezone.utc))

    @property
    def schemas(self) -> dict[str, Any]:
        return self.components.get("schemas", {})

    def operation_keys(self) -> list[OperationKey]:
        return [(method, path) for path, item in self.paths.items() for method in item]

    def outcome(self, service_id: str) -> ServiceOutcome | None:
        for outcome in self.outcomes:
            if outcome.service_id == service_id:
                return outcome
        return None

    def to_openapi(self) -> dict[str, Any]:
        components = copy.deepcopy(self.components)
        if self.security_schemes:
            components["securitySchemes"] = copy.deepcopy(self.security_schemes)
        document: dict[str, Any] = {
            "openapi": self.openapi,
            "info": copy.deepcopy(self.info),
            "servers": copy.deepcopy(self.servers),
            "paths": copy.deepcopy(self.paths),
            "components": components,
            "tags": copy.deepcopy(self.tags),
            "x-aggregation": {
                "generated_at": self.generated_at.isoformat(),
                "services": [outcome.as_dict() for outcome in self.outcomes],
                "warnings": [warning.as_dict() for warning in self.warnings],
                "total_paths": len(self.paths),
                "total_schemas": len(self.schemas),
            },
        }
        if self.security:
            document["security"] = copy.deepcopy(self.security)
        return document
