"""Fold the gateway's own document and the service documents into one.

Collision policy:
* Operations are keyed by ``(method, gateway path)``. The first writer wins:
  gateway-owned paths first, then services in registry order. Every dropped
  operation is recorded as a ``duplicate_path`` warning.
* Service components are always stored as ``{service_id}.{name}`` and the
  service's local ``$ref`` pointers are rewritten to match, so two services
  can both publish an ``Error`` schema. Identical schemas are not merged.
* Tags are deduplicated by name, first occurrence wins.
"""

from __future__ import annotations

import copy
from typing import Any, Iterable, Sequence

from loguru import logger

from ..metrics import record_merge_warning
from .models import (
    AggregateDocument,
    ApiDescription,
    MergeWarning,
    OperationKey,
    ServiceDescriptor,
    ServiceOutcome,
    dedupe_tags,
)

GATEWAY_ORIGIN = "gateway"

_COMPONENT_REF_PREFIX = "#/components/"


def _namespace_ref(ref: str, service_id: str, local: dict[str, set[str]]) -> str:
    if not ref.startswith(_COMPONENT_REF_PREFIX):
        return ref
    section, _, name = ref[len(_COMPONENT_REF_PREFIX):].partition("/")
    if name and name in local.get(section, ()):
        return f"{_COMPONENT_REF_PREFIX}{section}/{service_id}.{name}"
    return ref


def rewrite_refs(node: Any, service_id: str, local: dict[str, set[str]]) -> Any:
    """Return a copy of ``node`` with local component refs namespaced by service."""
    if isinstance(node, dict):
        out: dict[str, Any] = {}
        for key, value in node.items():
            if key == "$ref" and isinstance(value, str):
                out[key] = _namespace_ref(value, service_id, local)
            else:
                out[key] = rewrite_refs(value, service_id, local)
        return out
    if isinstance(node, list):
        return [rewrite_refs(item, service_id, local) for item in node]
    return node


class DocumentMerger:
    def merge(
        self,
        baseline: ApiDescription,
        documents: Sequence[tuple[ServiceDescriptor, ApiDescription]],
        outcomes: Sequence[ServiceOutcome] = (),
        warnings: Iterable[MergeWarning] = (),
    ) -> AggregateDocument:
        recorded = list(warnings)
        paths: dict[str, dict[str, Any]] = {}
        origins: dict[OperationKey, str] = {}
        components: dict[str, dict[str, Any]] = copy.deepcopy(baseline.components)
        security_schemes = copy.deepcopy(baseline.security_schemes)
        tags = dedupe_tags(baseline.tags)

        for key, operation in baseline.operations.items():
            method, path = key
            paths.setdefault(path, {})[method] = copy.deepcopy(operation.spec)
            origins[key] = GATEWAY_ORIGIN

        for descriptor, document in documents:
            sid = descriptor.service_id
            local = {section: set(entries) for section, entries in document.components.items()}
            tags.append({"name": sid, "description": document.description or f"{sid} service endpoints"})

            for key, operation in document.operations.items():
                method, path = key
                if key in origins:
                    warning = MergeWarning(
                        kind="duplicate_path",
                        service_id=sid,
                        method=method,
                        path=path,
                        detail=f"already published by {origins[key]}; keeping the first",
                    )
                    logger.warning(f"Duplicate path {method.upper()} {path} from {sid}; {warning.detail}")
                    recorded.append(warning)
                    continue
                spec = rewrite_refs(operation.spec, sid, local)
                spec["tags"] = [sid] + [tag for tag in operation.tags if tag != sid]
                paths.setdefault(path, {})[method] = spec
                origins[key] = sid

            for section, entries in document.components.items():
                target = components.setdefault(section, {})
                for name, value in entries.items():
                    namespaced = f"{sid}.{name}"
                    if namespaced in target:
                        warning = MergeWarning(
                            kind="duplicate_component",
                            service_id=sid,
                            detail=f"components/{section}/{namespaced} already defined; keeping the first",
                        )
                        logger.warning(warning.detail)
                        recorded.append(warning)
                        continue
                    target[namespaced] = rewrite_refs(value, sid, local)

            for name, scheme in document.security_schemes.items():
                security_schemes.setdefault(name, copy.deepcopy(scheme))
            tags.extend(document.tags)

        for warning in recorded:
            record_merge_warning(warning.kind)

        info: dict[str, Any] = {"title": baseline.title, "version": baseline.version}
        if baseline.description:
            info["description"] = baseline.description

        aggregate = AggregateDocument(
            openapi=baseline.openapi,
            info=info,
            servers=copy.deepcopy(baseline.servers),
            paths=paths,
            components=components,
            security_schemes=security_schemes,
            security=copy.deepcopy(baseline.security),
            tags=dedupe_tags(tags),
            outcomes=tuple(outcomes),
            warnings=tuple(recorded),
        )
        logger.info(
            f"Merged {len(documents)} service documents: {len(aggregate.operation_keys())} operations, "
            f"{len(aggregate.schemas)} schemas, {len(recorded)} warnings"
        )
        return aggregate
