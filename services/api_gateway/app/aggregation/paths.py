"""Path rewriting between gateway (external) and service (internal) paths.

The reverse proxy forwards ``/api/v1/identity/appusers/{id}`` to the identity
service as ``/api/v1/appusers/{id}``. Services document themselves with the
internal form, so every documented path has to go through the proxy's rule
in reverse before it is useful to a gateway client.

Rules are literal prefixes matched on whole path segments and tried in
declaration order; the first match wins. Regex rewrites are deliberately not
supported because they cannot be inverted in general.
"""

from __future__ import annotations

import dataclasses

from loguru import logger

from .models import ApiDescription, MergeWarning, Operation, OperationKey, RewriteRule, ServiceDescriptor


def _strip_prefix(path: str, prefix: str, ignore_case: bool) -> str | None:
    """Return the remainder of ``path`` after ``prefix`` or None if it does not match."""
    candidate = path.lower() if ignore_case else path
    head = (prefix.lower() if ignore_case else prefix).rstrip("/")
    if candidate == head:
        return ""
    if candidate.startswith(head + "/"):
        return path[len(head):]
    return None


def _join(prefix: str, remainder: str) -> str:
    joined = prefix.rstrip("/") + remainder
    return joined or "/"


def forward(rule: RewriteRule, external_path: str) -> str | None:
    """Apply ``rule`` the way the proxy does (external -> internal)."""
    remainder = _strip_prefix(external_path, rule.match_prefix, rule.ignore_case)
    return None if remainder is None else _join(rule.replace_prefix, remainder)


def inverse(rule: RewriteRule, internal_path: str) -> str | None:
    """Undo ``rule`` (internal -> external)."""
    remainder = _strip_prefix(internal_path, rule.replace_prefix, rule.ignore_case)
    return None if remainder is None else _join(rule.match_prefix, remainder)


class PathTransformer:
    def to_external(self, descriptor: ServiceDescriptor, path: str) -> tuple[str, MergeWarning | None]:
        for rule in descriptor.rewrite_rules:
            external = inverse(rule, path)
            if external is not None:
                return external, None
        warning = MergeWarning(
            kind="unmapped_path",
            service_id=descriptor.service_id,
            path=path,
            detail="no rewrite rule matches; path published unchanged",
        )
        return path, warning

    def to_internal(self, descriptor: ServiceDescriptor, path: str) -> str | None:
        for rule in descriptor.rewrite_rules:
            internal = forward(rule, path)
            if internal is not None:
                return internal
        return None

    def transform_document(
        self, descriptor: ServiceDescriptor, document: ApiDescription
    ) -> tuple[ApiDescription, list[MergeWarning]]:
        """Return a copy of ``document`` keyed by gateway paths."""
        warnings: list[MergeWarning] = []
        external_paths: dict[str, str] = {}
        operations: dict[OperationKey, Operation] = {}
        for (method, path), operation in document.operations.items():
            if path not in external_paths:
                external, warning = self.to_external(descriptor, path)
                external_paths[path] = external
                if warning is not None:
                    logger.warning(f"Unmapped path {path} from {descriptor.service_id}; publishing as-is")
                    warnings.append(warning)
            key = (method, external_paths[path])
            if key in operations:
                warnings.append(
                    MergeWarning(
                        kind="duplicate_path",
                        service_id=descriptor.service_id,
                        method=method,
                        path=key[1],
                        detail=f"{method.upper()} {path} rewrites onto an operation already published by this service",
                    )
                )
                continue
            operations[key] = dataclasses.replace(operation, path=key[1])
        return dataclasses.replace(document, operations=operations), warnings
