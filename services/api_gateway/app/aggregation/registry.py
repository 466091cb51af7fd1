from __future__ import annotations

from typing import Iterable, Iterator

from loguru import logger

from ..settings import GatewaySettings
from .errors import ConfigurationError
from .models import RewriteRule, ServiceDescriptor


class ServiceRegistry:
    """Ordered, immutable table of downstream services.

    Declaration order is significant: it decides which service wins a path
    collision when documents are merged.
    """

    def __init__(self, descriptors: Iterable[ServiceDescriptor]) -> None:
        self._descriptors = tuple(descriptors)
        self._by_id: dict[str, ServiceDescriptor] = {}
        for descriptor in self._descriptors:
            _validate(descriptor)
            if descriptor.service_id in self._by_id:
                raise ConfigurationError(f"duplicate service id {descriptor.service_id!r} in registry")
            self._by_id[descriptor.service_id] = descriptor

    @classmethod
    def from_settings(cls, settings: GatewaySettings) -> ServiceRegistry:
        descriptors = [
            ServiceDescriptor(
                service_id=entry.id,
                base_url=entry.base_url,
                document_path=entry.document_path,
                description=entry.description,
                rewrite_rules=tuple(
                    RewriteRule(rule.match_prefix, rule.replace_prefix, rule.ignore_case)
                    for rule in entry.rewrite_rules
                ),
            )
            for entry in settings.services
        ]
        registry = cls(descriptors)
        logger.info(f"Service registry loaded: {', '.join(registry.ids()) or '<empty>'}")
        return registry

    def list(self) -> tuple[ServiceDescriptor, ...]:
        return self._descriptors

    def get(self, service_id: str) -> ServiceDescriptor | None:
        return self._by_id.get(service_id)

    def ids(self) -> list[str]:
        return [d.service_id for d in self._descriptors]

    def __iter__(self) -> Iterator[ServiceDescriptor]:
        return iter(self._descriptors)

    def __len__(self) -> int:
        return len(self._descriptors)


def _validate(descriptor: ServiceDescriptor) -> None:
    sid = descriptor.service_id
    if not sid or not sid.strip():
        raise ConfigurationError("service id must not be blank")
    if not descriptor.base_url.startswith(("http://", "https://")):
        raise ConfigurationError(f"service {sid!r}: base_url must be an http(s) URL, got {descriptor.base_url!r}")
    if not descriptor.document_path.startswith("/"):
        raise ConfigurationError(f"service {sid!r}: document_path must start with '/'")
    for rule in descriptor.rewrite_rules:
        if not rule.match_prefix.startswith("/") or not rule.replace_prefix.startswith("/"):
            raise ConfigurationError(
                f"service {sid!r}: rewrite rule {rule.match_prefix!r} -> {rule.replace_prefix!r} "
                "must use absolute prefixes"
            )
