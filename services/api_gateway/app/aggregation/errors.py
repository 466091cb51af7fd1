"""Error taxonomy for document aggregation.

Only ``ConfigurationError`` and ``AggregateUnavailableError`` ever reach a
caller: the first while the app is being created, the second when the
pipeline crashed and no earlier aggregate exists. ``FetchError`` is captured
per service and folded into the aggregate as a failed outcome.
"""

from __future__ import annotations


class AggregationError(Exception):
    """Base class for document aggregation failures."""


class ConfigurationError(AggregationError):
    """The service registry is inconsistent; the gateway must not start."""


class DocumentParseError(AggregationError):
    """A downstream body is not a usable API description."""


class FetchError(AggregationError):
    def __init__(self, service_id: str, reason: str) -> None:
        super().__init__(f"{service_id}: {reason}")
        self.service_id = service_id
        self.reason = reason


class CacheRecomputeError(AggregationError):
    """Rebuilding the aggregate failed as a whole (not a single service)."""


class AggregateUnavailableError(CacheRecomputeError):
    """No aggregate can be served: the rebuild failed and nothing is cached."""
