"""Aggregation of downstream API descriptions into the gateway document."""

from .cache import AggregateCache, CacheEntry
from .errors import (
    AggregateUnavailableError,
    AggregationError,
    CacheRecomputeError,
    ConfigurationError,
    DocumentParseError,
    FetchError,
)
from .fetcher import DocumentFetcher
from .merger import DocumentMerger
from .models import (
    AggregateDocument,
    ApiDescription,
    FetchResult,
    MergeWarning,
    Operation,
    RewriteRule,
    ServiceDescriptor,
    ServiceOutcome,
)
from .paths import PathTransformer
from .pipeline import AggregationPipeline, gateway_baseline, placeholder_document
from .registry import ServiceRegistry

__all__ = [
    "AggregateCache",
    "AggregateDocument",
    "AggregateUnavailableError",
    "AggregationError",
    "AggregationPipeline",
    "ApiDescription",
    "CacheEntry",
    "CacheRecomputeError",
    "ConfigurationError",
    "DocumentFetcher",
    "DocumentMerger",
    "DocumentParseError",
    "FetchError",
    "FetchResult",
    "MergeWarning",
    "Operation",
    "PathTransformer",
    "RewriteRule",
    "ServiceDescriptor",
    "ServiceOutcome",
    "ServiceRegistry",
    "gateway_baseline",
    "placeholder_document",
]
