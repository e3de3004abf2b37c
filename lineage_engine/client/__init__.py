"""Network boundary: the fetcher interface, its HTTP implementation and retry."""

from __future__ import annotations

from lineage_engine.client.base import LineageLinkFetcher
from lineage_engine.client.fetcher import HttpLineageFetcher
from lineage_engine.client.retry import RetryConfig, async_retry_with_backoff

__all__ = [
    "HttpLineageFetcher",
    "LineageLinkFetcher",
    "RetryConfig",
    "async_retry_with_backoff",
]
