"""
Upstream fetching for the proxy.

The fetcher owns the only outbound HTTP traffic: bounded attempts,
exponential backoff on retryable failures, and classification of the
result into a success or a tagged failure.
"""

from .outcome import FailureKind, FetchFailure, FetchOutcome, FetchSuccess
from .fetcher import ResilientFetcher, is_json_content_type

__all__ = [
    "FailureKind",
    "FetchFailure",
    "FetchOutcome",
    "FetchSuccess",
    "ResilientFetcher",
    "is_json_content_type",
]
