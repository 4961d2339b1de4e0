"""
Resilience patterns for HTTP requests.

This module provides the retry loop, its policy, and the attempt
classification that separates rate limits, client errors and transient
transport failures.
"""

from .retry import (
    RetryPolicy,
    AttemptOutcome,
    ResilientFetchClient,
    classify_response,
    classify_exception,
    parse_retry_after,
    fetch_with_retry,
    create_fetch
)

__all__ = [
    "RetryPolicy",
    "AttemptOutcome",
    "ResilientFetchClient",
    "classify_response",
    "classify_exception",
    "parse_retry_after",
    "fetch_with_retry",
    "create_fetch"
]
