"""
Resilient fetch client.

An asynchronous HTTP request wrapper that retries rate-limited responses and
transient transport failures while failing fast on client errors.
"""

from resilient_fetch.config import FetchSettings
from resilient_fetch.infrastructure.http import HttpxTransport, secure_fetch
from resilient_fetch.infrastructure.logging import configure_logging
from resilient_fetch.infrastructure.resilience import (
    RetryPolicy,
    ResilientFetchClient,
    fetch_with_retry,
    create_fetch
)
from resilient_fetch.shared.exceptions import (
    FetchError,
    ConfigurationError,
    PreconditionError,
    ResponseStatusError,
    ClientError,
    ServerError,
    TransientTransportError,
    RetriesExhaustedError,
    RequestCancelledError
)
from resilient_fetch.shared.types import FetchOptions, HttpMethod, OutcomeKind

__version__ = "0.1.0"

__all__ = [
    "FetchSettings",
    "HttpxTransport",
    "secure_fetch",
    "configure_logging",
    "RetryPolicy",
    "ResilientFetchClient",
    "fetch_with_retry",
    "create_fetch",
    "FetchError",
    "ConfigurationError",
    "PreconditionError",
    "ResponseStatusError",
    "ClientError",
    "ServerError",
    "TransientTransportError",
    "RetriesExhaustedError",
    "RequestCancelledError",
    "FetchOptions",
    "HttpMethod",
    "OutcomeKind",
]
