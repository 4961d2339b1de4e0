"""
Type definitions for the resilient fetch client.

This module contains the request value objects and type aliases used
throughout the package to ensure type safety and clear interfaces.
"""

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Dict, Mapping, NewType, Optional, Union

import httpx

# Time-related types
Milliseconds = NewType('Milliseconds', int)

URL = Union[str, httpx.URL]


class HttpMethod(str, Enum):
    """HTTP methods accepted by the transport."""
    GET = "GET"
    HEAD = "HEAD"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"
    OPTIONS = "OPTIONS"


class OutcomeKind(str, Enum):
    """Classification of a single request attempt."""
    SUCCESS = "success"
    RATE_LIMITED = "rate_limited"
    CLIENT_ERROR = "client_error"
    SERVER_ERROR = "server_error"
    TRANSIENT_ERROR = "transient_error"
    FATAL = "fatal"


def _freeze(mapping: Optional[Mapping[str, Any]]) -> Mapping[str, Any]:
    return MappingProxyType(dict(mapping or {}))


@dataclass(frozen=True)
class FetchOptions:
    """Immutable configuration bag for a request.

    The same instance is handed to every attempt of a retried call.
    """
    method: HttpMethod = HttpMethod.GET
    headers: Mapping[str, str] = field(default_factory=dict)
    params: Mapping[str, Any] = field(default_factory=dict)
    content: Optional[Union[str, bytes]] = None
    json: Any = None
    timeout: Optional[float] = None

    def __post_init__(self):
        if not isinstance(self.method, HttpMethod):
            object.__setattr__(self, "method", HttpMethod(str(self.method).upper()))
        object.__setattr__(self, "headers", _freeze(self.headers))
        object.__setattr__(self, "params", _freeze(self.params))

    def to_request_kwargs(self) -> Dict[str, Any]:
        """Convert options to ``httpx.AsyncClient.request`` keyword arguments."""
        kwargs: Dict[str, Any] = {"headers": dict(self.headers)}
        # An empty params mapping would re-encode the query string already in the URL
        if self.params:
            kwargs["params"] = dict(self.params)
        if self.content is not None:
            kwargs["content"] = self.content
        if self.json is not None:
            kwargs["json"] = self.json
        if self.timeout is not None:
            kwargs["timeout"] = self.timeout
        return kwargs


# A transport performs exactly one request and returns the response or raises
Transport = Callable[[URL, FetchOptions], Awaitable[httpx.Response]]

# Backoff sleep primitive, takes seconds
Sleep = Callable[[float], Awaitable[None]]
