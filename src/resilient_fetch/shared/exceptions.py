"""
Custom exceptions for the resilient fetch client.

This module defines the error taxonomy surfaced to callers of the retry
wrapper, providing clear error hierarchies and detailed error information
for debugging.
"""

from typing import Optional, Dict, Any, Tuple, Type

import httpx


class FetchError(Exception):
    """Base exception for all resilient fetch errors."""
    
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None, error_code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.error_code = error_code


class ConfigurationError(FetchError):
    """Raised when there are configuration or setup issues."""
    pass


class ContractViolationError(FetchError):
    """Base class for contract programming violations."""
    pass


class PreconditionError(ContractViolationError):
    """Raised when a function precondition is violated."""
    pass


class ResponseStatusError(FetchError):
    """Raised when the server answers with a non-ok, non-429 status."""
    
    def __init__(
        self,
        status_code: int,
        status_text: str = "",
        response: Optional[httpx.Response] = None,
        **kwargs
    ):
        super().__init__(f"HTTP {status_code}: {status_text}", **kwargs)
        self.status_code = status_code
        self.status_text = status_text
        self.response = response

    @classmethod
    def from_response(cls, response: httpx.Response) -> "ResponseStatusError":
        """Build the most specific status error for a response."""
        if 400 <= response.status_code < 500:
            error_cls = ClientError
        elif 500 <= response.status_code < 600:
            error_cls = ServerError
        else:
            error_cls = cls
        return error_cls(response.status_code, response.reason_phrase, response=response)


class ClientError(ResponseStatusError):
    """Raised for 4xx responses other than 429. Never retried."""
    pass


class ServerError(ResponseStatusError):
    """Raised for 5xx responses."""
    pass


class TransientTransportError(FetchError):
    """Raised by transports for failures that are safe to retry."""
    
    def __init__(self, message: str, cause: Optional[BaseException] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.cause = cause


class RetriesExhaustedError(FetchError):
    """Raised when every attempt was rate limited and no error was recorded."""
    
    def __init__(self, attempts: int, **kwargs):
        super().__init__("Failed to fetch after retries", details={"attempts": attempts}, **kwargs)
        self.attempts = attempts


class RequestCancelledError(FetchError):
    """Raised when a request is cancelled by its caller."""
    
    def __init__(self, url: str, **kwargs):
        super().__init__(f"Request cancelled: {url}", **kwargs)
        self.url = url


# Any failure raised by a transport is transient unless a policy narrows it
DEFAULT_RETRYABLE_EXCEPTIONS: Tuple[Type[BaseException], ...] = (Exception,)


def status_of(exception: BaseException) -> Optional[int]:
    """Extract an HTTP status code carried by an exception, if any."""
    if isinstance(exception, ResponseStatusError):
        return exception.status_code
    if isinstance(exception, httpx.HTTPStatusError):
        return exception.response.status_code
    return None


def is_client_error(exception: BaseException) -> bool:
    """Determine if an exception describes a 4xx client error."""
    status = status_of(exception)
    return status is not None and 400 <= status < 500


def is_retryable_error(
    exception: BaseException,
    retryable_exceptions: Tuple[Type[BaseException], ...] = DEFAULT_RETRYABLE_EXCEPTIONS
) -> bool:
    """Determine if an exception raised by a transport is retryable."""
    # Don't retry client errors, whichever path they arrived on
    if is_client_error(exception):
        return False
    
    if isinstance(exception, httpx.HTTPStatusError):
        return True
    
    return isinstance(exception, retryable_exceptions)
