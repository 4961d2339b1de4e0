"""
Retry handling for HTTP requests.

This module wraps a single-shot transport with a bounded retry loop:
rate-limited responses (429) are retried after the server's ``retry-after``
delay or a linear backoff, transient transport failures are retried with
exponential backoff, and client errors fail immediately.
"""

import asyncio
import re
from dataclasses import dataclass
from typing import Any, Awaitable, Optional, Tuple, Type

import httpx
import structlog

from resilient_fetch.config import FetchSettings
from resilient_fetch.infrastructure.http.transport import HttpxTransport
from resilient_fetch.infrastructure.logging.sanitization import LogSanitizer
from resilient_fetch.shared.contracts import require, positive_int, non_empty_url, non_negative
from resilient_fetch.shared.exceptions import (
    DEFAULT_RETRYABLE_EXCEPTIONS, ConfigurationError, ResponseStatusError, RetriesExhaustedError,
    RequestCancelledError, is_client_error, is_retryable_error
)
from resilient_fetch.shared.types import (
    URL, FetchOptions, Milliseconds, OutcomeKind, Sleep, Transport
)

logger = structlog.get_logger(__name__)

RATE_LIMITED_STATUS = 429

# Leading integer, as in "2", " 10 " or "2.5"; an HTTP-date has none
_RETRY_AFTER_SECONDS = re.compile(r"\s*([-+]?\d+)")


@dataclass(frozen=True)
class RetryPolicy:
    """Configuration for retry behavior."""
    max_attempts: int = 3
    base_backoff_ms: int = 1000
    backoff_multiplier: float = 2.0
    retry_server_errors: bool = False  # 5xx responses fail fast unless enabled
    retryable_exceptions: Tuple[Type[BaseException], ...] = DEFAULT_RETRYABLE_EXCEPTIONS

    def __post_init__(self):
        if not positive_int(self.max_attempts):
            raise ConfigurationError(f"max_attempts must be a positive integer, got: {self.max_attempts}")
        if not non_negative(self.base_backoff_ms):
            raise ConfigurationError(f"base_backoff_ms must be non-negative, got: {self.base_backoff_ms}")
        if self.backoff_multiplier < 1:
            raise ConfigurationError(f"backoff_multiplier must be at least 1, got: {self.backoff_multiplier}")

    def backoff_delay_ms(self, attempt_index: int) -> Milliseconds:
        """Exponential delay after a transient failure on ``attempt_index`` (zero-based)."""
        return Milliseconds(int(self.base_backoff_ms * self.backoff_multiplier ** attempt_index))

    def rate_limit_delay_ms(self, attempt_index: int, retry_after: Optional[str]) -> Milliseconds:
        """Delay after a 429: the server's ``retry-after`` seconds, else linear backoff."""
        seconds = parse_retry_after(retry_after)
        if seconds is not None:
            return Milliseconds(seconds * 1000)
        return Milliseconds((attempt_index + 1) * self.base_backoff_ms)


def parse_retry_after(value: Optional[str]) -> Optional[int]:
    """Parse the leading whole seconds of a ``retry-after`` header.

    Anything after the leading integer is ignored, so ``"2.5"`` is 2 seconds.
    HTTP-date values and garbage yield ``None``. Negative values clamp to 0.
    """
    if value is None:
        return None
    match = _RETRY_AFTER_SECONDS.match(value)
    if match is None:
        return None
    return max(int(match.group(1)), 0)


@dataclass(frozen=True)
class AttemptOutcome:
    """Result of a single attempt, alive only inside the retry loop."""
    kind: OutcomeKind
    response: Optional[httpx.Response] = None
    error: Optional[BaseException] = None
    delay_ms: Optional[Milliseconds] = None

    @property
    def retryable(self) -> bool:
        return self.kind in (OutcomeKind.RATE_LIMITED, OutcomeKind.TRANSIENT_ERROR)


def classify_response(response: httpx.Response, attempt_index: int, policy: RetryPolicy) -> AttemptOutcome:
    """Classify a response the transport returned."""
    if response.is_success:
        return AttemptOutcome(OutcomeKind.SUCCESS, response=response)

    if response.status_code == RATE_LIMITED_STATUS:
        return AttemptOutcome(
            OutcomeKind.RATE_LIMITED,
            response=response,
            delay_ms=policy.rate_limit_delay_ms(attempt_index, response.headers.get("retry-after")),
        )

    error = ResponseStatusError.from_response(response)
    if response.is_client_error:
        return AttemptOutcome(OutcomeKind.CLIENT_ERROR, response=response, error=error)

    if response.is_server_error:
        if policy.retry_server_errors:
            return AttemptOutcome(
                OutcomeKind.TRANSIENT_ERROR,
                response=response,
                error=error,
                delay_ms=policy.backoff_delay_ms(attempt_index),
            )
        return AttemptOutcome(OutcomeKind.SERVER_ERROR, response=response, error=error)

    return AttemptOutcome(OutcomeKind.FATAL, response=response, error=error)


def classify_exception(exception: BaseException, attempt_index: int, policy: RetryPolicy) -> AttemptOutcome:
    """Classify an exception the transport raised instead of returning a response."""
    if is_client_error(exception):
        return AttemptOutcome(OutcomeKind.CLIENT_ERROR, error=exception)

    if is_retryable_error(exception, policy.retryable_exceptions):
        return AttemptOutcome(
            OutcomeKind.TRANSIENT_ERROR,
            error=exception,
            delay_ms=policy.backoff_delay_ms(attempt_index),
        )

    return AttemptOutcome(OutcomeKind.FATAL, error=exception)


class ResilientFetchClient:
    """HTTP client wrapper with retry, backoff and rate-limit handling.

    Holds configuration only; every ``fetch`` call keeps its own attempt
    counter, so one instance can serve concurrent callers.
    """

    def __init__(
        self,
        policy: Optional[RetryPolicy] = None,
        transport: Optional[Transport] = None,
        sleep: Optional[Sleep] = None,
        name: str = "fetch",
    ):
        """
        Initialize resilient fetch client.

        Args:
            policy: Retry configuration
            transport: Single-shot request function, an ``HttpxTransport`` if omitted
            sleep: Backoff sleep taking seconds, ``asyncio.sleep`` if omitted
            name: Client identifier used in log events
        """
        self.name = name
        self.policy = policy or RetryPolicy()
        self._owns_transport = transport is None
        self.transport = transport or HttpxTransport()
        self._sleep = sleep or asyncio.sleep

    @classmethod
    def from_settings(cls, settings: FetchSettings, **kwargs: Any) -> "ResilientFetchClient":
        """Build a client whose policy and httpx transport both come from ``settings``.

        The client owns the created transport and ``aclose`` closes it.
        """
        client = cls(policy=settings.to_retry_policy(), transport=HttpxTransport.from_settings(settings), **kwargs)
        client._owns_transport = True
        return client

    @require(
        lambda url, max_attempts, **_: non_empty_url(url) and (max_attempts is None or positive_int(max_attempts)),
        "Request URL must be non-empty and max_attempts a positive integer"
    )
    async def fetch(
        self,
        url: URL,
        options: Optional[FetchOptions] = None,
        max_attempts: Optional[int] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> httpx.Response:
        """
        Perform a request, retrying rate limits and transient failures.

        Args:
            url: Request target
            options: Request options, reused unchanged for every attempt
            max_attempts: Total attempt budget, the policy's if omitted
            cancel_event: When set, aborts the in-flight attempt and any pending delay

        Returns:
            The first 2xx response

        Raises:
            ClientError: On a 4xx response other than 429, without retrying
            ResponseStatusError: On any other non-2xx, non-429 response
            RequestCancelledError: If ``cancel_event`` is set
            RetriesExhaustedError: If every attempt was rate limited
            Exception: The last transport error once attempts run out, or at once
                if it falls outside ``policy.retryable_exceptions``
        """
        options = options or FetchOptions()
        attempts = max_attempts if max_attempts is not None else self.policy.max_attempts
        safe_url = LogSanitizer.sanitize_url(url)
        last_error: Optional[BaseException] = None

        for attempt in range(attempts):
            if cancel_event is not None and cancel_event.is_set():
                raise self._cancelled(url, attempt)

            outcome = await self._attempt(url, options, attempt, cancel_event)

            if outcome.kind is OutcomeKind.SUCCESS:
                log = logger.info if attempt > 0 else logger.debug
                log(
                    "Request succeeded",
                    client=self.name,
                    url=safe_url,
                    attempt=attempt + 1,
                    status_code=outcome.response.status_code
                )
                return outcome.response

            if not outcome.retryable:
                logger.warning(
                    "Non-retryable failure",
                    client=self.name,
                    url=safe_url,
                    attempt=attempt + 1,
                    kind=outcome.kind.value,
                    error=str(outcome.error)
                )
                raise outcome.error

            if outcome.kind is OutcomeKind.RATE_LIMITED:
                logger.warning(
                    "Rate limited",
                    client=self.name,
                    url=safe_url,
                    attempt=attempt + 1,
                    max_attempts=attempts,
                    delay_ms=outcome.delay_ms
                )
            else:
                last_error = outcome.error
                logger.warning(
                    "Retryable failure",
                    client=self.name,
                    url=safe_url,
                    attempt=attempt + 1,
                    max_attempts=attempts,
                    exception=type(outcome.error).__name__,
                    error=str(outcome.error),
                    delay_ms=outcome.delay_ms
                )

            # No delay once the budget is spent
            if attempt < attempts - 1:
                await self._run_cancellable(self._sleep(outcome.delay_ms / 1000), url, attempt, cancel_event)

        logger.error(
            "All retry attempts exhausted",
            client=self.name,
            url=safe_url,
            max_attempts=attempts,
            last_exception=str(last_error) if last_error else None
        )

        if last_error is not None:
            raise last_error
        raise RetriesExhaustedError(attempts)

    async def _attempt(
        self,
        url: URL,
        options: FetchOptions,
        attempt: int,
        cancel_event: Optional[asyncio.Event],
    ) -> AttemptOutcome:
        try:
            response = await self._run_cancellable(self.transport(url, options), url, attempt, cancel_event)
        except RequestCancelledError:
            raise
        except Exception as e:
            return classify_exception(e, attempt, self.policy)
        return classify_response(response, attempt, self.policy)

    async def _run_cancellable(
        self,
        awaitable: Awaitable[Any],
        url: URL,
        attempt: int,
        cancel_event: Optional[asyncio.Event],
    ) -> Any:
        """Await ``awaitable`` unless ``cancel_event`` fires first."""
        if cancel_event is None:
            return await awaitable

        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(cancel_event.wait())
        try:
            done, _ = await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
            if not task.done():
                task.cancel()

        if task in done:
            return task.result()

        # Let the aborted attempt unwind before reporting
        await asyncio.gather(task, return_exceptions=True)
        raise self._cancelled(url, attempt)

    def _cancelled(self, url: URL, attempt: int) -> RequestCancelledError:
        safe_url = LogSanitizer.sanitize_url(url)
        logger.info("Request cancelled", client=self.name, url=safe_url, attempt=attempt + 1)
        return RequestCancelledError(safe_url)

    async def aclose(self) -> None:
        """Close the transport if this client created it."""
        if self._owns_transport:
            await self.transport.aclose()

    async def __aenter__(self) -> "ResilientFetchClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()


async def fetch_with_retry(
    url: URL,
    options: Optional[FetchOptions] = None,
    max_attempts: int = 3,
    *,
    policy: Optional[RetryPolicy] = None,
    transport: Optional[Transport] = None,
    sleep: Optional[Sleep] = None,
    cancel_event: Optional[asyncio.Event] = None,
) -> httpx.Response:
    """
    Perform one request with retries using a short-lived client.

    Args:
        url: Request target, must be non-empty
        options: Request options, a plain GET if omitted
        max_attempts: Total attempt budget (first try plus retries)
        policy: Backoff configuration; its ``max_attempts`` is overridden
        transport: Single-shot request function
        sleep: Backoff sleep taking seconds
        cancel_event: Optional cancellation signal

    Returns:
        The first 2xx response
    """
    async with ResilientFetchClient(policy=policy, transport=transport, sleep=sleep) as client:
        return await client.fetch(url, options, max_attempts=max_attempts, cancel_event=cancel_event)


@require(lambda retries, **_: positive_int(retries), "retries must be a positive integer")
def create_fetch(retries: int = 3, **client_kwargs: Any) -> Transport:
    """
    Build a fetch function with a fixed attempt budget.

    The returned coroutine function has the transport signature
    ``fetch(url, options=None)`` so it can be handed to SDKs that accept a
    custom fetch implementation. Its ``client`` attribute exposes the
    underlying ``ResilientFetchClient`` for closing.

    Args:
        retries: Total attempt budget per request
        **client_kwargs: Forwarded to ``ResilientFetchClient``

    Returns:
        Async fetch function
    """
    client = ResilientFetchClient(**client_kwargs)

    async def fetch(url: URL, options: Optional[FetchOptions] = None) -> httpx.Response:
        return await client.fetch(url, options, max_attempts=retries)

    fetch.client = client
    return fetch
