"""Single-shot HTTP transport built on httpx."""

from typing import Any, Mapping, Optional

import httpx
import structlog

from resilient_fetch.config import FetchSettings
from resilient_fetch.infrastructure.logging.sanitization import LogSanitizer, sanitize_headers
from resilient_fetch.shared.types import URL, FetchOptions, Transport

logger = structlog.get_logger(__name__)

DEFAULT_CONNECT_TIMEOUT = 5.0
DEFAULT_TOTAL_TIMEOUT = 30.0


class HttpxTransport:
    """Wrapper around :class:`httpx.AsyncClient` performing one request per call.

    Transport failures (``httpx.TransportError`` and subclasses) propagate
    unchanged; non-2xx responses are returned, not raised. Retrying is the
    job of the resilience layer.
    """

    def __init__(
        self,
        *,
        base_url: Optional[str] = None,
        headers: Optional[Mapping[str, str]] = None,
        timeout: Optional[float] = None,
        connect_timeout: Optional[float] = None,
        follow_redirects: bool = True,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._owns_client = client is None
        self._client = client if client is not None else httpx.AsyncClient(
            base_url=base_url or "",
            headers=dict(headers or {}),
            timeout=httpx.Timeout(
                timeout if timeout is not None else DEFAULT_TOTAL_TIMEOUT,
                connect=connect_timeout if connect_timeout is not None else DEFAULT_CONNECT_TIMEOUT,
            ),
            follow_redirects=follow_redirects,
        )

    @classmethod
    def from_settings(cls, settings: FetchSettings, **kwargs: Any) -> "HttpxTransport":
        return cls(
            timeout=settings.timeout_seconds,
            connect_timeout=settings.connect_timeout_seconds,
            **kwargs,
        )

    async def __call__(self, url: URL, options: FetchOptions) -> httpx.Response:
        logger.debug(
            "Sending request",
            method=options.method.value,
            url=LogSanitizer.sanitize_url(url),
            headers=sanitize_headers(options.headers),
        )
        return await self._client.request(
            options.method.value,
            url,
            **options.to_request_kwargs(),
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "HttpxTransport":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()


async def secure_fetch(
    url: URL,
    options: Optional[FetchOptions] = None,
    transport: Optional[Transport] = None,
) -> httpx.Response:
    """
    Perform a single request without retries.

    Certificate pinning is not available on this transport; the request
    goes out over the regular TLS verification of httpx.

    Args:
        url: Request target
        options: Request options, defaults to a plain GET
        transport: Transport to use, a throwaway ``HttpxTransport`` if omitted

    Returns:
        The response, whatever its status
    """
    options = options or FetchOptions()
    logger.debug("Certificate pinning unavailable, using unpinned transport", url=LogSanitizer.sanitize_url(url))

    if transport is not None:
        return await transport(url, options)

    async with HttpxTransport() as default_transport:
        return await default_transport(url, options)
