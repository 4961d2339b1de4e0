"""Unit tests for the httpx transport and the end-to-end retry path over it."""

import json

import httpx
import pytest

from resilient_fetch.config import FetchSettings
from resilient_fetch.infrastructure.http.transport import HttpxTransport, secure_fetch
from resilient_fetch.infrastructure.resilience.retry import ResilientFetchClient
from resilient_fetch.shared.exceptions import ClientError
from resilient_fetch.shared.types import FetchOptions, HttpMethod


def mock_transport(handler) -> HttpxTransport:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpxTransport(client=client)


@pytest.mark.asyncio
async def test_request_options_are_forwarded(sample_url):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(201, json={"id": 1})

    transport = mock_transport(handler)
    options = FetchOptions(
        method=HttpMethod.POST,
        headers={"apikey": "anon-key", "Prefer": "return=representation"},
        params={"on_conflict": "id"},
        json={"rating": 5},
    )

    response = await transport("https://project.example.co/rest/v1/reviews", options)

    assert response.status_code == 201
    request = seen[0]
    assert request.method == "POST"
    assert request.headers["apikey"] == "anon-key"
    assert request.headers["prefer"] == "return=representation"
    assert request.url.params["on_conflict"] == "id"
    assert json.loads(request.content) == {"rating": 5}


@pytest.mark.asyncio
async def test_error_status_is_returned_not_raised(sample_url):
    transport = mock_transport(lambda request: httpx.Response(500))

    response = await transport(sample_url, FetchOptions())

    assert response.status_code == 500


@pytest.mark.asyncio
async def test_transport_errors_propagate(sample_url):
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    transport = mock_transport(handler)

    with pytest.raises(httpx.ConnectError):
        await transport(sample_url, FetchOptions())


@pytest.mark.asyncio
async def test_injected_client_is_not_closed():
    client = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(200)))

    async with HttpxTransport(client=client):
        pass

    assert not client.is_closed
    await client.aclose()


@pytest.mark.asyncio
async def test_owned_client_is_closed():
    transport = HttpxTransport()

    await transport.aclose()

    assert transport._client.is_closed


def test_from_settings_applies_timeouts():
    transport = HttpxTransport.from_settings(FetchSettings(timeout_seconds=12.0, connect_timeout_seconds=2.0))

    assert transport._client.timeout.read == 12.0
    assert transport._client.timeout.connect == 2.0


def test_explicit_zero_timeouts_are_kept():
    transport = HttpxTransport(timeout=0.0, connect_timeout=0.0)

    assert transport._client.timeout.read == 0.0
    assert transport._client.timeout.connect == 0.0


def test_omitted_timeouts_use_defaults():
    transport = HttpxTransport()

    assert transport._client.timeout.read == 30.0
    assert transport._client.timeout.connect == 5.0


@pytest.mark.asyncio
async def test_secure_fetch_is_single_shot(sample_url):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(429)

    response = await secure_fetch(sample_url, transport=mock_transport(handler))

    assert response.status_code == 429
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_client_retries_over_httpx_transport(sample_url, recording_sleep):
    statuses = iter([429, 429, 200])

    def handler(request):
        return httpx.Response(next(statuses), json=[])

    client = ResilientFetchClient(transport=mock_transport(handler), sleep=recording_sleep)

    response = await client.fetch(sample_url)

    assert response.status_code == 200
    assert response.json() == []
    assert recording_sleep.delays_ms == [1000, 2000]


@pytest.mark.asyncio
async def test_client_error_over_httpx_transport(sample_url, recording_sleep):
    def handler(request):
        return httpx.Response(401, json={"message": "Invalid API key"})

    client = ResilientFetchClient(transport=mock_transport(handler), sleep=recording_sleep)

    with pytest.raises(ClientError, match="HTTP 401: Unauthorized") as exc_info:
        await client.fetch(sample_url)

    assert exc_info.value.response.json() == {"message": "Invalid API key"}
    assert recording_sleep.delays == []


@pytest.mark.asyncio
async def test_client_from_settings(recording_sleep):
    settings = FetchSettings(
        max_attempts=5,
        base_backoff_ms=250,
        backoff_multiplier=3.0,
        retry_server_errors=True,
        timeout_seconds=9.0,
        connect_timeout_seconds=1.5,
    )

    client = ResilientFetchClient.from_settings(settings, sleep=recording_sleep, name="settings")

    assert client.name == "settings"
    assert client.policy.max_attempts == 5
    assert client.policy.base_backoff_ms == 250
    assert client.policy.backoff_multiplier == 3.0
    assert client.policy.retry_server_errors is True
    assert isinstance(client.transport, HttpxTransport)
    assert client.transport._client.timeout.read == 9.0
    assert client.transport._client.timeout.connect == 1.5

    await client.aclose()

    assert client.transport._client.is_closed
