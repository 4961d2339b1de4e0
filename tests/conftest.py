"""
Global pytest configuration and fixtures for resilient fetch tests.
"""
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import httpx
import pytest

from resilient_fetch.shared.types import FetchOptions


SAMPLE_URL = "https://project.example.co/rest/v1/reviews?select=*"


def make_response(
    status_code: int,
    headers: Optional[Dict[str, str]] = None,
    url: str = SAMPLE_URL,
    content: bytes = b"",
) -> httpx.Response:
    """Build a response bound to a request, as a transport would return it."""
    return httpx.Response(
        status_code,
        headers=headers,
        content=content,
        request=httpx.Request("GET", url),
    )


class ScriptedTransport:
    """Transport double replaying a fixed script of responses and exceptions."""

    def __init__(self, script: Sequence[Union[httpx.Response, BaseException]]):
        self.script = list(script)
        self.calls: List[Tuple[Any, FetchOptions]] = []

    async def __call__(self, url, options: FetchOptions) -> httpx.Response:
        self.calls.append((url, options))
        if len(self.calls) > len(self.script):
            raise AssertionError(f"Unexpected attempt #{len(self.calls)}")
        step = self.script[len(self.calls) - 1]
        if isinstance(step, BaseException):
            raise step
        return step

    @property
    def call_count(self) -> int:
        return len(self.calls)


class RecordingSleep:
    """Sleep double that records requested delays without waiting."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)

    @property
    def delays_ms(self) -> List[int]:
        return [round(seconds * 1000) for seconds in self.delays]


@pytest.fixture
def sample_url() -> str:
    """Sample request target for testing."""
    return SAMPLE_URL


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    """Sleep that records delays instead of waiting."""
    return RecordingSleep()


@pytest.fixture
def scripted_transport():
    """Factory for transports replaying a script."""
    def factory(*script: Union[httpx.Response, BaseException]) -> ScriptedTransport:
        return ScriptedTransport(script)
    return factory


@pytest.fixture
def network_error() -> httpx.ConnectError:
    """Transport-level failure as raised by httpx."""
    return httpx.ConnectError("Connection reset by peer", request=httpx.Request("GET", SAMPLE_URL))


@pytest.fixture
def http_response():
    """Factory for responses bound to a request."""
    return make_response
