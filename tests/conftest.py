"""Shared test fixtures and marker registration."""

from __future__ import annotations

from collections import deque
from typing import TYPE_CHECKING

import pytest

from restbind._models import Endpoint, RawResponse
from restbind._transport import Transport

if TYPE_CHECKING:
    from collections.abc import Callable

    from restbind._config import TransportConfig
    from restbind._models import RequestTemplate


def pytest_configure(config: object) -> None:
    """Register custom markers."""
    if isinstance(config, pytest.Config):
        config.addinivalue_line("markers", "integration: requires external services")


class FakeTransport(Transport):
    """Records requests and answers them from a queue of canned responses.

    An empty queue answers ``200`` with no body.
    """

    def __init__(self) -> None:
        self.requests: list[RequestTemplate] = []
        self.responses: list[RawResponse] = []
        self.closed = False
        self._queue: deque[tuple[int, dict[str, str], bytes] | BaseException] = deque()

    def reply(self, status: int = 200, headers: dict[str, str] | None = None, body: bytes | str = b"") -> None:
        raw = body.encode("utf-8") if isinstance(body, str) else body
        self._queue.append((status, dict(headers or {}), raw))

    def fail(self, error: BaseException) -> None:
        self._queue.append(error)

    @property
    def last(self) -> RequestTemplate:
        return self.requests[-1]

    def execute(self, request: RequestTemplate) -> RawResponse:
        self.requests.append(request)
        item = self._queue.popleft() if self._queue else (200, {}, b"")
        if isinstance(item, BaseException):
            raise item
        status, headers, body = item
        response = RawResponse(status, headers, body, request=request)
        self.responses.append(response)
        return response

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def transports() -> list[FakeTransport]:
    """Every transport created through ``transport_factory``, in creation order."""
    return []


@pytest.fixture
def transport_factory(transports: list[FakeTransport]) -> Callable[[TransportConfig], FakeTransport]:
    def factory(config: TransportConfig) -> FakeTransport:
        created = FakeTransport()
        transports.append(created)
        return created

    return factory


@pytest.fixture
def endpoint() -> Endpoint:
    return Endpoint.from_url("https://api.example.com")
