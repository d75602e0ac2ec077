"""Transport — executes a finished request and returns the raw response."""

from __future__ import annotations

import abc
import logging
import threading
from typing import TYPE_CHECKING

import httpx
from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from restbind._errors import (
    ConnectionFailed,
    InvocationCancelled,
    Redirected,
    TransportError,
    TransportTimeout,
)
from restbind._models import RawResponse

if TYPE_CHECKING:
    from types import TracebackType

    from restbind._models import RequestTemplate

log = logging.getLogger(__name__)


class Transport(abc.ABC):
    """Contract of the network collaborator.

    Implementations return 2xx/4xx/5xx responses and raise
    :class:`ConnectionFailed`, :class:`TransportTimeout`,
    :class:`InvocationCancelled` or :class:`Redirected` for everything else.
    Retries, if any, happen here and nowhere else.
    """

    @abc.abstractmethod
    def execute(self, request: RequestTemplate) -> RawResponse:
        """Send ``request`` and return the (unread) response."""

    def close(self) -> None:  # noqa: B027
        """Release resources. Default is a no-op."""

    def __enter__(self) -> Transport:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()


class HttpxTransport(Transport):
    """Transport over ``httpx.Client``.

    Redirects are not followed. Failures to establish a connection are
    retried with exponential backoff when the payload can be resent.
    :meth:`cancel` aborts exchanges in flight on other threads.

    :param client: Client to use; one is created (and owned) when omitted.
    :param timeout: Overall timeout in seconds for a created client.
    :param connect_timeout: Connect timeout in seconds for a created client.
    :param max_attempts: Attempts per request for connection failures (``1`` disables retry).
    :param retry_wait: Backoff multiplier in seconds.
    :param transport: Optional ``httpx`` transport for a created client (e.g. ``httpx.MockTransport``).
    """

    def __init__(
        self,
        client: httpx.Client | None = None,
        *,
        timeout: float = 30.0,
        connect_timeout: float = 10.0,
        max_attempts: int = 3,
        retry_wait: float = 1.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._owns_client = client is None
        self._client = client or httpx.Client(
            timeout=httpx.Timeout(timeout, connect=connect_timeout),
            follow_redirects=False,
            transport=transport,
        )
        self._max_attempts = max_attempts
        self._retry_wait = retry_wait
        self._cancelled = threading.Event()

    def __repr__(self) -> str:
        return f"HttpxTransport(max_attempts={self._max_attempts})"

    def _to_httpx(self, request: RequestTemplate) -> httpx.Request:
        payload = request.payload
        content = None
        if payload is not None:
            content = payload.content if payload.repeatable else payload.iter_chunks()
        return self._client.build_request(
            request.method,
            request.url,
            headers=request.wire_headers(),
            content=content,
        )

    def _send(self, request: RequestTemplate) -> httpx.Response:
        repeatable = request.payload is None or request.payload.repeatable
        attempts = self._max_attempts if repeatable else 1
        retrying = Retrying(
            retry=retry_if_exception_type(httpx.ConnectError),
            stop=stop_after_attempt(attempts),
            wait=wait_exponential(multiplier=self._retry_wait, max=10 * max(self._retry_wait, 1)),
            before_sleep=before_sleep_log(log, logging.WARNING),  # type: ignore[arg-type,unused-ignore]
            reraise=True,
        )
        return retrying(lambda: self._client.send(self._to_httpx(request), stream=True))

    def cancel(self) -> None:
        """Abort exchanges in flight and refuse new ones.

        Callers blocked in :meth:`execute` receive :class:`InvocationCancelled`.
        The transport cannot be used afterwards.
        """
        self._cancelled.set()
        self._client.close()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def _raise_if_cancelled(self, request: RequestTemplate, exc: BaseException | None = None) -> None:
        if self._cancelled.is_set():
            raise InvocationCancelled(
                f"{request.request_line} cancelled", operation=request.operation
            ) from exc

    def execute(self, request: RequestTemplate) -> RawResponse:
        self._raise_if_cancelled(request)
        log.debug("Sending %s", request.request_line)
        try:
            response = self._send(request)
        except httpx.TimeoutException as exc:
            self._raise_if_cancelled(request, exc)
            raise TransportTimeout(
                f"Timed out: {request.request_line}: {exc}", operation=request.operation
            ) from exc
        except httpx.ConnectError as exc:
            self._raise_if_cancelled(request, exc)
            raise ConnectionFailed(
                f"Cannot connect to {request.endpoint}: {exc}", operation=request.operation
            ) from exc
        except httpx.TransportError as exc:
            self._raise_if_cancelled(request, exc)
            raise TransportError(f"{request.request_line} failed: {exc}", operation=request.operation) from exc
        except RuntimeError as exc:
            # httpx refuses to send on a client closed by cancel()
            self._raise_if_cancelled(request, exc)
            raise

        log.debug("Received %d for %s", response.status_code, request.request_line)
        if 300 <= response.status_code < 400 and response.status_code != 304:
            location = response.headers.get("Location")
            response.close()
            raise Redirected(
                f"{request.request_line} redirected with {response.status_code}",
                operation=request.operation,
                status=response.status_code,
                location=location,
            )
        return RawResponse.from_httpx(response, request)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()
