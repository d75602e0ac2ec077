"""Request filters — request-to-request transformations applied after binding, before transport."""

from __future__ import annotations

import abc
import base64
import logging
import threading
import time
from email.utils import formatdate
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Iterator

    from restbind._models import RequestTemplate
    from restbind._types import Clock

log = logging.getLogger(__name__)


def rfc1123_date(timestamp: float) -> str:
    """Format ``timestamp`` as an HTTP date (``Sun, 08 Nov 2009 15:54:08 GMT``)."""
    return formatdate(timestamp, usegmt=True)


class TimestampCache:
    """A formatted current time, recomputed at most once per refresh interval.

    Shared by the filters of one client. Callers must use one :meth:`get`
    result for everything derived from the timestamp of a single request.

    :param refresh_seconds: Maximum age of the cached value; ``0`` disables caching.
    :param clock: Returns the current time in seconds since the epoch.
    :param formatter: Renders a timestamp.
    """

    def __init__(
        self,
        refresh_seconds: float = 1.0,
        *,
        clock: Clock = time.time,
        formatter: Callable[[float], str] = rfc1123_date,
    ) -> None:
        if refresh_seconds < 0:
            raise ValueError("refresh_seconds must not be negative")
        self.refresh_seconds = refresh_seconds
        self._clock = clock
        self._formatter = formatter
        self._lock = threading.Lock()
        self._value: str | None = None
        self._fetched_at = 0.0

    def __repr__(self) -> str:
        return f"TimestampCache(refresh_seconds={self.refresh_seconds!r})"

    def get(self) -> str:
        now = self._clock()
        with self._lock:
            if self._value is None or now - self._fetched_at >= self.refresh_seconds or now < self._fetched_at:
                self._value = self._formatter(now)
                self._fetched_at = now
            return self._value


class RequestFilter(abc.ABC):
    """Transforms a fully bound request, e.g. to authenticate it."""

    @abc.abstractmethod
    def filter(self, request: RequestTemplate) -> RequestTemplate:
        """Return the request to continue with."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class FilterChain:
    """Ordered, immutable sequence of filters attached to a client.

    :param filters: Filters in application order.
    """

    __slots__ = ("_filters",)

    def __init__(self, filters: Iterable[RequestFilter] = ()) -> None:
        object.__setattr__(self, "_filters", tuple(filters))

    def apply(self, request: RequestTemplate) -> RequestTemplate:
        for request_filter in self._filters:
            log.debug("Applying %r to %s", request_filter, request.request_line)
            request = request_filter.filter(request)
        return request

    def then(self, request_filter: RequestFilter) -> FilterChain:
        """Return a new chain with ``request_filter`` appended."""
        return FilterChain((*self._filters, request_filter))

    def __iter__(self) -> Iterator[RequestFilter]:
        return iter(self._filters)

    def __len__(self) -> int:
        return len(self._filters)

    def __repr__(self) -> str:
        return f"FilterChain({list(self._filters)!r})"

    def __setattr__(self, name: str, value: object) -> None:
        raise AttributeError("FilterChain is immutable")


class DateHeaderFilter(RequestFilter):
    """Stamps the request with the cached current time.

    :param timestamps: Shared timestamp cache.
    :param header: Header to set.
    """

    def __init__(self, timestamps: TimestampCache, header: str = "Date") -> None:
        self._timestamps = timestamps
        self._header = header

    def filter(self, request: RequestTemplate) -> RequestTemplate:
        request.set_header(self._header, self._timestamps.get())
        return request


class BasicAuthenticationFilter(RequestFilter):
    """Injects an HTTP basic ``Authorization`` header.

    :param identity: User name.
    :param credential: Password.
    """

    def __init__(self, identity: str, credential: str) -> None:
        token = base64.b64encode(f"{identity}:{credential}".encode()).decode("ascii")
        self._value = f"Basic {token}"

    def filter(self, request: RequestTemplate) -> RequestTemplate:
        request.set_header("Authorization", self._value)
        return request


class TokenHeaderFilter(RequestFilter):
    """Injects a token obtained from ``supplier`` into ``header``.

    The supplier is called per request, so it may refresh an expired session.

    :param header: Header carrying the token.
    :param supplier: Returns the current token.
    """

    def __init__(self, header: str, supplier: Callable[[], str]) -> None:
        self._header = header
        self._supplier = supplier

    def filter(self, request: RequestTemplate) -> RequestTemplate:
        request.set_header(self._header, self._supplier())
        return request
