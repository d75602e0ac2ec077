"""Wire-level models: endpoints, payloads, request templates and raw responses."""

from __future__ import annotations

import base64
import dataclasses
from typing import TYPE_CHECKING, Any
from urllib.parse import urlsplit

import httpx

from restbind._errors import BindingError
from restbind._uri import query_string

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Iterator
    from types import TracebackType

    from restbind._types import HeaderItems, PayloadContent, QueryItems

DEFAULT_CONTENT_TYPE = "application/unknown"


def check_header_value(name: str, value: str, operation: str | None = None) -> str:
    """Return ``value`` if it can be sent as an HTTP header value.

    :raises BindingError: For line breaks or characters outside ASCII.
    """
    if "\r" in value or "\n" in value:
        raise BindingError(f"Header {name!r} value contains a line break", operation=operation)
    try:
        value.encode("ascii")
    except UnicodeEncodeError as exc:
        raise BindingError(f"Header {name!r} value is not ASCII: {value!r}", operation=operation) from exc
    return value


@dataclasses.dataclass(frozen=True)
class Endpoint:
    """The physical base address a request is sent to.

    :param scheme: ``"http"`` or ``"https"``.
    :param host: Host name, without port.
    :param port: Explicit port, or ``None`` for the scheme default.
    :param base_path: Path prefix prepended to every request path (no trailing ``/``).
    :param region: Region this endpoint serves, when the provider has regions.
    """

    scheme: str
    host: str
    port: int | None = None
    base_path: str = ""
    region: str | None = None

    def __post_init__(self) -> None:
        if self.scheme not in ("http", "https"):
            raise ValueError(f"Unsupported scheme {self.scheme!r}; expected 'http' or 'https'")
        if not self.host:
            raise ValueError("Endpoint host must be a non-empty string")
        object.__setattr__(self, "base_path", self.base_path.rstrip("/"))

    @classmethod
    def from_url(cls, url: str, *, region: str | None = None) -> Endpoint:
        """Build an endpoint from an absolute URL. Query and fragment are ignored."""
        parts = urlsplit(url)
        if not parts.scheme or not parts.hostname:
            raise ValueError(f"Endpoint URL must be absolute: {url!r}")
        return cls(
            scheme=parts.scheme,
            host=parts.hostname,
            port=parts.port,
            base_path=parts.path,
            region=region,
        )

    @property
    def netloc(self) -> str:
        """``host[:port]``, as sent in the ``Host`` header."""
        if self.port is None:
            return self.host
        return f"{self.host}:{self.port}"

    @property
    def base_url(self) -> str:
        return f"{self.scheme}://{self.netloc}{self.base_path}"

    def with_host_prefix(self, prefix: str) -> Endpoint:
        """Return a copy whose host is ``prefix.host``."""
        return dataclasses.replace(self, host=f"{prefix}.{self.host}")

    def __str__(self) -> str:
        return self.base_url


@dataclasses.dataclass(frozen=True)
class Payload:
    """Request body plus the metadata describing it.

    :param content: Bytes, a binary stream, or an iterable of byte chunks.
    :param content_type: MIME type sent as ``Content-Type``.
    :param content_length: Length in bytes, or ``None`` for chunked transfer.
        Always set for ``bytes`` content.
    :param content_md5: Raw MD5 digest sent base64-encoded as ``Content-MD5``.
    """

    content: PayloadContent
    content_type: str = DEFAULT_CONTENT_TYPE
    content_length: int | None = None
    content_md5: bytes | None = None

    def __post_init__(self) -> None:
        if isinstance(self.content, bytes):
            if self.content_length is not None and self.content_length != len(self.content):
                raise ValueError(
                    f"content_length {self.content_length} does not match {len(self.content)} bytes of content"
                )
            object.__setattr__(self, "content_length", len(self.content))
        elif self.content_length is not None and self.content_length < 0:
            raise ValueError("content_length must not be negative")

    @classmethod
    def from_bytes(
        cls, data: bytes, content_type: str = DEFAULT_CONTENT_TYPE, *, content_md5: bytes | None = None
    ) -> Payload:
        return cls(content=data, content_type=content_type, content_md5=content_md5)

    @classmethod
    def from_string(cls, text: str, content_type: str = DEFAULT_CONTENT_TYPE) -> Payload:
        return cls(content=text.encode("utf-8"), content_type=content_type)

    @classmethod
    def from_stream(
        cls,
        stream: PayloadContent,
        content_type: str = DEFAULT_CONTENT_TYPE,
        *,
        content_length: int | None = None,
    ) -> Payload:
        return cls(content=stream, content_type=content_type, content_length=content_length)

    @property
    def repeatable(self) -> bool:
        """``True`` if the content can be sent more than once."""
        return isinstance(self.content, bytes)

    @property
    def chunked(self) -> bool:
        return self.content_length is None

    def read(self) -> bytes:
        """Return the full content. Consumes non-repeatable content."""
        if isinstance(self.content, bytes):
            return self.content
        reader = getattr(self.content, "read", None)
        if reader is not None:
            return bytes(reader())
        return b"".join(self.content)  # type: ignore[arg-type]

    def iter_chunks(self, chunk_size: int = 65536) -> Iterator[bytes]:
        if isinstance(self.content, bytes):
            yield self.content
            return
        reader = getattr(self.content, "read", None)
        if reader is not None:
            while chunk := reader(chunk_size):
                yield chunk
            return
        yield from self.content  # type: ignore[misc]

    def headers(self) -> HeaderItems:
        """Entity headers derived from this payload."""
        items: HeaderItems = [("Content-Type", self.content_type)]
        if self.content_length is not None:
            items.append(("Content-Length", str(self.content_length)))
        if self.content_md5 is not None:
            items.append(("Content-MD5", base64.b64encode(self.content_md5).decode("ascii")))
        return items


class RequestTemplate:
    """A request being assembled for one invocation.

    Owned by a single invocation; binders and filters mutate it in place and
    return it. Headers keep their order and case and may repeat.

    :param method: HTTP verb.
    :param endpoint: Base endpoint.
    :param path: Percent-encoded path, starting with ``/``.
    :param query: Encoded query items; a ``None`` value is a bare flag.
    :param headers: Non-entity headers.
    :param payload: Optional body.
    :param arguments: The invocation's bound arguments, by parameter name.
    :param operation: Name of the operation being invoked.
    """

    def __init__(
        self,
        method: str,
        endpoint: Endpoint,
        path: str = "/",
        *,
        query: QueryItems | None = None,
        headers: HeaderItems | None = None,
        payload: Payload | None = None,
        arguments: dict[str, object] | None = None,
        operation: str | None = None,
    ) -> None:
        self.method = method.upper()
        self.endpoint = endpoint
        self.path = path if path.startswith("/") else f"/{path}"
        self.query: QueryItems = list(query or [])
        self.headers = httpx.Headers(headers or [])
        self.payload = payload
        self.arguments: dict[str, object] = dict(arguments or {})
        self.operation = operation
        self.attributes: dict[str, Any] = {}

    def __repr__(self) -> str:
        return f"RequestTemplate({self.request_line!r})"

    # region: addressing

    @property
    def url(self) -> str:
        url = f"{self.endpoint.base_url}{self.path}"
        if self.query:
            url = f"{url}?{query_string(self.query)}"
        return url

    @property
    def request_line(self) -> str:
        return f"{self.method} {self.url} HTTP/1.1"

    @property
    def resource_path(self) -> str:
        """Path including the endpoint's base path, without the query."""
        return f"{self.endpoint.base_path}{self.path}"

    def set_endpoint(self, endpoint: Endpoint) -> None:
        """Replace the endpoint and keep the ``Host`` header in step with it."""
        self.endpoint = endpoint
        if "Host" in self.headers:
            self.headers["Host"] = endpoint.netloc

    # endregion

    # region: headers

    def add_header(self, name: str, value: str) -> None:
        """Append a header, keeping any existing values for ``name``."""
        check_header_value(name, value, self.operation)
        self.headers = httpx.Headers([*self.headers.raw, (name.encode("ascii"), value.encode("utf-8"))])

    def set_header(self, name: str, value: str) -> None:
        """Set a header, replacing any existing values for ``name``."""
        check_header_value(name, value, self.operation)
        self.headers[name] = value

    def remove_header(self, name: str) -> None:
        if name in self.headers:
            del self.headers[name]

    def header_items(self) -> HeaderItems:
        """Headers as ``(name, value)`` pairs with their original case."""
        return [(k.decode("ascii"), v.decode("utf-8")) for k, v in self.headers.raw]

    # endregion

    # region: query

    def add_query(self, name: str, value: str | None = None) -> None:
        self.query.append((name, value))

    def set_query(self, name: str, value: str | None = None) -> None:
        """Set a query item, replacing any existing items named ``name`` in place."""
        items: QueryItems = []
        replaced = False
        for existing, current in self.query:
            if existing != name:
                items.append((existing, current))
            elif not replaced:
                items.append((name, value))
                replaced = True
        if not replaced:
            items.append((name, value))
        self.query = items

    def get_query(self, name: str) -> str | None:
        for existing, value in self.query:
            if existing == name:
                return value
        return None

    def has_query(self, name: str) -> bool:
        return any(existing == name for existing, _ in self.query)

    # endregion

    def set_payload(self, payload: Payload | None) -> None:
        """Replace the body, discarding any previously bound payload."""
        self.payload = payload

    def wire_headers(self) -> HeaderItems:
        """All headers to send: request headers followed by entity headers from the payload."""
        items = self.header_items()
        if self.payload is not None:
            present = {name.lower() for name, _ in items}
            items.extend((k, v) for k, v in self.payload.headers() if k.lower() not in present)
        return items


class RawResponse:
    """Status, headers and a body stream as returned by a transport.

    The body must be consumed or released exactly once; :meth:`close` is
    idempotent and runs the transport's release hook.

    :param status: HTTP status code.
    :param headers: Response headers.
    :param body: Bytes, an iterable of byte chunks, or ``None``.
    :param reason: Reason phrase.
    :param request: The request that produced this response.
    :param on_close: Called once when the response is closed.
    """

    def __init__(
        self,
        status: int,
        headers: HeaderItems | dict[str, str] | None = None,
        body: bytes | Iterable[bytes] | None = None,
        *,
        reason: str = "",
        request: RequestTemplate | None = None,
        on_close: Callable[[], None] | None = None,
    ) -> None:
        self.status = status
        self.reason = reason
        self.headers = httpx.Headers(headers or [])
        self.request = request
        if body is None:
            self._chunks: Iterator[bytes] = iter(())
        elif isinstance(body, bytes):
            self._chunks = iter((body,))
        else:
            self._chunks = iter(body)
        self._on_close = on_close
        self._closed = False

    @classmethod
    def from_httpx(cls, response: httpx.Response, request: RequestTemplate | None = None) -> RawResponse:
        """Wrap a streamed ``httpx.Response``; closing the wrapper closes the response."""
        return cls(
            response.status_code,
            headers=[(k.decode("latin-1"), v.decode("latin-1")) for k, v in response.headers.raw],
            body=response.iter_bytes(),
            reason=response.reason_phrase,
            request=request,
            on_close=response.close,
        )

    def __repr__(self) -> str:
        return f"RawResponse(status={self.status}, closed={self._closed})"

    @property
    def is_success(self) -> bool:
        return 200 <= self.status < 300

    @property
    def is_redirect(self) -> bool:
        return 300 <= self.status < 400

    @property
    def closed(self) -> bool:
        return self._closed

    def iter_bytes(self) -> Iterator[bytes]:
        if self._closed:
            raise RuntimeError("Response body has already been released")
        yield from self._chunks

    def read(self, limit: int | None = None) -> bytes:
        """Read the body (at most ``limit`` bytes) and close the response."""
        chunks: list[bytes] = []
        size = 0
        try:
            for chunk in self.iter_bytes():
                chunks.append(chunk)
                size += len(chunk)
                if limit is not None and size >= limit:
                    break
        finally:
            self.close()
        data = b"".join(chunks)
        return data if limit is None else data[:limit]

    def release(self) -> None:
        """Drain whatever is left of the body and close the response."""
        try:
            if not self._closed:
                for _ in self._chunks:
                    pass
        finally:
            self.close()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._on_close is not None:
            self._on_close()

    def __enter__(self) -> RawResponse:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()
