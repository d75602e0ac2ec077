"""Parameter binders — map one runtime argument onto the request being built."""

from __future__ import annotations

import abc
import uuid
import xml.etree.ElementTree as ET
from typing import TYPE_CHECKING
from urllib.parse import urlsplit

from restbind._errors import BindingError
from restbind._models import Endpoint, Payload
from restbind._uri import EncodingMode, encode_path, encode_query

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping, Sequence

    from restbind._models import RequestTemplate


class Binder(abc.ABC):
    """Maps a single argument into a mutation of the request.

    Binders run in the descriptor's declared order and may read or change
    state left by earlier binders.
    """

    @abc.abstractmethod
    def bind(self, request: RequestTemplate, value: object) -> RequestTemplate:
        """Apply ``value`` to ``request`` and return the request to continue with."""

    def _reject(self, request: RequestTemplate, message: str) -> BindingError:
        return BindingError(f"{type(self).__name__}: {message}", operation=request.operation)


class MapBinder(abc.ABC):
    """Binds from all of the invocation's arguments at once, after the per-argument binders."""

    @abc.abstractmethod
    def bind(self, request: RequestTemplate, arguments: Mapping[str, object]) -> RequestTemplate:
        """Apply ``arguments`` to ``request`` and return the request to continue with."""


# region: single-value binders


class HeaderBinder(Binder):
    """Sets one header from the argument.

    :param name: Header name.
    :param template: Format string; ``{}`` is replaced with the value.
    :param replace: Replace existing values instead of appending.
    """

    def __init__(self, name: str, template: str = "{}", *, replace: bool = True) -> None:
        self._name = name
        self._template = template
        self._replace = replace

    def bind(self, request: RequestTemplate, value: object) -> RequestTemplate:
        text = self._template.format(value)
        if "\r" in text or "\n" in text:
            raise self._reject(request, f"header {self._name!r} value contains a line break")
        if self._replace:
            request.set_header(self._name, text)
        else:
            request.add_header(self._name, text)
        return request


class QueryBinder(Binder):
    """Sets one query parameter from the argument.

    :param name: Query parameter name.
    :param encoding: How the value is encoded.
    """

    def __init__(self, name: str, *, encoding: EncodingMode = EncodingMode.ENCODE) -> None:
        self._name = name
        self._encoding = encoding

    def bind(self, request: RequestTemplate, value: object) -> RequestTemplate:
        request.set_query(encode_query(self._name), encode_query(str(value), self._encoding))
        return request


class PathSegmentBinder(Binder):
    """Appends the argument to the request path as one or more segments.

    :param encoding: ``LITERAL`` keeps the value in a single segment.
    """

    def __init__(self, *, encoding: EncodingMode = EncodingMode.ENCODE) -> None:
        self._encoding = encoding

    def bind(self, request: RequestTemplate, value: object) -> RequestTemplate:
        text = str(value)
        if not text:
            raise self._reject(request, "path segment must not be empty")
        segment = encode_path(text.lstrip("/"), self._encoding)
        request.path = f"{request.path.rstrip('/')}/{segment}"
        return request


class PayloadBinder(Binder):
    """Sets the request body from a :class:`Payload`, ``bytes`` or ``str`` argument.

    :param content_type: Content type used for ``bytes``/``str`` arguments.
    """

    def __init__(self, content_type: str | None = None) -> None:
        self._content_type = content_type

    def bind(self, request: RequestTemplate, value: object) -> RequestTemplate:
        if isinstance(value, Payload):
            payload = value
        elif isinstance(value, bytes):
            payload = Payload.from_bytes(value)
        elif isinstance(value, str):
            payload = Payload.from_string(value)
        else:
            raise self._reject(request, f"cannot use {type(value).__name__} as a payload")
        if self._content_type is not None and not isinstance(value, Payload):
            payload = Payload(payload.content, content_type=self._content_type)
        request.set_payload(payload)
        return request


class EndpointBinder(Binder):
    """Takes the endpoint, path and query from an absolute URL argument."""

    def bind(self, request: RequestTemplate, value: object) -> RequestTemplate:
        url = str(value)
        try:
            endpoint = Endpoint.from_url(url)
        except ValueError as exc:
            raise self._reject(request, str(exc)) from exc
        parts = urlsplit(url)
        request.set_endpoint(Endpoint(endpoint.scheme, endpoint.host, endpoint.port))
        request.path = parts.path or "/"
        query = parts.query
        if query:
            for item in query.split("&"):
                name, sep, val = item.partition("=")
                request.add_query(name, val if sep else None)
        return request


# endregion

# region: host addressing


class HostPrefixBinder(Binder):
    """Addresses a container through a host prefix instead of a path segment.

    When :meth:`should_prefix` accepts the value, the endpoint host becomes
    ``value.host``, the leading ``/value`` path segment set by the path
    template is removed and ``attributes["virtual_host"]`` records the value.
    Otherwise the request is left path-addressed and unchanged.

    :param enabled: Whether host-prefix addressing is configured.
    """

    def __init__(self, *, enabled: bool) -> None:
        self.enabled = enabled

    def should_prefix(self, value: str) -> bool:
        """Decision rule; providers override this to restrict which values qualify."""
        return self.enabled

    def bind(self, request: RequestTemplate, value: object) -> RequestTemplate:
        prefix = str(value)
        if not prefix:
            raise self._reject(request, "host prefix must not be empty")
        if not self.should_prefix(prefix):
            return request
        segment = f"/{encode_path(prefix, EncodingMode.LITERAL)}"
        if request.path == segment or request.path.startswith(f"{segment}/"):
            request.path = request.path[len(segment) :] or "/"
        request.set_endpoint(request.endpoint.with_host_prefix(prefix))
        request.attributes["virtual_host"] = prefix
        return request


# endregion

# region: payload-replacing binders


class ReplacePayloadBinder(Binder):
    """Discards any bound payload and substitutes one rendered from the argument."""

    @abc.abstractmethod
    def render(self, value: object) -> Payload | None:
        """Render the new payload, or ``None`` to leave the request without a body."""

    def bind(self, request: RequestTemplate, value: object) -> RequestTemplate:
        try:
            payload = self.render(value)
        except (TypeError, ValueError) as exc:
            raise self._reject(request, str(exc)) from exc
        request.set_payload(payload)
        return request


class XmlPayloadBinder(ReplacePayloadBinder):
    """Renders the argument as an XML document body.

    :param content_type: Content type of the rendered document.
    """

    def __init__(self, content_type: str = "text/xml") -> None:
        self._content_type = content_type

    @abc.abstractmethod
    def to_element(self, value: object) -> ET.Element | None:
        """Build the document root, or ``None`` for no body."""

    def render(self, value: object) -> Payload | None:
        root = self.to_element(value)
        if root is None:
            return None
        return Payload.from_bytes(ET.tostring(root, encoding="utf-8", xml_declaration=False), self._content_type)


class FormPart:
    """One part of a ``multipart/form-data`` body.

    :param name: Form field name.
    :param payload: The part's content and content type.
    :param filename: Optional file name for file fields.
    """

    __slots__ = ("filename", "name", "payload")

    def __init__(self, name: str, payload: Payload, *, filename: str | None = None) -> None:
        if not name:
            raise ValueError("form part name must be a non-empty string")
        self.name = name
        self.payload = payload
        self.filename = filename

    def __repr__(self) -> str:
        return f"FormPart({self.name!r}, filename={self.filename!r})"


class MultipartFormBinder(ReplacePayloadBinder):
    """Renders a sequence of :class:`FormPart` (or a single part) as ``multipart/form-data``.

    :param boundary: Fixed boundary, or ``None`` to generate one per request.
    """

    def __init__(self, boundary: str | None = None, *, boundary_factory: Callable[[], str] | None = None) -> None:
        self._boundary = boundary
        self._boundary_factory = boundary_factory or (lambda: uuid.uuid4().hex)

    def render(self, value: object) -> Payload:
        parts: Sequence[FormPart]
        if isinstance(value, FormPart):
            parts = [value]
        elif isinstance(value, (list, tuple)) and all(isinstance(p, FormPart) for p in value):
            parts = value
        else:
            raise TypeError(f"expected FormPart or a sequence of FormPart, got {type(value).__name__}")
        if not parts:
            raise ValueError("multipart form needs at least one part")

        boundary = self._boundary or self._boundary_factory()
        chunks: list[bytes] = []
        for part in parts:
            disposition = f'form-data; name="{part.name}"'
            if part.filename is not None:
                disposition += f'; filename="{part.filename}"'
            chunks.append(
                (
                    f"--{boundary}\r\n"
                    f"Content-Disposition: {disposition}\r\n"
                    f"Content-Type: {part.payload.content_type}\r\n\r\n"
                ).encode()
            )
            chunks.append(part.payload.read())
            chunks.append(b"\r\n")
        chunks.append(f"--{boundary}--\r\n".encode())
        return Payload.from_bytes(b"".join(chunks), f"multipart/form-data; boundary={boundary}")


# endregion
