"""Response parsers — turn a successful raw response into an operation's result.

Every parser owns the response it is given and closes it on every path,
including when deserialization fails.
"""

from __future__ import annotations

import abc
import html
import logging
import re
import xml.etree.ElementTree as ET
from typing import TYPE_CHECKING, Generic, TypeVar

from restbind._errors import ResponseParseError

if TYPE_CHECKING:
    from restbind._models import RawResponse

T = TypeVar("T")

log = logging.getLogger(__name__)


def _operation(response: RawResponse) -> str | None:
    return response.request.operation if response.request is not None else None


class ResponseParser(abc.ABC):
    """Maps a 2xx :class:`RawResponse` to a return value."""

    @abc.abstractmethod
    def parse(self, response: RawResponse) -> object:
        """Produce the result. Must leave ``response`` closed.

        :raises ResponseParseError: If the response cannot be interpreted.
        """

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


# region: XML deserialization


class XmlHandler(abc.ABC, Generic[T]):
    """Builds a typed value from a parsed XML document."""

    @abc.abstractmethod
    def handle(self, root: ET.Element) -> T:
        """Convert the document root. May raise ``KeyError``/``ValueError`` on bad shape."""


def local_name(tag: str) -> str:
    """Strip the ``{namespace}`` prefix from an element tag."""
    return tag.rsplit("}", 1)[-1]


def child_text(element: ET.Element, name: str, default: str | None = None) -> str | None:
    """Text of the first direct child called ``name`` in any namespace."""
    for child in element:
        if local_name(child.tag) == name:
            return child.text if child.text is not None else ""
    return default


def children(element: ET.Element, name: str) -> list[ET.Element]:
    """Direct children called ``name`` in any namespace."""
    return [child for child in element if local_name(child.tag) == name]


class XmlDeserializer:
    """Parses bytes into a value through an :class:`XmlHandler`."""

    def parse(self, data: bytes, handler: XmlHandler[T]) -> T:
        """:raises ResponseParseError: If the document is malformed or has an unexpected shape."""
        try:
            root = ET.fromstring(data)
        except ET.ParseError as exc:
            raise ResponseParseError(f"Malformed XML document: {exc}") from exc
        try:
            return handler.handle(root)
        except (KeyError, ValueError, TypeError, AttributeError) as exc:
            raise ResponseParseError(
                f"{type(handler).__name__} could not read <{local_name(root.tag)}>: {exc}"
            ) from exc


class ParseXml(ResponseParser):
    """Deserializes the body with ``handler``.

    :param handler: Declared handler for the document.
    :param deserializer: Deserialization collaborator.
    """

    def __init__(self, handler: XmlHandler[object], deserializer: XmlDeserializer | None = None) -> None:
        self.handler = handler
        self._deserializer = deserializer or XmlDeserializer()

    def __repr__(self) -> str:
        return f"ParseXml({type(self.handler).__name__})"

    def parse(self, response: RawResponse) -> object:
        with response:
            data = response.read()
        try:
            return self._deserializer.parse(data, self.handler)
        except ResponseParseError as exc:
            exc.operation = _operation(response)
            raise


# endregion

# region: header and body extraction


class ParseFirstHeader(ResponseParser):
    """Returns the first value of one response header.

    :param name: Header name.
    """

    def __init__(self, name: str) -> None:
        self.name = name

    def __repr__(self) -> str:
        return f"ParseFirstHeader({self.name!r})"

    def fallback(self, response: RawResponse) -> str | None:
        """Recover the value when the header is absent. Receives the still-open response."""
        return None

    def parse(self, response: RawResponse) -> str:
        with response:
            value = response.headers.get(self.name)
            if value is None:
                value = self.fallback(response)
            else:
                response.release()
        if value is None:
            raise ResponseParseError(f"Response has no {self.name!r} header", operation=_operation(response))
        return value


class ExtractViaRegex(ResponseParser):
    """Returns group 1 of the first match of ``pattern`` in the body.

    :param pattern: Regular expression with one capturing group.
    """

    def __init__(self, pattern: str) -> None:
        self.pattern = re.compile(pattern, re.DOTALL)

    def __repr__(self) -> str:
        return f"ExtractViaRegex({self.pattern.pattern!r})"

    def parse(self, response: RawResponse) -> str:
        body = response.read().decode("utf-8", errors="replace")
        match = self.pattern.search(body)
        if match is None:
            raise ResponseParseError(
                f"No match for {self.pattern.pattern!r} in response body", operation=_operation(response)
            )
        return html.unescape(match.group(1))


_ETAG_IN_BODY = r"<ETag>([^<]+)</ETag>"


class ParseETagHeader(ParseFirstHeader):
    """Returns the entity tag, from the ``ETag`` header or, failing that, an ``<ETag>`` body element."""

    def __init__(self) -> None:
        super().__init__("ETag")
        self._body_extractor = ExtractViaRegex(_ETAG_IN_BODY)

    def __repr__(self) -> str:
        return "ParseETagHeader()"

    def fallback(self, response: RawResponse) -> str | None:
        try:
            return self._body_extractor.parse(response)
        except ResponseParseError:
            return None


class ReturnBody(ResponseParser):
    """Returns the whole body as bytes."""

    def parse(self, response: RawResponse) -> bytes:
        return response.read()


# endregion

# region: status-only parsers


class ReturnTrueIf2xx(ResponseParser):
    """Returns ``True`` for any successful response without looking at the body."""

    def parse(self, response: RawResponse) -> bool:
        response.release()
        return True


class ReleasePayloadAndReturn(ResponseParser):
    """For operations without a result: drains the body to free the connection and returns ``None``."""

    def parse(self, response: RawResponse) -> None:
        response.release()


# endregion
