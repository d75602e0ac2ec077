"""Percent-encoding rules and ``{placeholder}`` expansion for request templates."""

from __future__ import annotations

import enum
import re
from typing import TYPE_CHECKING
from urllib.parse import quote, unquote

from restbind._errors import UnresolvedPlaceholder

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping

PLACEHOLDER = re.compile(r"\{([A-Za-z_][A-Za-z0-9_]*)\}")


class EncodingMode(enum.Enum):
    """How a bound value is written into a path segment or query value.

    :cvar ENCODE: Percent-encode as needed. ``/`` is kept in paths.
    :cvar LITERAL: The value is one opaque unit; every reserved character is encoded.
    :cvar ENCODED: The value is already percent-encoded and inserted verbatim.
    """

    ENCODE = "encode"
    LITERAL = "literal"
    ENCODED = "encoded"


def encode_path(value: str, mode: EncodingMode = EncodingMode.ENCODE) -> str:
    """Encode ``value`` for use inside a URI path."""
    if mode is EncodingMode.ENCODED:
        return value
    safe = "/" if mode is EncodingMode.ENCODE else ""
    return quote(value, safe=safe)


def encode_query(value: str, mode: EncodingMode = EncodingMode.ENCODE) -> str:
    """Encode ``value`` for use as a query name or value."""
    if mode is EncodingMode.ENCODED:
        return value
    return quote(value, safe="")


def decode(value: str) -> str:
    """Reverse :func:`encode_path` / :func:`encode_query`."""
    return unquote(value)


def placeholders(template: str) -> Iterator[str]:
    """Yield the placeholder names in ``template`` in order of appearance."""
    for match in PLACEHOLDER.finditer(template):
        yield match.group(1)


def expand(
    template: str,
    values: Mapping[str, str | None],
    *,
    operation: str | None = None,
) -> str:
    """Substitute every ``{name}`` in ``template`` with ``values[name]``.

    Values must already be encoded for the target position.

    :raises UnresolvedPlaceholder: If a placeholder has no value or the value is ``None``.
    """

    def _sub(match: re.Match[str]) -> str:
        name = match.group(1)
        value = values.get(name)
        if value is None:
            raise UnresolvedPlaceholder(
                f"No value bound for placeholder {{{name}}} in {template!r}",
                operation=operation,
                placeholder=name,
            )
        return value

    return PLACEHOLDER.sub(_sub, template)


def query_string(items: list[tuple[str, str | None]]) -> str:
    """Join already-encoded query items. A ``None`` value renders as a bare flag (``?uploads``)."""
    return "&".join(name if value is None else f"{name}={value}" for name, value in items)
