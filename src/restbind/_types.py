"""Type aliases used throughout restbind."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import BinaryIO, Union

PayloadContent = Union[bytes, BinaryIO, Iterable[bytes]]  # noqa: UP007
HeaderItems = list[tuple[str, str]]
QueryItems = list[tuple[str, Union[str, None]]]  # noqa: UP007
Clock = Callable[[], float]
