"""Operation descriptors — immutable, data-driven metadata for one remote operation."""

from __future__ import annotations

import dataclasses
import enum
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Callable, Optional

from restbind._errors import ConstructionError
from restbind._parsers import ReleasePayloadAndReturn, ResponseParser
from restbind._uri import EncodingMode, placeholders

if TYPE_CHECKING:
    from restbind._binders import Binder, MapBinder
    from restbind._fallbacks import ExceptionParser

HTTP_METHODS = frozenset({"GET", "HEAD", "PUT", "POST", "DELETE", "PATCH", "OPTIONS"})


class _Required:
    def __repr__(self) -> str:
        return "REQUIRED"


REQUIRED: Any = _Required()


class EndpointPolicy(enum.Enum):
    """Where the endpoint of a request comes from.

    :cvar DEFAULT: The client's configured endpoint.
    :cvar RESOLVE: ``resolver.resolve(arguments[endpoint_param])``, discovering on a miss.
    :cvar CACHED: The resolver's cached binding for the key if any, otherwise the default.
    """

    DEFAULT = "default"
    RESOLVE = "resolve"
    CACHED = "cached"


@dataclasses.dataclass(frozen=True)
class Param:
    """One declared argument of an operation.

    :param name: Argument name, used for keyword invocation.
    :param binder: Binder run with the argument's value, or ``None`` when the
        argument only feeds placeholders or the operation's map binder.
    :param placeholder: Placeholder name this argument fills (defaults to ``name``).
    :param parser: Turns the argument into the placeholder's string value.
    :param encoding: How the placeholder value is encoded in paths and queries.
    :param default: Default value; ``REQUIRED`` when the argument must be passed.
    """

    name: str
    binder: Optional[Binder] = None
    placeholder: Optional[str] = None
    parser: Optional[Callable[[Any], object]] = None
    encoding: EncodingMode = EncodingMode.ENCODE
    default: Any = REQUIRED

    @property
    def placeholder_name(self) -> str:
        return self.placeholder or self.name

    @property
    def optional(self) -> bool:
        return self.default is not REQUIRED


def _freeze_items(items: Mapping[str, Any] | tuple[tuple[str, Any], ...]) -> tuple[tuple[str, Any], ...]:
    if isinstance(items, Mapping):
        return tuple(items.items())
    return tuple(items)


@dataclasses.dataclass(frozen=True)
class OperationDescriptor:
    """Static description of an operation's wire shape and plug-ins.

    Path, header and query templates may contain ``{placeholder}`` markers
    that must each be filled by exactly one declared parameter. Query
    templates with a ``None`` value render as bare flags (``?location``).

    :raises ConstructionError: If the descriptor is inconsistent.
    """

    name: str
    method: str
    path: str = "/"
    params: tuple[Param, ...] = ()
    headers: tuple[tuple[str, str], ...] = ()
    query: tuple[tuple[str, Optional[str]], ...] = ()
    response_parser: ResponseParser = dataclasses.field(default_factory=ReleasePayloadAndReturn)
    exception_parser: Optional[ExceptionParser] = None
    endpoint_policy: EndpointPolicy = EndpointPolicy.DEFAULT
    endpoint_param: Optional[str] = None
    map_binder: Optional[MapBinder] = None
    skip_filters: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "method", self.method.upper())
        object.__setattr__(self, "params", tuple(self.params))
        object.__setattr__(self, "headers", _freeze_items(self.headers))
        object.__setattr__(self, "query", _freeze_items(self.query))
        self._validate()

    def _fail(self, message: str) -> ConstructionError:
        return ConstructionError(message, operation=self.name)

    def _validate(self) -> None:
        if not self.name:
            raise ConstructionError("Operation name must be a non-empty string")
        if self.method not in HTTP_METHODS:
            raise self._fail(f"Unsupported HTTP method {self.method!r}")
        if not self.path.startswith("/"):
            raise self._fail(f"Path template must start with '/': {self.path!r}")

        names = [p.name for p in self.params]
        if len(set(names)) != len(names):
            raise self._fail(f"Duplicate parameter names: {names}")

        seen_optional = False
        for p in self.params:
            if p.optional:
                seen_optional = True
            elif seen_optional:
                raise self._fail(f"Required parameter {p.name!r} follows an optional one")

        used = set(self.placeholders())
        provided = [p.placeholder_name for p in self.params if p.placeholder_name in used]
        if len(set(provided)) != len(provided):
            raise self._fail(f"Placeholders filled by more than one parameter: {sorted(provided)}")
        for name in used:
            if name not in provided:
                raise self._fail(f"Placeholder {{{name}}} is not filled by any parameter")

        if self.endpoint_policy is not EndpointPolicy.DEFAULT:
            if self.endpoint_param is None or self.endpoint_param not in names:
                raise self._fail(
                    f"Endpoint policy {self.endpoint_policy.value!r} needs endpoint_param naming a parameter, "
                    f"got {self.endpoint_param!r}"
                )

    # region: introspection

    def placeholders(self) -> list[str]:
        """All placeholder names used by the path, header and query templates."""
        found = list(placeholders(self.path))
        for _, value in self.headers:
            found.extend(placeholders(value))
        for _, q in self.query:
            if q is not None:
                found.extend(placeholders(q))
        return found

    @property
    def binders(self) -> tuple[Optional[Binder], ...]:
        """Binders by argument position; always as long as :attr:`params`."""
        return tuple(p.binder for p in self.params)

    @property
    def arity(self) -> int:
        return len(self.params)

    # endregion

    def bind_arguments(self, args: tuple[object, ...], kwargs: Mapping[str, object]) -> dict[str, object]:
        """Match positional and keyword arguments to parameters, applying defaults.

        :raises ConstructionError: On too many, duplicate, unknown or missing arguments.
        """
        if len(args) > len(self.params):
            raise self._fail(f"Takes {len(self.params)} arguments but {len(args)} were given")
        bound: dict[str, object] = {}
        for param, value in zip(self.params, args):
            bound[param.name] = value
        for key, value in kwargs.items():
            if key in bound:
                raise self._fail(f"Got multiple values for argument {key!r}")
            if not any(p.name == key for p in self.params):
                raise self._fail(f"Got an unexpected argument {key!r}")
            bound[key] = value
        missing = []
        for p in self.params:
            if p.name not in bound:
                if p.optional:
                    bound[p.name] = p.default
                else:
                    missing.append(p.name)
        if missing:
            raise self._fail(f"Missing required arguments: {missing}")
        return {p.name: bound[p.name] for p in self.params}
