"""Request template builder — descriptor plus bound arguments to a request."""

from __future__ import annotations

from typing import TYPE_CHECKING

from restbind._errors import BindingError
from restbind._models import RequestTemplate, check_header_value
from restbind._uri import encode_path, encode_query, expand

if TYPE_CHECKING:
    from collections.abc import Mapping

    from restbind._descriptor import OperationDescriptor, Param
    from restbind._models import Endpoint


def _raw_value(descriptor: OperationDescriptor, param: Param, value: object) -> str | None:
    if value is None:
        return None
    if param.parser is not None:
        try:
            value = param.parser(value)
        except (AttributeError, TypeError, ValueError) as exc:
            raise BindingError(
                f"Cannot read argument {param.name!r} from {type(value).__name__}: {exc}",
                operation=descriptor.name,
            ) from exc
        if value is None:
            return None
    return str(value)


def _check_header_value(descriptor: OperationDescriptor, name: str, value: str) -> str:
    return check_header_value(name, value, descriptor.name)


def build_request(
    descriptor: OperationDescriptor,
    arguments: Mapping[str, object],
    endpoint: Endpoint,
) -> RequestTemplate:
    """Expand the descriptor's templates with ``arguments`` into a new request.

    Binders are not run here; the engine runs them afterwards in declared order.

    :raises UnresolvedPlaceholder: If a placeholder's argument is missing or ``None``.
    :raises BindingError: If a header value cannot be sent (line break or non-ASCII).
    """
    raw: dict[str, str | None] = {}
    path_values: dict[str, str | None] = {}
    query_values: dict[str, str | None] = {}
    for param in descriptor.params:
        value = _raw_value(descriptor, param, arguments.get(param.name))
        key = param.placeholder_name
        raw[key] = value
        path_values[key] = None if value is None else encode_path(value, param.encoding)
        query_values[key] = None if value is None else encode_query(value, param.encoding)

    path = expand(descriptor.path, path_values, operation=descriptor.name)
    query = [
        (name, None if template is None else expand(template, query_values, operation=descriptor.name))
        for name, template in descriptor.query
    ]
    headers = [("Host", endpoint.netloc)]
    headers.extend(
        (name, _check_header_value(descriptor, name, expand(template, raw, operation=descriptor.name)))
        for name, template in descriptor.headers
    )
    return RequestTemplate(
        descriptor.method,
        endpoint,
        path,
        query=query,
        headers=headers,
        arguments=dict(arguments),
        operation=descriptor.name,
    )
