"""InvocationEngine — runs one operation from arguments to result."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING

from restbind._builder import build_request
from restbind._descriptor import EndpointPolicy
from restbind._errors import ConstructionError, ResponseParseError, RestBindError
from restbind._fallbacks import HttpErrorMapper
from restbind._filters import FilterChain

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator
    from types import TracebackType

    from restbind._api import ProviderApi
    from restbind._descriptor import OperationDescriptor
    from restbind._filters import RequestFilter
    from restbind._models import Endpoint, RequestTemplate
    from restbind._resolver import EndpointResolver
    from restbind._transport import Transport

log = logging.getLogger(__name__)


class InvocationEngine:
    """Turns ``invoke(operation, *args)`` into a request, sends it and maps the outcome.

    Sequence per call: bind arguments → resolve endpoint → expand templates →
    run binders → run the map binder → apply filters → transport → exactly one
    of the response parser or the exception dispatch.

    The engine holds no per-call state and may be shared across threads.

    :param api: Operations of the provider.
    :param transport: Network collaborator.
    :param endpoint: Default endpoint.
    :param filters: Filter chain applied to every request not marked ``skip_filters``.
    :param resolver: Endpoint resolver for operations with a non-default endpoint policy.
    :param error_mapper: Builds typed errors from 4xx/5xx responses.
    """

    def __init__(
        self,
        api: ProviderApi,
        transport: Transport,
        *,
        endpoint: Endpoint,
        filters: FilterChain | Iterable[RequestFilter] = (),
        resolver: EndpointResolver | None = None,
        error_mapper: HttpErrorMapper | None = None,
    ) -> None:
        self.api = api
        self.endpoint = endpoint
        self.filters = filters if isinstance(filters, FilterChain) else FilterChain(filters)
        self.resolver = resolver
        self._transport = transport
        self._error_mapper = error_mapper or HttpErrorMapper(provider=api.name)

    def __repr__(self) -> str:
        return f"InvocationEngine(api={self.api.name!r}, endpoint={str(self.endpoint)!r})"

    @property
    def name(self) -> str:
        return self.api.name

    # region: error context

    @contextmanager
    def _errors(self, operation: str) -> Iterator[None]:
        """Stamp restbind errors with the operation and provider."""
        try:
            yield
        except RestBindError as exc:
            if exc.operation is None:
                exc.operation = operation
            if exc.provider is None:
                exc.provider = self.name
            raise

    # endregion

    # region: request construction

    def _endpoint_for(self, descriptor: OperationDescriptor, arguments: dict[str, object]) -> Endpoint:
        policy = descriptor.endpoint_policy
        if policy is EndpointPolicy.DEFAULT:
            return self.endpoint
        key = arguments.get(descriptor.endpoint_param or "")
        if key is None:
            raise ConstructionError(f"No value bound for endpoint parameter {descriptor.endpoint_param!r}")
        if self.resolver is None:
            if policy is EndpointPolicy.CACHED:
                return self.endpoint
            raise ConstructionError(f"Operation '{descriptor.name}' needs an endpoint resolver")
        if policy is EndpointPolicy.RESOLVE:
            return self.resolver.resolve(str(key))
        return self.resolver.peek(str(key)) or self.endpoint

    def _build(self, descriptor: OperationDescriptor, arguments: dict[str, object]) -> RequestTemplate:
        request = build_request(descriptor, arguments, self._endpoint_for(descriptor, arguments))
        for param in descriptor.params:
            if param.binder is None:
                continue
            value = arguments[param.name]
            if value is None and param.optional:
                continue
            request = param.binder.bind(request, value)
        if descriptor.map_binder is not None:
            request = descriptor.map_binder.bind(request, arguments)
        return request

    def build_request(self, operation: str, /, *args: object, **kwargs: object) -> RequestTemplate:
        """Build and bind the request for ``operation`` without filtering or sending it.

        :raises ConstructionError: If the arguments cannot be bound.
        """
        descriptor = self.api.operation(operation)
        with self._errors(operation):
            return self._build(descriptor, descriptor.bind_arguments(args, kwargs))

    def apply_filters(self, request: RequestTemplate) -> RequestTemplate:
        """Run the filter chain over ``request`` (honouring the operation's ``skip_filters``)."""
        if request.operation is not None and request.operation in self.api:
            if self.api.operation(request.operation).skip_filters:
                return request
        return self.filters.apply(request)

    def prepare(self, operation: str, /, *args: object, **kwargs: object) -> RequestTemplate:
        """Build, bind and filter the request for ``operation``: exactly what would be sent."""
        return self.apply_filters(self.build_request(operation, *args, **kwargs))

    # endregion

    # region: dispatch

    def invoke(self, operation: str, /, *args: object, **kwargs: object) -> object:
        """Run ``operation`` with the given arguments and return its declared result.

        :raises ConstructionError: Before any network activity, for unbindable arguments.
        :raises TransportError: For connection failures, timeouts, cancellation and redirects.
        :raises HttpResponseError: For 4xx/5xx responses not recovered by the operation.
        :raises ResponseParseError: When a successful response cannot be parsed.
        """
        descriptor = self.api.operation(operation)
        with self._errors(operation):
            arguments = descriptor.bind_arguments(args, kwargs)
            request = self._build(descriptor, arguments)
            if not descriptor.skip_filters:
                request = self.filters.apply(request)
            return self._dispatch(descriptor, request)

    def _dispatch(self, descriptor: OperationDescriptor, request: RequestTemplate) -> object:
        log.debug("Invoking %s.%s: %s", self.name, descriptor.name, request.request_line)
        response = self._transport.execute(request)
        if response.request is None:
            response.request = request

        if response.is_success:
            log.debug("Parsing %d response with %r", response.status, descriptor.response_parser)
            try:
                return descriptor.response_parser.parse(response)
            except (KeyError, ValueError) as exc:
                raise ResponseParseError(f"{descriptor.response_parser!r} failed: {exc}") from exc
            finally:
                response.close()

        error = self._error_mapper.map(response)
        if descriptor.exception_parser is None:
            raise error
        log.debug("Dispatching %d to %r", error.status, descriptor.exception_parser)
        return descriptor.exception_parser.recover(error)

    # endregion

    # region: lifecycle

    def close(self) -> None:
        """Close the transport."""
        self._transport.close()

    def __enter__(self) -> InvocationEngine:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    # endregion
