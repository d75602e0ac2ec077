"""Normalized error hierarchy for restbind."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from collections.abc import Mapping


class RestBindError(Exception):
    """Base class for all restbind errors.

    :param message: Human-readable error description.
    :param operation: The operation being invoked, if any.
    :param provider: The provider name involved, if any.
    """

    def __init__(
        self, message: str = "", *, operation: Optional[str] = None, provider: Optional[str] = None
    ) -> None:
        self.operation = operation
        self.provider = provider
        super().__init__(message)

    def _context(self) -> list[tuple[str, object]]:
        ctx: list[tuple[str, object]] = []
        if self.operation is not None:
            ctx.append(("operation", self.operation))
        if self.provider is not None:
            ctx.append(("provider", self.provider))
        return ctx

    def __str__(self) -> str:
        parts = [super().__str__()]
        parts.extend(f"{k}={v!r}" for k, v in self._context())
        return " | ".join(parts) if len(parts) > 1 else parts[0]

    def __repr__(self) -> str:
        cls = type(self).__name__
        args = [repr(self.args[0] if self.args else "")]
        args.extend(f"{k}={v!r}" for k, v in self._context())
        return f"{cls}({', '.join(args)})"


# region: construction errors


class ConstructionError(RestBindError):
    """Raised when a request cannot be built. Always raised before any network activity."""


class UnresolvedPlaceholder(ConstructionError):
    """Raised when a template placeholder has no bound value.

    :param placeholder: The name of the unresolved placeholder.
    """

    def __init__(
        self,
        message: str = "",
        *,
        operation: Optional[str] = None,
        provider: Optional[str] = None,
        placeholder: str = "",
    ) -> None:
        self.placeholder = placeholder
        super().__init__(message, operation=operation, provider=provider)

    def _context(self) -> list[tuple[str, object]]:
        ctx = super()._context()
        if self.placeholder:
            ctx.append(("placeholder", self.placeholder))
        return ctx


class BindingError(ConstructionError):
    """Raised when a binder receives an argument it cannot bind."""


# endregion

# region: transport errors


class TransportError(RestBindError):
    """Raised when the request could not be exchanged with the remote side."""


class ConnectionFailed(TransportError):
    """Raised when a connection to the endpoint could not be established."""


class TransportTimeout(TransportError):
    """Raised when the exchange exceeded its time budget."""


class InvocationCancelled(TransportError):
    """Raised when the exchange was cancelled before completion."""


class Redirected(TransportError):
    """Raised when the server answered with a redirect.

    :param status: The 3xx status code.
    :param location: The ``Location`` header value, if any.
    """

    def __init__(
        self,
        message: str = "",
        *,
        operation: Optional[str] = None,
        provider: Optional[str] = None,
        status: int = 0,
        location: Optional[str] = None,
    ) -> None:
        self.status = status
        self.location = location
        super().__init__(message, operation=operation, provider=provider)

    def _context(self) -> list[tuple[str, object]]:
        ctx = super()._context()
        ctx.append(("status", self.status))
        if self.location is not None:
            ctx.append(("location", self.location))
        return ctx


# endregion

# region: protocol errors


class HttpResponseError(RestBindError):
    """Raised for a 4xx/5xx response.

    :param status: HTTP status code.
    :param headers: Response headers.
    :param body: Leading part of the response body, decoded as text.
    :param error_code: Provider-specific error code, if the body carried one.
    :param request_line: The request line that produced this response.
    """

    def __init__(
        self,
        message: str = "",
        *,
        operation: Optional[str] = None,
        provider: Optional[str] = None,
        status: int = 0,
        headers: Optional[Mapping[str, str]] = None,
        body: str = "",
        error_code: Optional[str] = None,
        request_line: Optional[str] = None,
    ) -> None:
        self.status = status
        self.headers = dict(headers or {})
        self.body = body
        self.error_code = error_code
        self.request_line = request_line
        super().__init__(message, operation=operation, provider=provider)

    def _context(self) -> list[tuple[str, object]]:
        ctx = super()._context()
        ctx.append(("status", self.status))
        if self.error_code is not None:
            ctx.append(("error_code", self.error_code))
        return ctx


class InvalidRequest(HttpResponseError):
    """Raised when the server rejected the request as malformed (400)."""


class AuthorizationError(HttpResponseError):
    """Raised when credentials are missing, wrong or insufficient (401/403)."""


class ResourceNotFound(HttpResponseError):
    """Raised when the addressed resource does not exist (404)."""


class IllegalState(HttpResponseError):
    """Raised when the request conflicts with the resource's current state (409)."""


# endregion


class ResponseParseError(RestBindError):
    """Raised when a successful response cannot be turned into the declared result."""
