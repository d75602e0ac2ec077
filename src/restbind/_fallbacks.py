"""Exception dispatch — typed errors for 4xx/5xx responses and the parsers that may recover from them."""

from __future__ import annotations

import abc
from typing import TYPE_CHECKING, Optional

from restbind._errors import (
    AuthorizationError,
    HttpResponseError,
    IllegalState,
    InvalidRequest,
    ResourceNotFound,
)

if TYPE_CHECKING:
    from collections.abc import Mapping

    from restbind._models import RawResponse

BODY_SNIPPET_LIMIT = 4096

DEFAULT_STATUS_TABLE: dict[int, type[HttpResponseError]] = {
    400: InvalidRequest,
    401: AuthorizationError,
    403: AuthorizationError,
    404: ResourceNotFound,
    409: IllegalState,
}


class HttpErrorMapper:
    """Turns an error response into a typed :class:`HttpResponseError`.

    The response is always closed. Providers subclass this to read their
    error documents (:meth:`error_details`).

    :param table: Status code to error class; unmapped codes give ``HttpResponseError``.
    :param provider: Provider name recorded on the errors.
    """

    def __init__(
        self,
        table: Optional[Mapping[int, type[HttpResponseError]]] = None,
        *,
        provider: Optional[str] = None,
    ) -> None:
        self.table = dict(DEFAULT_STATUS_TABLE if table is None else table)
        self.provider = provider

    def error_details(self, status: int, body: str) -> tuple[Optional[str], Optional[str]]:
        """Return ``(error_code, message)`` extracted from the body, if the provider has any."""
        return None, None

    def classify(self, status: int, error_code: Optional[str]) -> type[HttpResponseError]:
        return self.table.get(status, HttpResponseError)

    def map(self, response: RawResponse) -> HttpResponseError:
        with response:
            body = response.read(BODY_SNIPPET_LIMIT).decode("utf-8", errors="replace")
        code, message = self.error_details(response.status, body)
        request = response.request
        request_line = request.request_line if request is not None else None
        if not message:
            reason = f" {response.reason}" if response.reason else ""
            message = f"{request_line or 'request'} -> {response.status}{reason}"
        cls = self.classify(response.status, code)
        return cls(
            message,
            operation=request.operation if request is not None else None,
            provider=self.provider,
            status=response.status,
            headers=dict(response.headers.items()),
            body=body,
            error_code=code,
            request_line=request_line,
        )


class ExceptionParser(abc.ABC):
    """Decides whether a protocol error becomes a normal return value.

    Implementations return the recovered value or re-raise ``error``.
    """

    @abc.abstractmethod
    def recover(self, error: HttpResponseError) -> object:
        """Return a value for ``error`` or raise."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class ReturnNoneOnNotFound(ExceptionParser):
    """A 404 becomes ``None``: no-op for void operations, absent for lookups."""

    def recover(self, error: HttpResponseError) -> None:
        if error.status == 404:
            return None
        raise error


class ReturnFalseOnNotFound(ExceptionParser):
    """A 404 becomes ``False`` for existence checks."""

    def recover(self, error: HttpResponseError) -> bool:
        if error.status == 404:
            return False
        raise error


class MapHttp4xxCodesToExceptions(ExceptionParser):
    """Re-raises errors as the class named in ``table`` for their status.

    Never recovers; it narrows the error type for a single operation.

    :param table: Status code to error class, merged over the default table.
    """

    def __init__(self, table: Optional[Mapping[int, type[HttpResponseError]]] = None) -> None:
        self.table = {**DEFAULT_STATUS_TABLE, **(table or {})}

    def recover(self, error: HttpResponseError) -> object:
        cls = self.table.get(error.status)
        if cls is None or isinstance(error, cls):
            raise error
        raise cls(
            error.args[0] if error.args else "",
            operation=error.operation,
            provider=error.provider,
            status=error.status,
            headers=error.headers,
            body=error.body,
            error_code=error.error_code,
            request_line=error.request_line,
        ) from error
