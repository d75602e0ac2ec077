"""Tests for error mapping and exception parsers."""

from __future__ import annotations

import pytest

from restbind._errors import (
    AuthorizationError,
    HttpResponseError,
    IllegalState,
    InvalidRequest,
    ResourceNotFound,
)
from restbind._fallbacks import (
    BODY_SNIPPET_LIMIT,
    HttpErrorMapper,
    MapHttp4xxCodesToExceptions,
    ReturnFalseOnNotFound,
    ReturnNoneOnNotFound,
)
from restbind._models import Endpoint, RawResponse, RequestTemplate


def _error_response(status: int, body: bytes = b"", reason: str = "") -> RawResponse:
    request = RequestTemplate("GET", Endpoint.from_url("https://h"), "/k", operation="get_object")
    return RawResponse(status, {"x-request-id": "abc"}, body, reason=reason, request=request)


class TestHttpErrorMapper:
    @pytest.mark.parametrize(
        ("status", "cls"),
        [
            (400, InvalidRequest),
            (401, AuthorizationError),
            (403, AuthorizationError),
            (404, ResourceNotFound),
            (409, IllegalState),
            (500, HttpResponseError),
            (503, HttpResponseError),
        ],
    )
    def test_status_table(self, status: int, cls: type[HttpResponseError]) -> None:
        error = HttpErrorMapper(provider="svc").map(_error_response(status))
        assert type(error) is cls
        assert error.status == status
        assert error.provider == "svc"
        assert error.operation == "get_object"

    def test_carries_response_details_and_closes(self) -> None:
        resp = _error_response(404, b"<Error/>", reason="Not Found")
        error = HttpErrorMapper().map(resp)
        assert resp.closed
        assert error.body == "<Error/>"
        assert error.headers["x-request-id"] == "abc"
        assert error.request_line == "GET https://h/k HTTP/1.1"
        assert str(error).startswith("GET https://h/k HTTP/1.1 -> 404 Not Found")

    def test_body_snippet_is_bounded(self) -> None:
        error = HttpErrorMapper().map(_error_response(500, b"x" * (BODY_SNIPPET_LIMIT * 2)))
        assert len(error.body) == BODY_SNIPPET_LIMIT

    def test_custom_table(self) -> None:
        error = HttpErrorMapper({418: IllegalState}).map(_error_response(418))
        assert isinstance(error, IllegalState)
        assert type(HttpErrorMapper({}).map(_error_response(404))) is HttpResponseError

    def test_provider_details(self) -> None:
        class CodeMapper(HttpErrorMapper):
            def error_details(self, status: int, body: str) -> tuple[str | None, str | None]:
                return "Teapot", "short and stout"

        error = CodeMapper().map(_error_response(500))
        assert error.error_code == "Teapot"
        assert error.args[0] == "short and stout"


def _error(status: int) -> HttpResponseError:
    return HttpErrorMapper().map(_error_response(status))


class TestExceptionParsers:
    def test_none_on_not_found(self) -> None:
        assert ReturnNoneOnNotFound().recover(_error(404)) is None

    def test_false_on_not_found(self) -> None:
        assert ReturnFalseOnNotFound().recover(_error(404)) is False

    @pytest.mark.parametrize("parser", [ReturnNoneOnNotFound(), ReturnFalseOnNotFound()])
    def test_other_statuses_reraised(self, parser: object) -> None:
        error = _error(500)
        with pytest.raises(HttpResponseError) as excinfo:
            parser.recover(error)  # type: ignore[attr-defined]
        assert excinfo.value is error

    def test_map_4xx_keeps_matching_error(self) -> None:
        error = _error(404)
        with pytest.raises(ResourceNotFound) as excinfo:
            MapHttp4xxCodesToExceptions().recover(error)
        assert excinfo.value is error

    def test_map_4xx_narrows(self) -> None:
        error = HttpResponseError("plain", status=409, error_code="Conflict", operation="op")
        with pytest.raises(IllegalState) as excinfo:
            MapHttp4xxCodesToExceptions().recover(error)
        assert excinfo.value.error_code == "Conflict"
        assert excinfo.value.operation == "op"
        assert excinfo.value.__cause__ is error

    def test_map_4xx_unmapped_reraised(self) -> None:
        error = _error(500)
        with pytest.raises(HttpResponseError) as excinfo:
            MapHttp4xxCodesToExceptions().recover(error)
        assert excinfo.value is error
