"""Tests for the error hierarchy."""

from __future__ import annotations

import pytest

from restbind._errors import (
    AuthorizationError,
    BindingError,
    ConnectionFailed,
    ConstructionError,
    HttpResponseError,
    IllegalState,
    InvalidRequest,
    InvocationCancelled,
    Redirected,
    ResourceNotFound,
    ResponseParseError,
    RestBindError,
    TransportError,
    TransportTimeout,
    UnresolvedPlaceholder,
)


class TestBaseError:
    """RestBindError carries optional operation and provider."""

    def test_default_attributes(self) -> None:
        e = RestBindError("boom")
        assert e.operation is None
        assert e.provider is None
        assert str(e) == "boom"

    def test_with_attributes(self) -> None:
        e = RestBindError("boom", operation="put_object", provider="s3")
        assert e.operation == "put_object"
        assert e.provider == "s3"

    def test_str_includes_context(self) -> None:
        e = RestBindError("boom", operation="put_object", provider="s3")
        assert str(e) == "boom | operation='put_object' | provider='s3'"

    def test_repr(self) -> None:
        e = RestBindError("boom", operation="op")
        assert repr(e) == "RestBindError('boom', operation='op')"


class TestHierarchy:
    @pytest.mark.parametrize("cls", [UnresolvedPlaceholder, BindingError])
    def test_construction_errors(self, cls: type[RestBindError]) -> None:
        assert issubclass(cls, ConstructionError)

    @pytest.mark.parametrize("cls", [ConnectionFailed, TransportTimeout, InvocationCancelled, Redirected])
    def test_transport_errors(self, cls: type[RestBindError]) -> None:
        assert issubclass(cls, TransportError)

    @pytest.mark.parametrize("cls", [InvalidRequest, AuthorizationError, ResourceNotFound, IllegalState])
    def test_protocol_errors(self, cls: type[RestBindError]) -> None:
        assert issubclass(cls, HttpResponseError)

    def test_families_are_disjoint(self) -> None:
        assert not issubclass(HttpResponseError, TransportError)
        assert not issubclass(TransportError, ConstructionError)
        assert not issubclass(ResponseParseError, HttpResponseError)


class TestUnresolvedPlaceholder:
    def test_placeholder_in_context(self) -> None:
        e = UnresolvedPlaceholder("missing", placeholder="bucket")
        assert e.placeholder == "bucket"
        assert "placeholder='bucket'" in str(e)


class TestRedirected:
    def test_status_and_location(self) -> None:
        e = Redirected("moved", status=301, location="https://elsewhere/")
        assert e.status == 301
        assert e.location == "https://elsewhere/"
        assert "status=301" in str(e)


class TestHttpResponseError:
    def test_attributes(self) -> None:
        e = ResourceNotFound(
            "gone",
            status=404,
            headers={"x-request-id": "1"},
            body="<Error/>",
            error_code="NoSuchKey",
            request_line="GET https://h/k HTTP/1.1",
        )
        assert e.status == 404
        assert e.headers == {"x-request-id": "1"}
        assert e.body == "<Error/>"
        assert e.error_code == "NoSuchKey"
        assert e.request_line == "GET https://h/k HTTP/1.1"

    def test_str_includes_status_and_code(self) -> None:
        e = HttpResponseError("bad", status=500, error_code="InternalError")
        assert str(e) == "bad | status=500 | error_code='InternalError'"
