"""Tests for request template building."""

from __future__ import annotations

import pytest

from restbind._builder import build_request
from restbind._descriptor import OperationDescriptor, Param
from restbind._errors import BindingError, UnresolvedPlaceholder
from restbind._models import Endpoint
from restbind._uri import EncodingMode


@pytest.fixture
def ep() -> Endpoint:
    return Endpoint.from_url("https://s3.example.com")


class TestBuildRequest:
    def test_expands_path(self, ep: Endpoint) -> None:
        d = OperationDescriptor("get", "GET", "/{bucket}/{key}", params=(Param("bucket"), Param("key")))
        req = build_request(d, {"bucket": "b", "key": "dir/my file.txt"}, ep)
        assert req.request_line == "GET https://s3.example.com/b/dir/my%20file.txt HTTP/1.1"
        assert req.operation == "get"
        assert req.arguments == {"bucket": "b", "key": "dir/my file.txt"}

    def test_host_header_first(self, ep: Endpoint) -> None:
        d = OperationDescriptor("get", "GET", headers={"Accept": "text/xml"})
        req = build_request(d, {}, ep)
        assert req.header_items() == [("Host", "s3.example.com"), ("Accept", "text/xml")]

    def test_literal_encoding(self, ep: Endpoint) -> None:
        d = OperationDescriptor("get", "GET", "/{name}", params=(Param("name", encoding=EncodingMode.LITERAL),))
        req = build_request(d, {"name": "a/b"}, ep)
        assert req.path == "/a%2Fb"

    def test_query_values_encoded_separately(self, ep: Endpoint) -> None:
        d = OperationDescriptor(
            "part",
            "PUT",
            "/{key}",
            params=(Param("key"), Param("n"), Param("upload")),
            query={"partNumber": "{n}", "uploadId": "{upload}"},
        )
        req = build_request(d, {"key": "a/b", "n": 1, "upload": "x/y=z"}, ep)
        assert req.path == "/a/b"
        assert req.query == [("partNumber", "1"), ("uploadId", "x%2Fy%3Dz")]

    def test_flag_query(self, ep: Endpoint) -> None:
        d = OperationDescriptor("loc", "GET", query={"location": None})
        assert build_request(d, {}, ep).url == "https://s3.example.com/?location"

    def test_header_template_raw(self, ep: Endpoint) -> None:
        d = OperationDescriptor("h", "GET", params=(Param("v"),), headers={"X-Value": "v={v}"})
        req = build_request(d, {"v": "a b/c"}, ep)
        assert req.headers["X-Value"] == "v=a b/c"

    def test_header_line_break_rejected(self, ep: Endpoint) -> None:
        d = OperationDescriptor("h", "GET", params=(Param("v"),), headers={"X-Value": "{v}"})
        with pytest.raises(BindingError, match="line break"):
            build_request(d, {"v": "a\r\nX-Evil: 1"}, ep)

    def test_none_placeholder_value(self, ep: Endpoint) -> None:
        d = OperationDescriptor("get", "GET", "/{key}", params=(Param("key"),))
        with pytest.raises(UnresolvedPlaceholder) as excinfo:
            build_request(d, {"key": None}, ep)
        assert excinfo.value.placeholder == "key"
        assert excinfo.value.operation == "get"

    def test_param_parser(self, ep: Endpoint) -> None:
        d = OperationDescriptor(
            "put", "PUT", "/{key}", params=(Param("obj", placeholder="key", parser=lambda o: o["name"]),)
        )
        req = build_request(d, {"obj": {"name": "hello"}}, ep)
        assert req.path == "/hello"

    def test_param_parser_failure(self, ep: Endpoint) -> None:
        d = OperationDescriptor(
            "put", "PUT", "/{key}", params=(Param("obj", placeholder="key", parser=lambda o: o.name),)
        )
        with pytest.raises(BindingError, match="obj"):
            build_request(d, {"obj": 42}, ep)

    def test_base_path_kept(self) -> None:
        d = OperationDescriptor("get", "GET", "/{key}", params=(Param("key"),))
        req = build_request(d, {"key": "k"}, Endpoint.from_url("http://localhost:9000/storage"))
        assert req.url == "http://localhost:9000/storage/k"
        assert req.headers["Host"] == "localhost:9000"
