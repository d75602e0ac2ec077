"""Tests for endpoints, payloads, request templates and raw responses."""

from __future__ import annotations

import io

import pytest

from restbind._errors import BindingError
from restbind._models import Endpoint, Payload, RawResponse, RequestTemplate, check_header_value


class TestEndpoint:
    def test_from_url(self) -> None:
        ep = Endpoint.from_url("http://127.0.0.1:9000/api/")
        assert ep.scheme == "http"
        assert ep.host == "127.0.0.1"
        assert ep.port == 9000
        assert ep.base_path == "/api"
        assert ep.netloc == "127.0.0.1:9000"
        assert ep.base_url == "http://127.0.0.1:9000/api"

    def test_relative_url_rejected(self) -> None:
        with pytest.raises(ValueError, match="absolute"):
            Endpoint.from_url("s3.amazonaws.com")

    def test_unsupported_scheme(self) -> None:
        with pytest.raises(ValueError, match="scheme"):
            Endpoint("ftp", "host")

    def test_host_prefix(self) -> None:
        ep = Endpoint.from_url("https://s3.amazonaws.com", region="us-standard")
        prefixed = ep.with_host_prefix("bucket")
        assert prefixed.host == "bucket.s3.amazonaws.com"
        assert prefixed.region == "us-standard"
        assert ep.host == "s3.amazonaws.com"

    def test_str(self) -> None:
        assert str(Endpoint("https", "h")) == "https://h"


class TestPayload:
    def test_bytes_sets_length(self) -> None:
        p = Payload.from_bytes(b"hello", "text/plain")
        assert p.content_length == 5
        assert p.repeatable
        assert not p.chunked

    def test_default_content_type(self) -> None:
        assert Payload.from_bytes(b"").content_type == "application/unknown"

    def test_mismatched_length(self) -> None:
        with pytest.raises(ValueError, match="content_length"):
            Payload(b"abc", content_length=4)

    def test_stream_is_chunked_without_length(self) -> None:
        p = Payload.from_stream(io.BytesIO(b"abc"))
        assert p.chunked
        assert not p.repeatable
        assert p.read() == b"abc"

    def test_iter_chunks_of_stream(self) -> None:
        p = Payload.from_stream(io.BytesIO(b"abcdef"), content_length=6)
        assert list(p.iter_chunks(chunk_size=4)) == [b"abcd", b"ef"]

    def test_iterable_content(self) -> None:
        p = Payload.from_stream([b"a", b"b"])
        assert p.read() == b"ab"

    def test_headers(self) -> None:
        p = Payload.from_bytes(b"hello", "text/plain", content_md5=bytes([1, 2, 3, 4]))
        assert p.headers() == [
            ("Content-Type", "text/plain"),
            ("Content-Length", "5"),
            ("Content-MD5", "AQIDBA=="),
        ]


class TestRequestTemplate:
    def _request(self) -> RequestTemplate:
        return RequestTemplate(
            "get",
            Endpoint.from_url("https://h.example.com"),
            "/a",
            headers=[("Host", "h.example.com")],
        )

    def test_request_line(self) -> None:
        req = self._request()
        req.add_query("location")
        assert req.request_line == "GET https://h.example.com/a?location HTTP/1.1"

    def test_set_endpoint_updates_host(self) -> None:
        req = self._request()
        req.set_endpoint(Endpoint.from_url("https://other.example.com"))
        assert req.headers["Host"] == "other.example.com"

    def test_add_header_keeps_existing(self) -> None:
        req = self._request()
        req.add_header("X-Tag", "a")
        req.add_header("X-Tag", "b")
        assert req.headers.get_list("x-tag") == ["a", "b"]

    def test_set_header_replaces(self) -> None:
        req = self._request()
        req.add_header("X-Tag", "a")
        req.add_header("X-Tag", "b")
        req.set_header("X-Tag", "c")
        assert req.headers.get_list("x-tag") == ["c"]

    @pytest.mark.parametrize("value", ["café", "a\r\nb", "☃"])
    def test_unsendable_header_value(self, value: str) -> None:
        req = RequestTemplate("GET", Endpoint.from_url("https://h.example.com"), "/a", operation="get_thing")
        for setter in (req.set_header, req.add_header):
            with pytest.raises(BindingError) as excinfo:
                setter("X-Tag", value)
            assert excinfo.value.operation == "get_thing"
        assert "X-Tag" not in req.headers

    def test_check_header_value(self) -> None:
        assert check_header_value("X-Tag", "plain ascii ~!") == "plain ascii ~!"
        with pytest.raises(BindingError, match="not ASCII"):
            check_header_value("X-Tag", "naïve")

    def test_header_items_keep_case(self) -> None:
        req = self._request()
        req.set_header("Content-MD5", "x")
        assert ("Content-MD5", "x") in req.header_items()

    def test_remove_header(self) -> None:
        req = self._request()
        req.remove_header("Host")
        req.remove_header("Missing")
        assert "Host" not in req.headers

    def test_set_query_replaces_in_place(self) -> None:
        req = self._request()
        req.add_query("a", "1")
        req.add_query("b", "2")
        req.add_query("a", "3")
        req.set_query("a", "9")
        assert req.query == [("a", "9"), ("b", "2")]
        req.set_query("c")
        assert req.query[-1] == ("c", None)
        assert req.has_query("c")
        assert req.get_query("b") == "2"
        assert req.get_query("z") is None

    def test_resource_path_includes_base(self) -> None:
        req = RequestTemplate("GET", Endpoint.from_url("https://h/api"), "/sessions")
        assert req.resource_path == "/api/sessions"
        assert req.url == "https://h/api/sessions"

    def test_wire_headers_add_entity_headers(self) -> None:
        req = self._request()
        req.set_payload(Payload.from_string("hi", "text/plain"))
        assert req.wire_headers() == [
            ("Host", "h.example.com"),
            ("Content-Type", "text/plain"),
            ("Content-Length", "2"),
        ]

    def test_wire_headers_respect_explicit_headers(self) -> None:
        req = self._request()
        req.set_header("Content-Type", "text/xml")
        req.set_payload(Payload.from_string("<a/>", "application/unknown"))
        types = [v for k, v in req.wire_headers() if k.lower() == "content-type"]
        assert types == ["text/xml"]


class TestRawResponse:
    def test_read_closes(self) -> None:
        closed: list[bool] = []
        resp = RawResponse(200, body=[b"ab", b"cd"], on_close=lambda: closed.append(True))
        assert resp.read() == b"abcd"
        assert resp.closed
        assert closed == [True]

    def test_read_limit(self) -> None:
        resp = RawResponse(500, body=[b"abc", b"def"])
        assert resp.read(4) == b"abcd"
        assert resp.closed

    def test_close_is_idempotent(self) -> None:
        calls: list[int] = []
        resp = RawResponse(200, on_close=lambda: calls.append(1))
        resp.close()
        resp.close()
        assert calls == [1]

    def test_iter_after_close(self) -> None:
        resp = RawResponse(200, body=b"x")
        resp.close()
        with pytest.raises(RuntimeError):
            list(resp.iter_bytes())

    def test_release_drains(self) -> None:
        drained: list[bytes] = []

        def body():  # type: ignore[no-untyped-def]
            for chunk in (b"a", b"b"):
                drained.append(chunk)
                yield chunk

        resp = RawResponse(200, body=body())
        resp.release()
        assert drained == [b"a", b"b"]
        assert resp.closed

    def test_status_classes(self) -> None:
        assert RawResponse(204).is_success
        assert not RawResponse(404).is_success
        assert RawResponse(302).is_redirect

    def test_headers_case_insensitive(self) -> None:
        resp = RawResponse(200, {"ETag": '"abc"'})
        assert resp.headers["etag"] == '"abc"'

    def test_context_manager(self) -> None:
        with RawResponse(200) as resp:
            pass
        assert resp.closed
