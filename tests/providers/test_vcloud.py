"""Tests for the vCloud session provider."""

from __future__ import annotations

import base64
from typing import TYPE_CHECKING

import pytest

from restbind._config import ProviderConfig
from restbind._errors import AuthorizationError, BindingError, ResponseParseError
from restbind.providers._vcloud import (
    ACCEPT,
    TOKEN_HEADER,
    Link,
    SessionClient,
    create_session_client,
)

if TYPE_CHECKING:
    from tests.conftest import FakeTransport

SESSION_XML = b"""<?xml version="1.0" encoding="UTF-8"?>
<Session xmlns="http://www.vmware.com/vcloud/v1.5" user="vcloud" org="org"
         type="application/vnd.vmware.vcloud.session+xml"
         href="https://vcloud.example.com/api/session/">
  <Link rel="down" type="application/vnd.vmware.vcloud.orgList+xml"
        href="https://vcloud.example.com/api/org/"/>
  <Link rel="down" type="application/vnd.vmware.admin.vcloud+xml"
        href="https://vcloud.example.com/api/admin/"/>
  <Link rel="remove" href="https://vcloud.example.com/api/session/"/>
</Session>
"""

SESSION_URL = "https://vcloud.example.com/api/session/"


@pytest.fixture
def client(transport: FakeTransport) -> SessionClient:
    return SessionClient(transport, "https://vcloud.example.com/api")


class TestLogin:
    def test_request(self, client: SessionClient, transport: FakeTransport) -> None:
        transport.reply(200, {TOKEN_HEADER: "token-1"}, SESSION_XML)
        client.login("user", "org", "password")

        sent = transport.last
        assert sent.request_line == "POST https://vcloud.example.com/api/sessions HTTP/1.1"
        expected = base64.b64encode(b"user@org:password").decode()
        assert sent.headers["Authorization"] == f"Basic {expected}"
        assert sent.headers["Accept"] == ACCEPT
        assert sent.headers["Host"] == "vcloud.example.com"
        assert sent.payload is None

    def test_session_and_token(self, client: SessionClient, transport: FakeTransport) -> None:
        transport.reply(200, {TOKEN_HEADER: "token-1"}, SESSION_XML)
        result = client.login("user", "org", "password")

        assert result.token == "token-1"
        session = result.session
        assert session.user == "vcloud"
        assert session.org == "org"
        assert session.href == SESSION_URL
        assert len(session.links) == 3
        assert session.link("down", "application/vnd.vmware.vcloud.orgList+xml") == Link(
            rel="down",
            href="https://vcloud.example.com/api/org/",
            type="application/vnd.vmware.vcloud.orgList+xml",
        )
        assert session.link("remove") is not None
        assert session.link("edit") is None
        assert transport.responses[-1].closed

    def test_token_hidden_from_repr(self, client: SessionClient, transport: FakeTransport) -> None:
        transport.reply(200, {TOKEN_HEADER: "secret-token"}, SESSION_XML)
        assert "secret-token" not in repr(client.login("user", "org", "password"))

    def test_missing_token(self, client: SessionClient, transport: FakeTransport) -> None:
        transport.reply(200, body=SESSION_XML)
        with pytest.raises(ResponseParseError, match=TOKEN_HEADER):
            client.login("user", "org", "password")

    def test_wrong_document(self, client: SessionClient, transport: FakeTransport) -> None:
        transport.reply(200, {TOKEN_HEADER: "t"}, b"<Error/>")
        with pytest.raises(ResponseParseError):
            client.login("user", "org", "password")

    def test_bad_credentials(self, client: SessionClient, transport: FakeTransport) -> None:
        transport.reply(401, body=b"unauthorized")
        with pytest.raises(AuthorizationError) as excinfo:
            client.login("user", "org", "wrong")
        assert excinfo.value.status == 401
        assert excinfo.value.operation == "login_user_in_org_with_password"

    def test_explicit_url(self, client: SessionClient, transport: FakeTransport) -> None:
        transport.reply(200, {TOKEN_HEADER: "t"}, SESSION_XML)
        client.login_user_in_org_with_password("https://other.example.com:8443/api/sessions", "u", "o", "p")
        assert transport.last.url == "https://other.example.com:8443/api/sessions"
        assert transport.last.headers["Host"] == "other.example.com:8443"


class TestSessionWithToken:
    def test_get_session(self, client: SessionClient, transport: FakeTransport) -> None:
        transport.reply(200, body=SESSION_XML)
        session = client.get_session_with_token(SESSION_URL, "token-1")

        sent = transport.last
        assert sent.request_line == f"GET {SESSION_URL} HTTP/1.1"
        assert sent.headers[TOKEN_HEADER] == "token-1"
        assert sent.headers["Accept"] == ACCEPT
        assert "Authorization" not in sent.headers
        assert session.user == "vcloud"

    def test_logout(self, client: SessionClient, transport: FakeTransport) -> None:
        transport.reply(204)
        assert client.logout_session_with_token(SESSION_URL, "token-1") is None
        sent = transport.last
        assert sent.request_line == f"DELETE {SESSION_URL} HTTP/1.1"
        assert sent.headers[TOKEN_HEADER] == "token-1"

    def test_bad_url(self, client: SessionClient, transport: FakeTransport) -> None:
        with pytest.raises(BindingError):
            client.get_session_with_token("not-a-url", "token-1")
        assert transport.requests == []


class TestFactory:
    def test_creates_client(self, transport: FakeTransport) -> None:
        client = create_session_client(
            ProviderConfig(type="vcloud-session", endpoint="https://vcloud.example.com/api"), transport
        )
        assert client.login_url == "https://vcloud.example.com/api/sessions"

    def test_needs_endpoint(self, transport: FakeTransport) -> None:
        with pytest.raises(ValueError, match="needs an endpoint"):
            create_session_client(ProviderConfig(type="vcloud-session"), transport)

    def test_rejects_options(self, transport: FakeTransport) -> None:
        config = ProviderConfig(type="vcloud-session", endpoint="https://h/api", options={"version": "1.5"})
        with pytest.raises(TypeError, match="version"):
            create_session_client(config, transport)

    def test_close(self, client: SessionClient, transport: FakeTransport) -> None:
        with client:
            pass
        assert transport.closed
