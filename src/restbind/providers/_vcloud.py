"""vCloud Director session API: log in, inspect and log out sessions."""

from __future__ import annotations

import base64
import dataclasses
from typing import TYPE_CHECKING, Optional

from restbind._api import ProviderApi
from restbind._binders import EndpointBinder, HeaderBinder, MapBinder
from restbind._descriptor import OperationDescriptor, Param
from restbind._engine import InvocationEngine
from restbind._errors import ResponseParseError
from restbind._models import Endpoint
from restbind._parsers import (
    ParseXml,
    ReleasePayloadAndReturn,
    ResponseParser,
    XmlDeserializer,
    XmlHandler,
    children,
    local_name,
)

if TYPE_CHECKING:
    import xml.etree.ElementTree as ET
    from collections.abc import Mapping
    from types import TracebackType

    from restbind._config import ProviderConfig
    from restbind._models import RawResponse, RequestTemplate
    from restbind._transport import Transport

TOKEN_HEADER = "x-vcloud-authorization"
ACCEPT = "application/*+xml;version=1.5"


@dataclasses.dataclass(frozen=True)
class Link:
    rel: str
    href: str
    type: Optional[str] = None
    name: Optional[str] = None


@dataclasses.dataclass(frozen=True)
class Session:
    """A logged-in session and the entry points it may follow."""

    user: str
    org: str
    href: str
    links: tuple[Link, ...] = ()

    def link(self, rel: str, type: str | None = None) -> Link | None:  # noqa: A002
        """First link with relation ``rel`` (and media ``type``, when given)."""
        for candidate in self.links:
            if candidate.rel == rel and (type is None or candidate.type == type):
                return candidate
        return None


@dataclasses.dataclass(frozen=True)
class SessionWithToken:
    session: Session
    token: str = dataclasses.field(repr=False)


# region: binders and parsers


class BindUserOrgAndPasswordAsBasicAuthorizationHeader(MapBinder):
    """``Authorization: Basic base64(user@org:password)``."""

    def bind(self, request: RequestTemplate, arguments: Mapping[str, object]) -> RequestTemplate:
        user = f"{arguments['user']}@{arguments['org']}"
        token = base64.b64encode(f"{user}:{arguments['password']}".encode()).decode("ascii")
        request.set_header("Authorization", f"Basic {token}")
        return request


class SessionHandler(XmlHandler[Session]):
    def handle(self, root: ET.Element) -> Session:
        if local_name(root.tag) != "Session":
            raise ValueError(f"expected <Session>, got <{local_name(root.tag)}>")
        links = tuple(
            Link(
                rel=link.attrib["rel"],
                href=link.attrib["href"],
                type=link.attrib.get("type"),
                name=link.attrib.get("name"),
            )
            for link in children(root, "Link")
        )
        return Session(
            user=root.attrib["user"],
            org=root.attrib["org"],
            href=root.attrib.get("href", ""),
            links=links,
        )


class ParseSessionWithToken(ResponseParser):
    """Reads the session document and the token from the response headers."""

    def __init__(self, deserializer: XmlDeserializer | None = None) -> None:
        self._deserializer = deserializer or XmlDeserializer()

    def parse(self, response: RawResponse) -> SessionWithToken:
        token = response.headers.get(TOKEN_HEADER)
        body = response.read()
        if not token:
            raise ResponseParseError(f"Response has no {TOKEN_HEADER!r} header")
        return SessionWithToken(self._deserializer.parse(body, SessionHandler()), token)


# endregion


def build_session_api() -> ProviderApi:
    """Declare the session operations. Each takes the absolute URL it acts on."""
    url = Param("url", binder=EndpointBinder())
    token = Param("token", binder=HeaderBinder(TOKEN_HEADER))
    accept = {"Accept": ACCEPT}
    return ProviderApi(
        "vcloud-session",
        [
            OperationDescriptor(
                "login_user_in_org_with_password",
                "POST",
                headers=accept,
                params=(url, Param("user"), Param("org"), Param("password")),
                map_binder=BindUserOrgAndPasswordAsBasicAuthorizationHeader(),
                response_parser=ParseSessionWithToken(),
            ),
            OperationDescriptor(
                "get_session_with_token",
                "GET",
                headers=accept,
                params=(url, token),
                response_parser=ParseXml(SessionHandler()),
            ),
            OperationDescriptor(
                "logout_session_with_token",
                "DELETE",
                headers=accept,
                params=(url, token),
                response_parser=ReleasePayloadAndReturn(),
            ),
        ],
    )


class SessionClient:
    """Typed access to the vCloud Director session API.

    :param transport: Network collaborator; closed with the client.
    :param endpoint: API root, e.g. ``https://vcloud.example.com/api``.
    """

    def __init__(self, transport: Transport, endpoint: Endpoint | str) -> None:
        if isinstance(endpoint, str):
            endpoint = Endpoint.from_url(endpoint)
        self.engine = InvocationEngine(build_session_api(), transport, endpoint=endpoint)

    def __repr__(self) -> str:
        return f"SessionClient(endpoint={str(self.engine.endpoint)!r})"

    @property
    def login_url(self) -> str:
        return f"{self.engine.endpoint.base_url}/sessions"

    def login_user_in_org_with_password(self, url: str, user: str, org: str, password: str) -> SessionWithToken:
        return self.engine.invoke(  # type: ignore[return-value]
            "login_user_in_org_with_password", url, user, org, password
        )

    def get_session_with_token(self, url: str, token: str) -> Session:
        return self.engine.invoke("get_session_with_token", url, token)  # type: ignore[return-value]

    def logout_session_with_token(self, url: str, token: str) -> None:
        self.engine.invoke("logout_session_with_token", url, token)

    def login(self, user: str, org: str, password: str) -> SessionWithToken:
        """Log in at the endpoint's ``/sessions`` resource."""
        return self.login_user_in_org_with_password(self.login_url, user, org, password)

    def close(self) -> None:
        self.engine.close()

    def __enter__(self) -> SessionClient:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()


def create_session_client(config: ProviderConfig, transport: Transport) -> SessionClient:
    """Registry factory for the ``vcloud-session`` provider type.

    :raises ValueError: If no endpoint is configured.
    :raises TypeError: If options are given; the provider takes none.
    """
    if not config.endpoint:
        raise ValueError("the vcloud-session provider needs an endpoint")
    if config.options:
        raise TypeError(f"unexpected options {sorted(config.options)}")
    return SessionClient(transport, config.endpoint)
