"""Declaring operations — describe a remote API as data and invoke it.

Demonstrates:
- Declaring OperationDescriptors with path placeholders, binders and parsers
- Recovering from 404 with an exception parser
- Building a request without sending it

Runs offline: an ``httpx.MockTransport`` plays the remote service.
"""

from __future__ import annotations

import httpx

from restbind import (
    Endpoint,
    HeaderBinder,
    HttpxTransport,
    InvocationEngine,
    OperationDescriptor,
    Param,
    PayloadBinder,
    ProviderApi,
    QueryBinder,
    ReturnBody,
    ReturnNoneOnNotFound,
    TokenHeaderFilter,
)

NOTES: dict[str, bytes] = {}


def handler(request: httpx.Request) -> httpx.Response:
    key = request.url.path.rsplit("/", 1)[-1]
    if request.method == "PUT":
        NOTES[key] = request.read()
        return httpx.Response(201)
    if key in NOTES:
        return httpx.Response(200, content=NOTES[key])
    return httpx.Response(404, content=b"no such note")


api = ProviderApi(
    "notes",
    [
        OperationDescriptor(
            "put_note",
            "PUT",
            "/notebooks/{notebook}/notes/{note}",
            params=(
                Param("notebook"),
                Param("note"),
                Param("text", binder=PayloadBinder("text/plain")),
                Param("author", binder=HeaderBinder("X-Author"), default=None),
            ),
        ),
        OperationDescriptor(
            "get_note",
            "GET",
            "/notebooks/{notebook}/notes/{note}",
            params=(Param("notebook"), Param("note"), Param("version", binder=QueryBinder("v"), default=None)),
            response_parser=ReturnBody(),
            exception_parser=ReturnNoneOnNotFound(),
        ),
    ],
)

if __name__ == "__main__":
    transport = HttpxTransport(transport=httpx.MockTransport(handler))
    engine = InvocationEngine(
        api,
        transport,
        endpoint=Endpoint.from_url("https://notes.example.com/api"),
        filters=[TokenHeaderFilter("Authorization", lambda: "Bearer demo-token")],
    )

    with engine:
        # Inspect what would be sent
        request = engine.prepare("get_note", "work", "todo list", version=2)
        print(request.request_line)
        print(dict(request.header_items()))

        engine.invoke("put_note", "work", "todo", "buy milk", author="me")
        print("get_note:", engine.invoke("get_note", "work", "todo"))
        print("missing note:", engine.invoke("get_note", "work", "nothing"))
