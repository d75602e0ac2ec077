"""Error handling — construction errors, HTTP errors and transport failures.

Demonstrates the error hierarchy and how to handle errors
programmatically using structured attributes.

Runs offline: an ``httpx.MockTransport`` plays the remote service.
"""

from __future__ import annotations

import httpx

from restbind import (
    AuthorizationError,
    BindingError,
    ConnectionFailed,
    HttpxTransport,
    RestBindError,
    UnresolvedPlaceholder,
)
from restbind.providers import S3Client

ERRORS = {
    "missing": (404, "NoSuchKey", "The specified key does not exist."),
    "secret": (403, "AccessDenied", "Access Denied"),
}


def handler(request: httpx.Request) -> httpx.Response:
    name = request.url.path.rstrip("/").rsplit("/", 1)[-1]
    if name == "offline":
        raise httpx.ConnectError("connection refused", request=request)
    status, code, message = ERRORS.get(name, (500, "InternalError", "boom"))
    body = f"<Error><Code>{code}</Code><Message>{message}</Message></Error>"
    return httpx.Response(status, content=body.encode())


if __name__ == "__main__":
    transport = HttpxTransport(transport=httpx.MockTransport(handler), max_attempts=2, retry_wait=0)
    with S3Client(
        transport, "https://s3.example.com", "identity", "credential", virtual_host_buckets=False
    ) as s3:
        # --- Construction errors never reach the network ---
        try:
            s3.engine.invoke("get_object", "bucket", None)
        except UnresolvedPlaceholder as exc:
            print(f"UnresolvedPlaceholder: {exc}")
        try:
            s3.engine.invoke("put_object", "bucket", b"not an S3Object")
        except BindingError as exc:
            print(f"BindingError: {exc}")

        # --- 404 recovered by the operation ---
        print(f"\nget_object on a missing key: {s3.get_object('bucket', 'missing')}")

        # --- Typed HTTP errors carry the service's error code ---
        try:
            s3.list_bucket("secret")
        except AuthorizationError as exc:
            print(f"\nAuthorizationError: {exc}")
            print(f"  status={exc.status}, error_code={exc.error_code}")

        # --- Catch any restbind error with the base class ---
        try:
            s3.delete_bucket_if_empty("other")
        except RestBindError as exc:
            print(f"\nRestBindError ({type(exc).__name__}): {exc}")

        # --- Transport failures are retried, then raised ---
        try:
            s3.list_bucket("offline")
        except ConnectionFailed as exc:
            print(f"\nConnectionFailed: {exc}")

    print("\nDone!")
