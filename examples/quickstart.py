"""Quickstart — create a bucket, write and read an object with restbind.

Demonstrates:
- Creating a RegistryConfig with an S3-compatible provider
- Opening a Registry and getting a client
- Writing, reading and listing objects

Needs an S3-compatible server, e.g. ``moto_server -p 9000`` or MinIO.
Set ``RESTBIND_S3_ENDPOINT`` to point elsewhere.
"""

from __future__ import annotations

import os

from restbind import ProviderConfig, Registry, RegistryConfig
from restbind.providers import S3Object

if __name__ == "__main__":
    config = RegistryConfig(
        providers={
            "local": ProviderConfig(
                type="s3",
                endpoint=os.environ.get("RESTBIND_S3_ENDPOINT", "http://127.0.0.1:9000"),
                identity=os.environ.get("RESTBIND_S3_IDENTITY", "testing"),
                credential=os.environ.get("RESTBIND_S3_CREDENTIAL", "testing"),
                options={"virtual_host_buckets": False},
            )
        }
    )

    with Registry(config) as registry:
        s3 = registry.get_client("local")

        # Create a bucket; False means it was already ours
        created = s3.put_bucket_in_region(None, "quickstart")
        print(f"Bucket created: {created}")

        # Write an object
        etag = s3.put_object("quickstart", S3Object.create("hello.txt", "Hello, world!", "text/plain"))
        print(f"Stored with ETag {etag}")

        # Read it back
        obj = s3.get_object("quickstart", "hello.txt")
        if obj is not None:
            print(f"Content: {obj.read()!r}")
            print(f"Content-Type: {obj.metadata.content_type}")

        # List the bucket
        listing = s3.list_bucket("quickstart")
        print("Keys:", [entry.key for entry in listing.contents])

        s3.delete_object("quickstart", "hello.txt")
        print(f"Bucket removed: {s3.delete_bucket_if_empty('quickstart')}")
