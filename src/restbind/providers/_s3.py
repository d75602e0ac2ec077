"""Generic S3 API provider: operations, XML handlers, binders and request signing."""

from __future__ import annotations

import base64
import dataclasses
import enum
import hashlib
import hmac
import logging
import xml.etree.ElementTree as ET
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import TYPE_CHECKING, Any, Optional

import httpx

from restbind._api import ProviderApi
from restbind._binders import Binder, HostPrefixBinder, PayloadBinder, XmlPayloadBinder
from restbind._descriptor import EndpointPolicy, OperationDescriptor, Param
from restbind._engine import InvocationEngine
from restbind._errors import AuthorizationError, HttpResponseError, ResourceNotFound
from restbind._fallbacks import (
    ExceptionParser,
    HttpErrorMapper,
    MapHttp4xxCodesToExceptions,
    ReturnFalseOnNotFound,
    ReturnNoneOnNotFound,
)
from restbind._filters import DateHeaderFilter, RequestFilter, TimestampCache
from restbind._models import Endpoint, Payload
from restbind._parsers import (
    ExtractViaRegex,
    ParseETagHeader,
    ParseXml,
    ReleasePayloadAndReturn,
    ResponseParser,
    ReturnTrueIf2xx,
    XmlHandler,
    child_text,
    children,
    local_name,
)
from restbind._uri import EncodingMode, decode, encode_query

if TYPE_CHECKING:
    from collections.abc import Mapping
    from types import TracebackType

    from restbind._config import ProviderConfig
    from restbind._models import RawResponse, RequestTemplate
    from restbind._resolver import EndpointResolver
    from restbind._transport import Transport

log = logging.getLogger(__name__)

DEFAULT_REGION = "us-standard"
DEFAULT_OBJECT_CONTENT_TYPE = "binary/octet-stream"
USER_METADATA_PREFIX = "x-amz-meta-"

# Query parameters that are part of the signed resource.
SIGNED_SUBRESOURCES = frozenset(
    {
        "acl",
        "delete",
        "lifecycle",
        "location",
        "logging",
        "notification",
        "partNumber",
        "policy",
        "requestPayment",
        "torrent",
        "uploadId",
        "uploads",
        "versionId",
        "versioning",
        "versions",
        "website",
    }
)

# region: records


class CannedAccessPolicy(str, enum.Enum):
    """Predefined access control lists, sent as ``x-amz-acl``."""

    PRIVATE = "private"
    PUBLIC_READ = "public-read"
    PUBLIC_READ_WRITE = "public-read-write"
    AUTHENTICATED_READ = "authenticated-read"
    BUCKET_OWNER_READ = "bucket-owner-read"
    BUCKET_OWNER_FULL_CONTROL = "bucket-owner-full-control"


@dataclasses.dataclass(frozen=True)
class ObjectMetadata:
    """Metadata describing a stored object.

    :param key: Object key within its bucket.
    :param content_type: MIME type of the object.
    :param content_length: Size in bytes.
    :param content_md5: Raw MD5 digest of the content.
    :param etag: Entity tag, as returned by the service (quoted).
    :param last_modified: Last modification time.
    :param storage_class: Storage class, when listed.
    :param cache_control: ``Cache-Control`` to store with the object.
    :param content_disposition: ``Content-Disposition`` to store with the object.
    :param content_encoding: ``Content-Encoding`` to store with the object.
    :param user_metadata: ``x-amz-meta-*`` entries without the prefix.
    """

    key: str
    content_type: Optional[str] = None
    content_length: Optional[int] = None
    content_md5: Optional[bytes] = None
    etag: Optional[str] = None
    last_modified: Optional[datetime] = None
    storage_class: Optional[str] = None
    cache_control: Optional[str] = None
    content_disposition: Optional[str] = None
    content_encoding: Optional[str] = None
    user_metadata: dict[str, str] = dataclasses.field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.key:
            raise ValueError("Object key must be a non-empty string")


@dataclasses.dataclass(frozen=True)
class S3Object:
    """An object: its metadata plus, when transferred, its content.

    :param metadata: Object metadata.
    :param payload: Content; ``None`` for metadata-only objects.
    """

    metadata: ObjectMetadata
    payload: Optional[Payload] = None

    @classmethod
    def create(
        cls,
        key: str,
        data: bytes | str,
        content_type: str = DEFAULT_OBJECT_CONTENT_TYPE,
        *,
        user_metadata: Mapping[str, str] | None = None,
    ) -> S3Object:
        """Build an object from in-memory content."""
        raw = data.encode("utf-8") if isinstance(data, str) else data
        metadata = ObjectMetadata(
            key=key,
            content_type=content_type,
            content_length=len(raw),
            user_metadata=dict(user_metadata or {}),
        )
        return cls(metadata, Payload.from_bytes(raw, content_type))

    @property
    def key(self) -> str:
        return self.metadata.key

    def read(self) -> bytes:
        """Return the content, or ``b""`` for metadata-only objects."""
        return self.payload.read() if self.payload is not None else b""


@dataclasses.dataclass(frozen=True)
class BucketMetadata:
    name: str
    creation_date: Optional[datetime] = None
    owner_id: Optional[str] = None
    owner_name: Optional[str] = None


@dataclasses.dataclass(frozen=True)
class ListBucketResponse:
    """One page of a bucket listing."""

    name: str
    prefix: Optional[str] = None
    marker: Optional[str] = None
    next_marker: Optional[str] = None
    max_keys: Optional[int] = None
    delimiter: Optional[str] = None
    truncated: bool = False
    contents: tuple[ObjectMetadata, ...] = ()
    common_prefixes: tuple[str, ...] = ()


@dataclasses.dataclass(frozen=True)
class PutObjectOptions:
    """Extra settings for an object upload.

    :param acl: Canned access policy.
    :param headers: Additional request headers (e.g. ``x-amz-storage-class``).
    """

    acl: Optional[CannedAccessPolicy] = None
    headers: dict[str, str] = dataclasses.field(default_factory=dict)


@dataclasses.dataclass(frozen=True)
class PutBucketOptions:
    acl: Optional[CannedAccessPolicy] = None


@dataclasses.dataclass(frozen=True)
class ListBucketOptions:
    """Filters and paging for :meth:`S3Client.list_bucket`."""

    prefix: Optional[str] = None
    marker: Optional[str] = None
    max_keys: Optional[int] = None
    delimiter: Optional[str] = None

    def __post_init__(self) -> None:
        if self.max_keys is not None and self.max_keys < 0:
            raise ValueError("max_keys must not be negative")


# endregion

# region: binders


def _metadata_headers(metadata: ObjectMetadata) -> list[tuple[str, str]]:
    headers: list[tuple[str, str]] = []
    if metadata.cache_control:
        headers.append(("Cache-Control", metadata.cache_control))
    if metadata.content_disposition:
        headers.append(("Content-Disposition", metadata.content_disposition))
    if metadata.content_encoding:
        headers.append(("Content-Encoding", metadata.content_encoding))
    headers.extend((f"{USER_METADATA_PREFIX}{k}", v) for k, v in metadata.user_metadata.items())
    return headers


class ObjectMetadataBinder(Binder):
    """Sends object metadata as headers, without a body (multipart initiation)."""

    def bind(self, request: RequestTemplate, value: object) -> RequestTemplate:
        if not isinstance(value, ObjectMetadata):
            raise self._reject(request, f"expected ObjectMetadata, got {type(value).__name__}")
        if value.content_md5 is not None:
            request.set_header("Content-MD5", base64.b64encode(value.content_md5).decode("ascii"))
        request.set_header("Content-Type", value.content_type or DEFAULT_OBJECT_CONTENT_TYPE)
        for name, header in _metadata_headers(value):
            request.set_header(name, header)
        return request


class S3ObjectBinder(Binder):
    """Sends an object's content as the body and its metadata as headers."""

    def bind(self, request: RequestTemplate, value: object) -> RequestTemplate:
        if not isinstance(value, S3Object):
            raise self._reject(request, f"expected S3Object, got {type(value).__name__}")
        metadata = value.metadata
        source = value.payload or Payload.from_bytes(b"")
        request.set_payload(
            Payload(
                source.content,
                content_type=metadata.content_type or source.content_type,
                content_length=source.content_length if source.content_length is not None else metadata.content_length,
                content_md5=metadata.content_md5 or source.content_md5,
            )
        )
        for name, header in _metadata_headers(metadata):
            request.set_header(name, header)
        return request


class PutObjectOptionsBinder(Binder):
    def bind(self, request: RequestTemplate, value: object) -> RequestTemplate:
        if not isinstance(value, PutObjectOptions):
            raise self._reject(request, f"expected PutObjectOptions, got {type(value).__name__}")
        if value.acl is not None:
            request.set_header("x-amz-acl", CannedAccessPolicy(value.acl).value)
        for name, header in value.headers.items():
            request.set_header(name, header)
        return request


class PutBucketOptionsBinder(Binder):
    def bind(self, request: RequestTemplate, value: object) -> RequestTemplate:
        if not isinstance(value, PutBucketOptions):
            raise self._reject(request, f"expected PutBucketOptions, got {type(value).__name__}")
        if value.acl is not None:
            request.set_header("x-amz-acl", CannedAccessPolicy(value.acl).value)
        return request


class ListBucketOptionsBinder(Binder):
    def bind(self, request: RequestTemplate, value: object) -> RequestTemplate:
        if not isinstance(value, ListBucketOptions):
            raise self._reject(request, f"expected ListBucketOptions, got {type(value).__name__}")
        for name, option in (
            ("prefix", value.prefix),
            ("marker", value.marker),
            ("max-keys", value.max_keys),
            ("delimiter", value.delimiter),
        ):
            if option is not None:
                request.set_query(name, encode_query(str(option)))
        return request


class BindRegionToXmlPayload(XmlPayloadBinder):
    """Renders ``<CreateBucketConfiguration>`` for a region; the default region sends no body.

    :param default_region: Region that needs no location constraint.
    """

    def __init__(self, default_region: str = DEFAULT_REGION) -> None:
        super().__init__()
        self.default_region = default_region

    def to_element(self, value: object) -> ET.Element | None:
        if value is None or value == self.default_region:
            return None
        if not isinstance(value, str):
            raise TypeError(f"region must be a string, got {type(value).__name__}")
        root = ET.Element("CreateBucketConfiguration")
        ET.SubElement(root, "LocationConstraint").text = value
        return root


class BindPartIdsAndETagsToXmlPayload(XmlPayloadBinder):
    """Renders ``<CompleteMultipartUpload>`` from a part number to ETag mapping."""

    def to_element(self, value: object) -> ET.Element:
        if not isinstance(value, dict) or not value:
            raise ValueError("parts must be a non-empty mapping of part number to ETag")
        root = ET.Element("CompleteMultipartUpload")
        for number in sorted(value):
            part = ET.SubElement(root, "Part")
            ET.SubElement(part, "PartNumber").text = str(int(number))
            ET.SubElement(part, "ETag").text = str(value[number])
        return root


# endregion

# region: XML handlers and response parsers


def parse_iso8601(text: str) -> datetime:
    """Parse timestamps such as ``2009-10-12T17:50:30.000Z``."""
    value = datetime.fromisoformat(text.strip().replace("Z", "+00:00"))
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


def _optional_int(text: Optional[str]) -> Optional[int]:
    return int(text) if text else None


def _expect(root: ET.Element, name: str) -> None:
    if local_name(root.tag) != name:
        raise ValueError(f"expected <{name}>, got <{local_name(root.tag)}>")


class LocationConstraintHandler(XmlHandler[str]):
    """Reads ``<LocationConstraint>``; an empty constraint means the default region."""

    def __init__(self, default_region: str = DEFAULT_REGION) -> None:
        self.default_region = default_region

    def handle(self, root: ET.Element) -> str:
        _expect(root, "LocationConstraint")
        return (root.text or "").strip() or self.default_region


class ListAllMyBucketsHandler(XmlHandler[list[BucketMetadata]]):
    def handle(self, root: ET.Element) -> list[BucketMetadata]:
        _expect(root, "ListAllMyBucketsResult")
        owner_id = owner_name = None
        for owner in children(root, "Owner"):
            owner_id = child_text(owner, "ID")
            owner_name = child_text(owner, "DisplayName")
        buckets = []
        for container in children(root, "Buckets"):
            for bucket in children(container, "Bucket"):
                created = child_text(bucket, "CreationDate")
                buckets.append(
                    BucketMetadata(
                        name=child_text(bucket, "Name") or "",
                        creation_date=parse_iso8601(created) if created else None,
                        owner_id=owner_id,
                        owner_name=owner_name,
                    )
                )
        return buckets


class ListBucketHandler(XmlHandler[ListBucketResponse]):
    def handle(self, root: ET.Element) -> ListBucketResponse:
        _expect(root, "ListBucketResult")
        contents = []
        for entry in children(root, "Contents"):
            modified = child_text(entry, "LastModified")
            contents.append(
                ObjectMetadata(
                    key=child_text(entry, "Key") or "",
                    content_length=_optional_int(child_text(entry, "Size")),
                    etag=child_text(entry, "ETag"),
                    last_modified=parse_iso8601(modified) if modified else None,
                    storage_class=child_text(entry, "StorageClass"),
                )
            )
        prefixes = tuple(
            child_text(entry, "Prefix") or "" for entry in children(root, "CommonPrefixes")
        )
        return ListBucketResponse(
            name=child_text(root, "Name") or "",
            prefix=child_text(root, "Prefix") or None,
            marker=child_text(root, "Marker") or None,
            next_marker=child_text(root, "NextMarker") or None,
            max_keys=_optional_int(child_text(root, "MaxKeys")),
            delimiter=child_text(root, "Delimiter") or None,
            truncated=(child_text(root, "IsTruncated") or "false").lower() == "true",
            contents=tuple(contents),
            common_prefixes=prefixes,
        )


def metadata_from_headers(key: str, headers: httpx.Headers) -> ObjectMetadata:
    """Build :class:`ObjectMetadata` from object response headers."""
    modified = headers.get("Last-Modified")
    md5 = headers.get("Content-MD5")
    return ObjectMetadata(
        key=key,
        content_type=headers.get("Content-Type"),
        content_length=_optional_int(headers.get("Content-Length")),
        content_md5=base64.b64decode(md5) if md5 else None,
        etag=headers.get("ETag"),
        last_modified=parsedate_to_datetime(modified) if modified else None,
        cache_control=headers.get("Cache-Control"),
        content_disposition=headers.get("Content-Disposition"),
        content_encoding=headers.get("Content-Encoding"),
        user_metadata={
            name[len(USER_METADATA_PREFIX) :]: value
            for name, value in headers.items()
            if name.lower().startswith(USER_METADATA_PREFIX)
        },
    )


def _requested_key(response: RawResponse) -> str:
    if response.request is None:
        raise ValueError("response is not linked to its request")
    return str(response.request.arguments["key"])


class ParseObjectMetadataFromHeaders(ResponseParser):
    def parse(self, response: RawResponse) -> ObjectMetadata:
        with response:
            response.release()
        return metadata_from_headers(_requested_key(response), response.headers)


class ParseObjectFromHeadersAndHttpContent(ResponseParser):
    """Reads the whole body into an :class:`S3Object` carrying the response metadata."""

    def parse(self, response: RawResponse) -> S3Object:
        body = response.read()
        metadata = metadata_from_headers(_requested_key(response), response.headers)
        content_type = metadata.content_type or DEFAULT_OBJECT_CONTENT_TYPE
        return S3Object(metadata, Payload.from_bytes(body, content_type))


UPLOAD_ID_PATTERN = r"<UploadId>([^<\s]+)</UploadId>"
ETAG_PATTERN = r"<ETag>(\S+)</ETag>"

# endregion

# region: errors


NOT_FOUND_CODES = frozenset({"NoSuchBucket", "NoSuchKey", "NoSuchUpload"})
AUTHORIZATION_CODES = frozenset({"AccessDenied", "InvalidAccessKeyId", "SignatureDoesNotMatch"})


class S3ErrorMapper(HttpErrorMapper):
    """Reads ``<Error><Code>…</Code><Message>…</Message></Error>`` documents."""

    def error_details(self, status: int, body: str) -> tuple[Optional[str], Optional[str]]:
        if not body.strip():
            return None, None
        try:
            root = ET.fromstring(body)
        except ET.ParseError:
            return None, None
        if local_name(root.tag) != "Error":
            return None, None
        return child_text(root, "Code"), child_text(root, "Message")

    def classify(self, status: int, error_code: Optional[str]) -> type[HttpResponseError]:
        if error_code in NOT_FOUND_CODES:
            return ResourceNotFound
        if error_code in AUTHORIZATION_CODES:
            return AuthorizationError
        return super().classify(status, error_code)


class ReturnFalseIfBucketAlreadyOwnedByYou(ExceptionParser):
    """Creating a bucket the caller already owns yields ``False``; any other conflict is raised."""

    def recover(self, error: HttpResponseError) -> bool:
        if error.error_code == "BucketAlreadyOwnedByYou":
            return False
        raise error


class ReturnTrueOnNotFoundFalseIfNotEmpty(ExceptionParser):
    """Deleting a missing bucket succeeds; deleting a non-empty one yields ``False``."""

    def recover(self, error: HttpResponseError) -> bool:
        if error.status == 404:
            return True
        if error.error_code == "BucketNotEmpty":
            return False
        raise error


# endregion

# region: signing


class S3SigningFilter(RequestFilter):
    """Signs requests with HMAC-SHA1 (``Authorization: AWS identity:signature``).

    The ``Date`` header and the signature come from one read of the shared
    timestamp cache.

    :param identity: Access key id.
    :param credential: Secret access key.
    :param timestamps: Shared timestamp cache.
    """

    def __init__(self, identity: str, credential: str, timestamps: TimestampCache) -> None:
        self.identity = identity
        self._key = credential.encode("utf-8")
        self._timestamps = timestamps

    def __repr__(self) -> str:
        return f"S3SigningFilter(identity={self.identity!r})"

    def filter(self, request: RequestTemplate) -> RequestTemplate:
        request.set_header("Date", self._timestamps.get())
        signature = self.sign(self.string_to_sign(request))
        request.set_header("Authorization", f"AWS {self.identity}:{signature}")
        return request

    def sign(self, text: str) -> str:
        digest = hmac.new(self._key, text.encode("utf-8"), hashlib.sha1).digest()
        return base64.b64encode(digest).decode("ascii")

    def string_to_sign(self, request: RequestTemplate) -> str:
        headers = httpx.Headers(request.wire_headers())
        lines = [
            request.method,
            headers.get("Content-MD5", ""),
            headers.get("Content-Type", ""),
            headers.get("Date", ""),
        ]
        amz: dict[str, list[str]] = {}
        for name, value in headers.multi_items():
            if name.startswith("x-amz-"):
                amz.setdefault(name, []).append(value.strip())
        lines.extend(f"{name}:{','.join(values)}" for name, values in sorted(amz.items()))
        lines.append(self.canonical_resource(request))
        return "\n".join(lines)

    def canonical_resource(self, request: RequestTemplate) -> str:
        resource = request.resource_path
        virtual_host = request.attributes.get("virtual_host")
        if virtual_host:
            resource = f"/{virtual_host}{resource}"
        subresources = sorted(
            (name, value) for name, value in request.query if name in SIGNED_SUBRESOURCES
        )
        if subresources:
            resource += "?" + "&".join(
                name if value is None else f"{name}={decode(value)}" for name, value in subresources
            )
        return resource


# endregion

# region: operations


def _bucket(binder: HostPrefixBinder) -> Param:
    return Param("bucket", binder=binder, encoding=EncodingMode.LITERAL)


def build_s3_api(bucket_binder: HostPrefixBinder, name: str = "s3", default_region: str = DEFAULT_REGION) -> ProviderApi:
    """Declare the S3 operations, addressing buckets through ``bucket_binder``."""
    bucket = _bucket(bucket_binder)
    bucket_scoped: dict[str, Any] = {"endpoint_policy": EndpointPolicy.CACHED, "endpoint_param": "bucket"}
    not_found_as_4xx = MapHttp4xxCodesToExceptions()
    return ProviderApi(
        name,
        [
            OperationDescriptor(
                "list_own_buckets",
                "GET",
                "/",
                response_parser=ParseXml(ListAllMyBucketsHandler()),
            ),
            OperationDescriptor(
                "bucket_exists",
                "HEAD",
                "/{bucket}/",
                params=(bucket,),
                query={"max-keys": "0"},
                response_parser=ReturnTrueIf2xx(),
                exception_parser=ReturnFalseOnNotFound(),
                **bucket_scoped,
            ),
            OperationDescriptor(
                "put_bucket_in_region",
                "PUT",
                "/{bucket}/",
                params=(
                    Param("region", binder=BindRegionToXmlPayload(default_region)),
                    bucket,
                    Param("options", binder=PutBucketOptionsBinder(), default=None),
                ),
                response_parser=ReturnTrueIf2xx(),
                exception_parser=ReturnFalseIfBucketAlreadyOwnedByYou(),
                **bucket_scoped,
            ),
            OperationDescriptor(
                "delete_bucket_if_empty",
                "DELETE",
                "/{bucket}/",
                params=(bucket,),
                response_parser=ReturnTrueIf2xx(),
                exception_parser=ReturnTrueOnNotFoundFalseIfNotEmpty(),
                **bucket_scoped,
            ),
            OperationDescriptor(
                "get_bucket_location",
                "GET",
                "/{bucket}/",
                params=(bucket,),
                query={"location": None},
                response_parser=ParseXml(LocationConstraintHandler(default_region)),
                **bucket_scoped,
            ),
            OperationDescriptor(
                "list_bucket",
                "GET",
                "/{bucket}/",
                params=(bucket, Param("options", binder=ListBucketOptionsBinder(), default=None)),
                response_parser=ParseXml(ListBucketHandler()),
                **bucket_scoped,
            ),
            OperationDescriptor(
                "put_object",
                "PUT",
                "/{bucket}/{key}",
                params=(
                    bucket,
                    Param("object", binder=S3ObjectBinder(), placeholder="key", parser=lambda o: o.metadata.key),
                    Param("options", binder=PutObjectOptionsBinder(), default=None),
                ),
                response_parser=ParseETagHeader(),
                **bucket_scoped,
            ),
            OperationDescriptor(
                "get_object",
                "GET",
                "/{bucket}/{key}",
                params=(bucket, Param("key")),
                response_parser=ParseObjectFromHeadersAndHttpContent(),
                exception_parser=ReturnNoneOnNotFound(),
                **bucket_scoped,
            ),
            OperationDescriptor(
                "head_object",
                "HEAD",
                "/{bucket}/{key}",
                params=(bucket, Param("key")),
                response_parser=ParseObjectMetadataFromHeaders(),
                exception_parser=ReturnNoneOnNotFound(),
                **bucket_scoped,
            ),
            OperationDescriptor(
                "object_exists",
                "HEAD",
                "/{bucket}/{key}",
                params=(bucket, Param("key")),
                response_parser=ReturnTrueIf2xx(),
                exception_parser=ReturnFalseOnNotFound(),
                **bucket_scoped,
            ),
            OperationDescriptor(
                "delete_object",
                "DELETE",
                "/{bucket}/{key}",
                params=(bucket, Param("key")),
                response_parser=ReleasePayloadAndReturn(),
                exception_parser=ReturnNoneOnNotFound(),
                **bucket_scoped,
            ),
            OperationDescriptor(
                "initiate_multipart_upload",
                "POST",
                "/{bucket}/{key}",
                params=(
                    bucket,
                    Param("metadata", binder=ObjectMetadataBinder(), placeholder="key", parser=lambda m: m.key),
                    Param("options", binder=PutObjectOptionsBinder(), default=None),
                ),
                query={"uploads": None},
                response_parser=ExtractViaRegex(UPLOAD_ID_PATTERN),
                exception_parser=not_found_as_4xx,
                **bucket_scoped,
            ),
            OperationDescriptor(
                "upload_part",
                "PUT",
                "/{bucket}/{key}",
                params=(
                    bucket,
                    Param("key"),
                    Param("part_number"),
                    Param("upload_id"),
                    Param("payload", binder=PayloadBinder()),
                ),
                query={"partNumber": "{part_number}", "uploadId": "{upload_id}"},
                response_parser=ParseETagHeader(),
                exception_parser=not_found_as_4xx,
                **bucket_scoped,
            ),
            OperationDescriptor(
                "complete_multipart_upload",
                "POST",
                "/{bucket}/{key}",
                params=(
                    bucket,
                    Param("key"),
                    Param("upload_id"),
                    Param("parts", binder=BindPartIdsAndETagsToXmlPayload()),
                ),
                query={"uploadId": "{upload_id}"},
                response_parser=ExtractViaRegex(ETAG_PATTERN),
                exception_parser=not_found_as_4xx,
                **bucket_scoped,
            ),
            OperationDescriptor(
                "abort_multipart_upload",
                "DELETE",
                "/{bucket}/{key}",
                params=(bucket, Param("key"), Param("upload_id")),
                query={"uploadId": "{upload_id}"},
                response_parser=ReleasePayloadAndReturn(),
                exception_parser=ReturnNoneOnNotFound(),
                **bucket_scoped,
            ),
        ],
    )


# endregion

# region: client


class S3Client:
    """Typed access to an S3-compatible service.

    :param transport: Network collaborator; closed with the client.
    :param endpoint: Service endpoint.
    :param identity: Access key id; empty for anonymous access.
    :param credential: Secret access key.
    :param virtual_host_buckets: Address buckets as ``bucket.host`` instead of ``host/bucket``.
    :param timestamps: Shared timestamp cache for ``Date`` and signatures.
    """

    provider_name = "s3"
    default_region = DEFAULT_REGION

    def __init__(
        self,
        transport: Transport,
        endpoint: Endpoint | str,
        identity: str = "",
        credential: str = "",
        *,
        virtual_host_buckets: bool = True,
        timestamps: TimestampCache | None = None,
    ) -> None:
        if isinstance(endpoint, str):
            endpoint = Endpoint.from_url(endpoint, region=self.default_region)
        self.timestamps = timestamps or TimestampCache()
        filters: list[RequestFilter]
        if identity:
            filters = [S3SigningFilter(identity, credential, self.timestamps)]
        else:
            filters = [DateHeaderFilter(self.timestamps)]
        self.resolver = self._create_resolver()
        self.engine = InvocationEngine(
            self._build_api(self._bucket_binder(virtual_host_buckets)),
            transport,
            endpoint=endpoint,
            filters=filters,
            resolver=self.resolver,
            error_mapper=S3ErrorMapper(provider=self.provider_name),
        )

    def __repr__(self) -> str:
        return f"{type(self).__name__}(endpoint={str(self.engine.endpoint)!r})"

    # region: extension points

    def _bucket_binder(self, enabled: bool) -> HostPrefixBinder:
        return HostPrefixBinder(enabled=enabled)

    def _build_api(self, bucket_binder: HostPrefixBinder) -> ProviderApi:
        return build_s3_api(bucket_binder, self.provider_name, self.default_region)

    def _create_resolver(self) -> EndpointResolver | None:
        return None

    # endregion

    # region: buckets

    def list_own_buckets(self) -> list[BucketMetadata]:
        return self.engine.invoke("list_own_buckets")  # type: ignore[return-value]

    def bucket_exists(self, bucket: str) -> bool:
        return self.engine.invoke("bucket_exists", bucket)  # type: ignore[return-value]

    def put_bucket_in_region(
        self, region: str | None, bucket: str, options: PutBucketOptions | None = None
    ) -> bool:
        """Create ``bucket`` in ``region`` (``None`` for the default region).

        :returns: ``False`` if the bucket already exists.
        """
        return self.engine.invoke("put_bucket_in_region", region, bucket, options)  # type: ignore[return-value]

    def delete_bucket_if_empty(self, bucket: str) -> bool:
        """:returns: ``True`` if the bucket is gone, ``False`` if it still holds objects."""
        return self.engine.invoke("delete_bucket_if_empty", bucket)  # type: ignore[return-value]

    def get_bucket_location(self, bucket: str) -> str:
        return self.engine.invoke("get_bucket_location", bucket)  # type: ignore[return-value]

    def list_bucket(self, bucket: str, options: ListBucketOptions | None = None) -> ListBucketResponse:
        return self.engine.invoke("list_bucket", bucket, options)  # type: ignore[return-value]

    # endregion

    # region: objects

    def put_object(self, bucket: str, obj: S3Object, options: PutObjectOptions | None = None) -> str:
        """Upload ``obj`` and return its ETag."""
        return self.engine.invoke("put_object", bucket, obj, options)  # type: ignore[return-value]

    def get_object(self, bucket: str, key: str) -> S3Object | None:
        return self.engine.invoke("get_object", bucket, key)  # type: ignore[return-value]

    def head_object(self, bucket: str, key: str) -> ObjectMetadata | None:
        return self.engine.invoke("head_object", bucket, key)  # type: ignore[return-value]

    def object_exists(self, bucket: str, key: str) -> bool:
        return self.engine.invoke("object_exists", bucket, key)  # type: ignore[return-value]

    def delete_object(self, bucket: str, key: str) -> None:
        self.engine.invoke("delete_object", bucket, key)

    # endregion

    # region: multipart uploads

    def initiate_multipart_upload(
        self, bucket: str, metadata: ObjectMetadata, options: PutObjectOptions | None = None
    ) -> str:
        """Start a multipart upload and return its upload id."""
        return self.engine.invoke("initiate_multipart_upload", bucket, metadata, options)  # type: ignore[return-value]

    def upload_part(self, bucket: str, key: str, part_number: int, upload_id: str, payload: Payload | bytes) -> str:
        """Upload one part and return its ETag."""
        return self.engine.invoke("upload_part", bucket, key, part_number, upload_id, payload)  # type: ignore[return-value]

    def complete_multipart_upload(self, bucket: str, key: str, upload_id: str, parts: Mapping[int, str]) -> str:
        """Assemble the uploaded parts and return the object's ETag."""
        return self.engine.invoke(  # type: ignore[return-value]
            "complete_multipart_upload", bucket, key, upload_id, dict(parts)
        )

    def abort_multipart_upload(self, bucket: str, key: str, upload_id: str) -> None:
        self.engine.invoke("abort_multipart_upload", bucket, key, upload_id)

    # endregion

    def close(self) -> None:
        self.engine.close()

    def __enter__(self) -> S3Client:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()


# endregion


@dataclasses.dataclass(frozen=True)
class S3Options:
    """Provider options accepted in :class:`~restbind.ProviderConfig` for ``s3``."""

    virtual_host_buckets: bool = True
    timestamp_refresh_seconds: float = 1.0


def create_s3_client(config: ProviderConfig, transport: Transport) -> S3Client:
    """Registry factory for the ``s3`` provider type.

    :raises ValueError: If no endpoint is configured.
    :raises TypeError: For unknown options.
    """
    if not config.endpoint:
        raise ValueError("the s3 provider needs an endpoint")
    options = S3Options(**config.options)  # type: ignore[arg-type]
    return S3Client(
        transport,
        config.endpoint,
        config.identity,
        config.credential,
        virtual_host_buckets=bool(options.virtual_host_buckets),
        timestamps=TimestampCache(float(options.timestamp_refresh_seconds)),
    )
