"""Amazon S3: the generic S3 API with DNS-aware bucket addressing and bucket regions."""

from __future__ import annotations

import dataclasses
import ipaddress
import logging
import re
from typing import TYPE_CHECKING

from restbind._binders import HostPrefixBinder
from restbind._descriptor import EndpointPolicy
from restbind._filters import TimestampCache
from restbind._models import Endpoint
from restbind._resolver import EndpointResolver
from restbind.providers._s3 import DEFAULT_REGION, S3Client, build_s3_api

if TYPE_CHECKING:
    from collections.abc import Mapping

    from restbind._api import ProviderApi
    from restbind._config import ProviderConfig
    from restbind._models import RequestTemplate
    from restbind._transport import Transport
    from restbind.providers._s3 import PutBucketOptions

log = logging.getLogger(__name__)

DEFAULT_ENDPOINT = "https://s3.amazonaws.com"

REGION_HOSTS: dict[str, str] = {
    DEFAULT_REGION: "s3.amazonaws.com",
    "us-east-1": "s3.amazonaws.com",
    "us-west-1": "s3-us-west-1.amazonaws.com",
    "us-west-2": "s3-us-west-2.amazonaws.com",
    "EU": "s3-eu-west-1.amazonaws.com",
    "eu-west-1": "s3-eu-west-1.amazonaws.com",
    "ap-southeast-1": "s3-ap-southeast-1.amazonaws.com",
    "ap-northeast-1": "s3-ap-northeast-1.amazonaws.com",
    "sa-east-1": "s3-sa-east-1.amazonaws.com",
}

# Operations that must work before a bucket's region is known.
_REGION_INDEPENDENT = frozenset({"list_own_buckets", "bucket_exists", "put_bucket_in_region", "get_bucket_location"})

_DNS_NAME = re.compile(r"^[a-z0-9][a-z0-9.-]{1,61}[a-z0-9]$")


def is_dns_compliant(bucket: str) -> bool:
    """Whether ``bucket`` can be used as a host name label sequence."""
    if not _DNS_NAME.match(bucket):
        return False
    if ".." in bucket or ".-" in bucket or "-." in bucket:
        return False
    try:
        ipaddress.ip_address(bucket)
    except ValueError:
        return True
    return False


def endpoint_for_region(default: Endpoint, region: str) -> Endpoint:
    """Endpoint serving ``region``, keeping the scheme and port of ``default``."""
    host = REGION_HOSTS.get(region, f"s3-{region}.amazonaws.com")
    return dataclasses.replace(default, host=host, region=region)


class DnsCompliantBucketBinder(HostPrefixBinder):
    """Uses virtual-host addressing only for DNS-compliant bucket names."""

    def should_prefix(self, value: str) -> bool:
        return self.enabled and is_dns_compliant(value)

    def bind(self, request: RequestTemplate, value: object) -> RequestTemplate:
        request = super().bind(request, value)
        if self.enabled and "virtual_host" not in request.attributes:
            log.debug("Bucket %r is not DNS compliant; using path-style addressing", value)
        return request


def build_aws_s3_api(bucket_binder: HostPrefixBinder, *, discover_bucket_regions: bool = False) -> ProviderApi:
    """The S3 operations for Amazon S3.

    With ``discover_bucket_regions`` every bucket-scoped operation resolves
    the bucket's region before its first request; otherwise only regions
    already known are used.
    """
    api = build_s3_api(bucket_binder, "aws-s3", DEFAULT_REGION)
    if not discover_bucket_regions:
        return api
    return api.derive(
        "aws-s3",
        [
            dataclasses.replace(descriptor, endpoint_policy=EndpointPolicy.RESOLVE)
            for descriptor in api
            if descriptor.endpoint_param is not None and descriptor.name not in _REGION_INDEPENDENT
        ],
    )


class AwsS3Client(S3Client):
    """Typed access to Amazon S3.

    :param bucket_regions: Known bucket regions, used without discovery.
    :param discover_bucket_regions: Look up unknown bucket regions before bucket operations.
    """

    provider_name = "aws-s3"
    resolver: EndpointResolver

    def __init__(
        self,
        transport: Transport,
        endpoint: Endpoint | str = DEFAULT_ENDPOINT,
        identity: str = "",
        credential: str = "",
        *,
        virtual_host_buckets: bool = True,
        discover_bucket_regions: bool = False,
        bucket_regions: Mapping[str, str] | None = None,
        timestamps: TimestampCache | None = None,
    ) -> None:
        self._discover_bucket_regions = discover_bucket_regions
        super().__init__(
            transport,
            endpoint,
            identity,
            credential,
            virtual_host_buckets=virtual_host_buckets,
            timestamps=timestamps,
        )
        for bucket, region in (bucket_regions or {}).items():
            self.remember_region(bucket, region)

    def _bucket_binder(self, enabled: bool) -> HostPrefixBinder:
        return DnsCompliantBucketBinder(enabled=enabled)

    def _build_api(self, bucket_binder: HostPrefixBinder) -> ProviderApi:
        return build_aws_s3_api(bucket_binder, discover_bucket_regions=self._discover_bucket_regions)

    def _create_resolver(self) -> EndpointResolver:
        return EndpointResolver(self._discover_endpoint, name=self.provider_name)

    def _discover_endpoint(self, bucket: str) -> Endpoint:
        region = self.get_bucket_location(bucket)
        return endpoint_for_region(self.engine.endpoint, region)

    def remember_region(self, bucket: str, region: str) -> Endpoint:
        """Record that ``bucket`` lives in ``region``. The first recorded region wins."""
        return self.resolver.prime(bucket, endpoint_for_region(self.engine.endpoint, region))

    def put_bucket_in_region(
        self, region: str | None, bucket: str, options: PutBucketOptions | None = None
    ) -> bool:
        """Create ``bucket`` in ``region`` and remember the region for later requests."""
        created = super().put_bucket_in_region(region, bucket, options)
        if created:
            self.remember_region(bucket, region or self.default_region)
        return created


@dataclasses.dataclass(frozen=True)
class AwsS3Options:
    """Provider options accepted in :class:`~restbind.ProviderConfig` for ``aws-s3``."""

    virtual_host_buckets: bool = True
    timestamp_refresh_seconds: float = 1.0
    discover_bucket_regions: bool = False
    bucket_regions: dict[str, str] = dataclasses.field(default_factory=dict)


def create_aws_s3_client(config: ProviderConfig, transport: Transport) -> AwsS3Client:
    """Registry factory for the ``aws-s3`` provider type.

    :raises TypeError: For unknown options.
    """
    options = AwsS3Options(**config.options)  # type: ignore[arg-type]
    return AwsS3Client(
        transport,
        config.endpoint or DEFAULT_ENDPOINT,
        config.identity,
        config.credential,
        virtual_host_buckets=bool(options.virtual_host_buckets),
        discover_bucket_regions=bool(options.discover_bucket_regions),
        bucket_regions=dict(options.bucket_regions),
        timestamps=TimestampCache(float(options.timestamp_refresh_seconds)),
    )
