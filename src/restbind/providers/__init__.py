"""Provider implementations."""

from restbind.providers._aws_s3 import AwsS3Client
from restbind.providers._s3 import (
    BucketMetadata,
    CannedAccessPolicy,
    ListBucketOptions,
    ListBucketResponse,
    ObjectMetadata,
    PutBucketOptions,
    PutObjectOptions,
    S3Client,
    S3Object,
)
from restbind.providers._vcloud import Link, Session, SessionClient, SessionWithToken

__all__ = [
    "S3Client",
    "AwsS3Client",
    "SessionClient",
    "S3Object",
    "ObjectMetadata",
    "BucketMetadata",
    "ListBucketResponse",
    "ListBucketOptions",
    "PutObjectOptions",
    "PutBucketOptions",
    "CannedAccessPolicy",
    "Session",
    "SessionWithToken",
    "Link",
]
