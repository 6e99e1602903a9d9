import logging
from pathlib import Path

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import ClientError
from django.conf import settings

logger = logging.getLogger(__name__)

# delete_objects accepts at most this many keys per request
DELETE_BATCH_SIZE = 1000

CONTENT_TYPES = {
    ".m3u8": "application/vnd.apple.mpegurl",
    ".ts": "video/MP2T",
    ".m2ts": "video/MP2T",
}


def _session():
    return boto3.session.Session(
        aws_access_key_id=settings.S3_ACCESS_KEY,
        aws_secret_access_key=settings.S3_SECRET_KEY,
        region_name=settings.S3_REGION,
    )


def get_s3_client():
    """
    SDK client for server-side upload/list/delete.
    """
    return _session().client(
        "s3",
        endpoint_url=settings.S3_ENDPOINT_URL,  # e.g. http://127.0.0.1:9000
        config=BotoConfig(
            s3={"addressing_style": "path"},
            signature_version="s3v4",
        ),
    )


def get_presign_client():
    """
    Separate client for presigned URLs handed to players.
    Uses S3_PUBLIC_ENDPOINT so the URL host matches what the client reaches.
    """
    return _session().client(
        "s3",
        endpoint_url=settings.S3_PUBLIC_ENDPOINT,
        config=BotoConfig(
            s3={"addressing_style": "path"},
            signature_version="s3v4",  # ensures AWS4 signing
        ),
    )


def content_type_for(path) -> str:
    return CONTENT_TYPES.get(Path(str(path)).suffix.lower(), "application/octet-stream")


def video_prefix(job_id: str) -> str:
    """Key prefix holding every artifact of one job, trailing slash included."""
    return f"{settings.S3_VIDEO_PREFIX.strip('/')}/{job_id}/"


class ObjectStore:
    """
    Thin wrapper over an S3 client bound to one bucket.

    The clients are passed in so tests and concurrent pipelines can use their
    own; get_object_store() builds one from settings.
    """

    def __init__(self, client, bucket: str, *, public_endpoint: str = "", presign_client=None,
                 presign_expires: int = 900):
        self.client = client
        self.bucket = bucket
        self.public_endpoint = public_endpoint.rstrip("/")
        self.presign_client = presign_client or client
        self.presign_expires = presign_expires

    def upload_file(self, local_path, key: str, content_type: str | None = None) -> str:
        """Upload one file and return its public URL."""
        extra = {"ContentType": content_type or content_type_for(local_path)}
        self.client.upload_file(str(local_path), self.bucket, key, ExtraArgs=extra)
        return self.object_url(key)

    def list_keys(self, prefix: str) -> list:
        paginator = self.client.get_paginator("list_objects_v2")
        keys = []
        for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix):
            keys.extend(obj["Key"] for obj in page.get("Contents", []))
        return keys

    def exists(self, key: str) -> bool:
        try:
            self.client.head_object(Bucket=self.bucket, Key=key)
        except ClientError as e:
            code = str(e.response.get("Error", {}).get("Code", ""))
            if code in ("404", "NoSuchKey", "NotFound"):
                return False
            raise
        return True

    def delete_keys(self, keys) -> int:
        """Delete keys in batches; returns how many the store reported deleted."""
        keys = list(keys)
        deleted = 0
        for start in range(0, len(keys), DELETE_BATCH_SIZE):
            batch = keys[start:start + DELETE_BATCH_SIZE]
            resp = self.client.delete_objects(
                Bucket=self.bucket,
                Delete={"Objects": [{"Key": k} for k in batch], "Quiet": False},
            )
            for err in resp.get("Errors", []):
                logger.warning("Could not delete %s: %s", err.get("Key"), err.get("Message"))
            deleted += len(resp.get("Deleted", []))
        return deleted

    def object_url(self, key: str) -> str:
        """
        Direct object URL against the public endpoint (path-style).
        Prefer presigned_get for private buckets.
        """
        return f"{self.public_endpoint}/{self.bucket}/{key}"

    def presigned_get(self, key: str, expires: int | None = None) -> str:
        return self.presign_client.generate_presigned_url(
            ClientMethod="get_object",
            Params={"Bucket": self.bucket, "Key": key},
            ExpiresIn=expires or self.presign_expires,
            HttpMethod="GET",
        )


def get_object_store() -> ObjectStore:
    return ObjectStore(
        get_s3_client(),
        settings.S3_BUCKET,
        public_endpoint=settings.S3_PUBLIC_ENDPOINT,
        presign_client=get_presign_client(),
        presign_expires=settings.S3_PRESIGN_EXPIRE_SECONDS,
    )
