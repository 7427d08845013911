"""
S3 blob store for documents attached to requirements.

Provides a lazy-initialized boto3 client, collision-free object keys for
uploaded documents, and upload/delete calls that report every botocore
failure (timeouts included) as BlobStoreError.
"""

import os
import re
import secrets
import time
from pathlib import PurePath
from typing import Optional

from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from phytoreq.config import get
from phytoreq.logging_config import get_logger

logger = get_logger(__name__)

_s3_client = None

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


class BlobStoreError(Exception):
    """An upload or delete against the blob store did not complete."""

    def __init__(self, message: str, path: str):
        super().__init__(message)
        self.path = path


def _get_s3_client():
    """Lazy-initialize and return the boto3 S3 client singleton."""
    global _s3_client
    if _s3_client is None:
        import boto3

        _s3_client = boto3.client(
            "s3",
            aws_access_key_id=os.environ.get("AWS_ACCESS_KEY_ID"),
            aws_secret_access_key=os.environ.get("AWS_SECRET_ACCESS_KEY"),
            region_name=get("storage", "region"),
            config=Config(
                connect_timeout=get("storage", "connect_timeout_seconds"),
                read_timeout=get("storage", "read_timeout_seconds"),
                retries={"max_attempts": get("storage", "max_attempts")},
            ),
        )
    return _s3_client


def safe_filename(filename: str) -> str:
    """Reduce a user supplied filename to a safe object key segment."""
    name = PurePath(filename.replace("\\", "/")).name
    stem = _UNSAFE_FILENAME_CHARS.sub("_", PurePath(name).stem).strip("._") or "document"
    suffix = _UNSAFE_FILENAME_CHARS.sub("", PurePath(name).suffix.lower())
    return f"{stem}{suffix}"


def build_document_path(filename: str, prefix: str | None = None) -> str:
    """Build a unique object key: <prefix>/<time_ns>-<token>-<filename>."""
    if prefix is None:
        prefix = get("storage", "key_prefix")
    key = f"{time.time_ns()}-{secrets.token_hex(4)}-{safe_filename(filename)}"
    return f"{prefix.strip('/')}/{key}" if prefix else key


class S3BlobStore:
    """Stores requirement documents in one S3 bucket."""

    def __init__(
        self,
        bucket: str | None = None,
        public_base_url: str | None = None,
        client=None,
    ):
        self.bucket = bucket or get("storage", "bucket")
        base = public_base_url if public_base_url is not None else get("storage", "public_base_url")
        self.public_base_url = base.rstrip("/")
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = _get_s3_client()
        return self._client

    def public_url(self, path: str) -> str:
        """Return the retrievable URL for an object key."""
        if self.public_base_url:
            return f"{self.public_base_url}/{path}"
        region = get("storage", "region")
        return f"https://{self.bucket}.s3.{region}.amazonaws.com/{path}"

    def upload(self, path: str, data: bytes, content_type: Optional[str] = None) -> str:
        """Upload a document and return its URL.

        Raises:
            BlobStoreError: If the put did not complete, including timeouts.
        """
        if not path:
            raise ValueError("path must be a non-empty string")

        extra = {"ContentType": content_type} if content_type else {}
        try:
            self.client.put_object(Bucket=self.bucket, Key=path, Body=data, **extra)
        except (BotoCoreError, ClientError) as e:
            raise BlobStoreError(f"Upload of s3://{self.bucket}/{path} failed: {e}", path) from e

        logger.info(f"Uploaded document to s3://{self.bucket}/{path} ({len(data)} bytes)")
        return self.public_url(path)

    def delete(self, path: str) -> None:
        """Delete a document by object key.

        Raises:
            BlobStoreError: If the delete did not complete.
        """
        try:
            self.client.delete_object(Bucket=self.bucket, Key=path)
        except (BotoCoreError, ClientError) as e:
            raise BlobStoreError(f"Delete of s3://{self.bucket}/{path} failed: {e}", path) from e

        logger.info(f"Deleted document s3://{self.bucket}/{path}")
