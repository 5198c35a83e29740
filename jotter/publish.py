"""Publishing to object storage.

Walks a generated output tree and uploads every file to an S3 bucket as a
publicly readable object keyed by its path relative to the output root.
Uploads occasionally fail for transient reasons, so each file gets exactly
one retry after a short pause; a second failure aborts the deploy.
"""

from __future__ import annotations

import logging
import mimetypes
import os
import time
from collections.abc import Callable
from pathlib import Path

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .config import DEFAULT_REGION
from .errors import PublishError
from .protocols import ObjectStore

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"
PUBLIC_READ = "public-read"


def content_type_for(path: Path | str) -> str:
    """Guess a Content-Type from a file extension."""
    guessed, _ = mimetypes.guess_type(str(path))
    return guessed or DEFAULT_CONTENT_TYPE


def create_s3_client(key: str = "", secret: str = "", region: str = DEFAULT_REGION) -> ObjectStore:
    """Create a boto3 S3 client.

    Empty credentials fall back to boto3's default credential chain
    (environment variables, shared config, instance roles).
    """
    kwargs = {"region_name": region or DEFAULT_REGION}
    if key:
        kwargs["aws_access_key_id"] = key
        kwargs["aws_secret_access_key"] = secret
    return boto3.client("s3", **kwargs)


class Publisher:
    """Uploads an output tree to a bucket.

    Attributes:
        client: S3 client (anything with ``put_object``).
        bucket: Target bucket name.
        retry_delay: Seconds to wait before the single retry.
    """

    def __init__(
        self,
        client: ObjectStore,
        bucket: str,
        retry_delay: float = 0.1,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.client = client
        self.bucket = bucket
        self.retry_delay = retry_delay
        self._sleep = sleep

    def _put(self, key: str, body: bytes, content_type: str) -> None:
        self.client.put_object(
            Bucket=self.bucket,
            Key=key,
            Body=body,
            ContentType=content_type,
            ACL=PUBLIC_READ,
        )

    def upload(self, path: Path, key: str) -> None:
        """Upload one file, retrying once on a storage error.

        Raises:
            PublishError: If the file cannot be read or both attempts fail.
        """
        try:
            body = path.read_bytes()
        except OSError as exc:
            raise PublishError(key, f"Cannot read file: {exc}", exc) from exc
        content_type = content_type_for(path)
        logger.debug("Uploading: %s", key)
        try:
            self._put(key, body, content_type)
            return
        except (BotoCoreError, ClientError) as exc:
            logger.warning("Upload of %s failed (%s); retrying", key, exc)
        self._sleep(self.retry_delay)
        try:
            self._put(key, body, content_type)
        except (BotoCoreError, ClientError) as exc:
            raise PublishError(key, f"Upload failed twice: {exc}", exc) from exc

    def deploy(self, dest: Path) -> list[str]:
        """Upload every file under ``dest``.

        Files are uploaded one at a time in sorted walk order; the first file
        that cannot be uploaded stops the deploy.

        Returns:
            Keys that were uploaded.

        Raises:
            PublishError: If a file fails to upload after its retry.
        """
        uploaded: list[str] = []
        for dirpath, dirnames, filenames in os.walk(dest):
            dirnames.sort()
            base = Path(dirpath)
            for name in sorted(filenames):
                path = base / name
                key = path.relative_to(dest).as_posix()
                self.upload(path, key)
                uploaded.append(key)
        logger.info("Uploaded %d files to %s", len(uploaded), self.bucket)
        return uploaded
