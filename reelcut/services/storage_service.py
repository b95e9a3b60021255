"""Durable storage for merged videos and thumbnails."""

import logging
from abc import ABC, abstractmethod

import boto3
from boto3.exceptions import S3UploadFailedError
from botocore.exceptions import BotoCoreError, ClientError

from ..domain.exceptions import UpstreamFailureError

logger = logging.getLogger(__name__)


class StorageService(ABC):
    """Abstract durable storage collaborator."""

    @abstractmethod
    def put(self, local_path: str, remote_key: str, content_type: str) -> str:
        """Upload a local file and return its public URL.

        Raises:
            UpstreamFailureError: If the upload fails
        """
        pass


class S3StorageService(StorageService):
    """S3 implementation of StorageService."""

    def __init__(
        self,
        bucket: str,
        region: str = "us-east-1",
        public_base_url: str | None = None,
        client=None,
    ):
        if not bucket:
            raise ValueError("S3 bucket name is required")
        self.bucket = bucket
        self.region = region
        self.public_base_url = public_base_url.rstrip("/") if public_base_url else None
        self.client = client or boto3.client("s3", region_name=region)

    def put(self, local_path: str, remote_key: str, content_type: str) -> str:
        logger.info(f"Uploading {local_path} to s3://{self.bucket}/{remote_key}")
        try:
            self.client.upload_file(
                local_path,
                self.bucket,
                remote_key,
                ExtraArgs={"ContentType": content_type, "ACL": "public-read"},
            )
        except (BotoCoreError, ClientError, S3UploadFailedError) as e:
            raise UpstreamFailureError("storage", f"S3 upload of {remote_key}: {e}") from e
        return self.url_for(remote_key)

    def url_for(self, remote_key: str) -> str:
        if self.public_base_url:
            return f"{self.public_base_url}/{remote_key}"
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{remote_key}"
