"""Cloudflare R2 blob store using the S3-compatible API."""

import logging

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from ..core.config import R2Config
from ..core.exceptions import BlobNotFoundError, StorageError
from .base import BlobStore, content_object_id

logger = logging.getLogger(__name__)

MISSING_KEY_CODES = {"NoSuchKey", "404", "NotFound"}


class R2BlobStore(BlobStore):
    """Content-addressed objects stored under ``<key_prefix>/<object id>``."""

    def __init__(self, config: R2Config, client=None):
        """Initialize the R2 client.

        Args:
            config: Endpoint, credentials and bucket
            client: Pre-built S3 client; built from *config* when omitted
        """
        self.config = config
        self.bucket_name = config.bucket_name

        if client is None:
            session = boto3.Session(
                aws_access_key_id=config.access_key_id,
                aws_secret_access_key=config.secret_access_key,
            )
            client = session.client(
                "s3",
                endpoint_url=config.endpoint_url,
                region_name=config.region,  # R2 uses 'auto'
            )
        self.s3_client = client

    def _key(self, object_id: str) -> str:
        prefix = self.config.key_prefix.strip("/")
        return f"{prefix}/{object_id}" if prefix else object_id

    def upload(
        self,
        data: bytes,
        name: str,
        content_type: str | None = None,
        scope: str | None = None,
    ) -> str:
        object_id = content_object_id(data, name, scope)
        extra = {"ContentType": content_type} if content_type else {}
        try:
            self.s3_client.put_object(
                Bucket=self.bucket_name,
                Key=self._key(object_id),
                Body=data,
                Metadata={"original-filename": name},
                **extra,
            )
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"Failed to upload {name} to R2: {e}") from e
        logger.info(f"Uploaded {name} to r2://{self.bucket_name}/{self._key(object_id)}")
        return object_id

    def fetch(self, object_id: str) -> bytes:
        try:
            response = self.s3_client.get_object(Bucket=self.bucket_name, Key=self._key(object_id))
            return response["Body"].read()
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in MISSING_KEY_CODES:
                raise BlobNotFoundError(object_id) from e
            raise StorageError(f"Failed to fetch {object_id} from R2: {e}") from e
        except BotoCoreError as e:
            raise StorageError(f"Failed to fetch {object_id} from R2: {e}") from e

    def delete(self, object_id: str) -> None:
        try:
            self.s3_client.delete_object(Bucket=self.bucket_name, Key=self._key(object_id))
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"Failed to delete {object_id} from R2: {e}") from e
        logger.info(f"Deleted r2://{self.bucket_name}/{self._key(object_id)}")
