"""S3-compatible object storage for rendered videos.

Works against any S3-compatible service (DigitalOcean Spaces, Cloudflare R2,
AWS S3) through boto3. Rendered files are uploaded public-read and addressed
by a public URL.
"""

import logging
import mimetypes
from io import BytesIO
from pathlib import Path
from typing import BinaryIO, Dict, Optional, Union

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT_URL = "https://nyc3.digitaloceanspaces.com"
DEFAULT_REGION = "nyc3"
DEFAULT_BUCKET = "media-catalog"


class ObjectStorageError(Exception):
    """Raised when an upload or lookup against object storage fails."""

    pass


class ObjectStorage:
    """Uploads files to an S3-compatible bucket and returns public URLs."""

    def __init__(
        self,
        access_key_id: str,
        secret_access_key: str,
        bucket_name: str = DEFAULT_BUCKET,
        endpoint_url: str = DEFAULT_ENDPOINT_URL,
        region: str = DEFAULT_REGION,
        public_url: Optional[str] = None,
        client=None,
    ):
        """Initialize storage.

        Args:
            access_key_id: Access key ID
            secret_access_key: Secret access key
            bucket_name: Bucket name
            endpoint_url: S3-compatible endpoint
            region: Region name
            public_url: Optional public URL base (CDN). Defaults to path-style
                ``<endpoint>/<bucket>``.
            client: Pre-built boto3 S3 client (tests)
        """
        self.bucket_name = bucket_name
        self.endpoint_url = endpoint_url.rstrip("/")
        self.public_url = public_url

        self._client = client or boto3.client(
            "s3",
            endpoint_url=self.endpoint_url,
            region_name=region,
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
            config=Config(
                signature_version="s3v4",
                s3={"addressing_style": "path"},
                retries={"max_attempts": 3, "mode": "adaptive"},
            ),
        )

        logger.info(f"Object storage initialized for bucket: {bucket_name}")

    def public_url_for(self, key: str) -> str:
        """Public URL of ``key`` in the bucket."""
        if self.public_url:
            return f"{self.public_url.rstrip('/')}/{key}"
        return f"{self.endpoint_url}/{self.bucket_name}/{key}"

    def upload_file(
        self,
        key: str,
        data: Union[bytes, str, Path, BinaryIO],
        content_type: Optional[str] = None,
        metadata: Optional[Dict[str, str]] = None,
    ) -> str:
        """Upload data or a local file and return its public URL.

        Args:
            key: Object key (path in bucket)
            data: Bytes, text, a local file path, or a file-like object
            content_type: MIME type (guessed from the key if not provided)
            metadata: Optional metadata dict

        Raises:
            ObjectStorageError: If the upload fails
        """
        if isinstance(data, Path):
            data = data.read_bytes()
        if isinstance(data, str):
            data = data.encode("utf-8")
        if isinstance(data, bytes):
            data = BytesIO(data)

        if content_type is None:
            content_type, _ = mimetypes.guess_type(key)
            content_type = content_type or "application/octet-stream"

        extra_args = {"ContentType": content_type, "ACL": "public-read"}
        if metadata:
            extra_args["Metadata"] = metadata

        try:
            self._client.upload_fileobj(data, self.bucket_name, key, ExtraArgs=extra_args)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to upload {key}: {e}")
            raise ObjectStorageError(f"Upload of {key} failed: {e}")

        url = self.public_url_for(key)
        logger.info(f"Uploaded {key}: {url}")
        return url

    def file_exists(self, key: str) -> bool:
        """Check if a key exists in the bucket."""
        try:
            self._client.head_object(Bucket=self.bucket_name, Key=key)
            return True
        except ClientError:
            return False


def storage_from_config(config: dict) -> Optional[ObjectStorage]:
    """Build an ObjectStorage from load_config() output, or None if unconfigured."""
    access_key_id = config.get("storage_access_key_id")
    secret_access_key = config.get("storage_secret_access_key")
    if not (access_key_id and secret_access_key):
        logger.debug("Object storage not configured - missing credentials")
        return None

    return ObjectStorage(
        access_key_id=access_key_id,
        secret_access_key=secret_access_key,
        bucket_name=config.get("storage_bucket") or DEFAULT_BUCKET,
        endpoint_url=config.get("storage_endpoint_url") or DEFAULT_ENDPOINT_URL,
        region=config.get("storage_region") or DEFAULT_REGION,
        public_url=config.get("storage_public_url"),
    )
