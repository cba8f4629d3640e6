import logging
import os
import uuid
from abc import ABC, abstractmethod
from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError, NoCredentialsError

logger = logging.getLogger("shop.storage")

ALLOWED_FORMATS = {"jpg", "jpeg", "png"}
CONTENT_TYPES = {"jpg": "image/jpeg", "jpeg": "image/jpeg", "png": "image/png"}


class StorageError(Exception):
    """Upload to the media host failed."""


class UnsupportedImageError(ValueError):
    pass


def image_extension(filename: Optional[str]) -> str:
    ext = os.path.splitext(filename or "")[1].lower().lstrip(".")
    if ext not in ALLOWED_FORMATS:
        raise UnsupportedImageError("Unsupported image format")
    return ext


class ImageUploader(ABC):
    """Turns an uploaded image into a durable public URL."""

    @abstractmethod
    def upload(self, file_bytes: bytes, filename: str) -> str:
        ...


class S3ImageUploader(ImageUploader):
    def __init__(self, bucket: Optional[str], region: str = "us-east-2", folder: str = "ecommerce_products",
                 access_key_id: Optional[str] = None, secret_access_key: Optional[str] = None):
        self.bucket = bucket
        self.region = region
        self.folder = folder.strip("/")
        self.access_key_id = access_key_id
        self.secret_access_key = secret_access_key

    def _client(self):
        return boto3.client(
            "s3",
            aws_access_key_id=self.access_key_id,
            aws_secret_access_key=self.secret_access_key,
            region_name=self.region,
        )

    def upload(self, file_bytes: bytes, filename: str) -> str:
        ext = image_extension(filename)
        if not self.bucket:
            raise StorageError("AWS_BUCKET_NAME is not set")
        key = f"{self.folder}/{uuid.uuid4().hex}.{ext}"
        try:
            self._client().put_object(
                Bucket=self.bucket,
                Key=key,
                Body=file_bytes,
                ContentType=CONTENT_TYPES[ext],
            )
        except NoCredentialsError:
            raise StorageError("AWS credentials not available")
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"Failed to upload to S3: {str(e)}")
        logger.info("Uploaded %s (%d bytes) to s3://%s/%s", filename, len(file_bytes), self.bucket, key)
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{key}"
