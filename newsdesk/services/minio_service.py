"""MinIO service for article image storage.

This service uploads article images to MinIO object storage and builds the
public URLs they are served from. The images bucket is created on first use.
"""

import io
import logging
from typing import BinaryIO, Optional

from minio import Minio
from minio.error import S3Error

from ..config import settings

logger = logging.getLogger(__name__)


class MinIOServiceError(Exception):
    """Custom exception for MinIO service errors."""

    pass


class MinIOService:
    """
    Service for interacting with MinIO object storage.

    Provides methods for upload and public URL generation. Creates the
    images bucket on first upload.
    """

    def __init__(self, bucket: Optional[str] = None):
        """Initialize with the images bucket from configuration."""
        self.bucket = bucket or settings.images_bucket
        self._client: Optional[Minio] = None
        self._initialized = False

    @property
    def client(self) -> Minio:
        """
        Get the MinIO client instance, creating it if necessary.

        Returns:
            Minio client instance

        Raises:
            MinIOServiceError: If client creation fails
        """
        if self._client is None:
            try:
                self._client = Minio(
                    endpoint=settings.minio_endpoint,
                    access_key=settings.minio_access_key,
                    secret_key=settings.minio_secret_key,
                    secure=settings.minio_secure,
                )
            except Exception as e:
                raise MinIOServiceError(f"Failed to create MinIO client: {str(e)}")
        return self._client

    def ensure_bucket_exists(self) -> None:
        """
        Ensure the images bucket exists, creating it if necessary.

        Raises:
            MinIOServiceError: If bucket creation fails
        """
        if self._initialized:
            return

        try:
            if not self.client.bucket_exists(self.bucket):
                self.client.make_bucket(self.bucket)
                logger.info(f"Created bucket '{self.bucket}'")
        except S3Error as e:
            raise MinIOServiceError(f"Failed to create bucket '{self.bucket}': {str(e)}")

        self._initialized = True

    def upload_file(
        self,
        object_name: str,
        data: BinaryIO,
        length: int,
        content_type: str = "application/octet-stream",
    ) -> str:
        """
        Upload a file to the images bucket.

        Args:
            object_name: Object key (path) in the bucket
            data: File-like object containing the data
            length: Size of the data in bytes
            content_type: MIME type of the file

        Returns:
            The object name (key) of the uploaded file

        Raises:
            MinIOServiceError: If upload fails
        """
        self.ensure_bucket_exists()

        try:
            self.client.put_object(
                bucket_name=self.bucket,
                object_name=object_name,
                data=data,
                length=length,
                content_type=content_type,
            )
            return object_name
        except S3Error as e:
            raise MinIOServiceError(f"Failed to upload file: {str(e)}")

    def upload_bytes(
        self,
        object_name: str,
        data: bytes,
        content_type: str = "application/octet-stream",
    ) -> str:
        """
        Upload bytes data to the images bucket.

        Args:
            object_name: Object key (path) in the bucket
            data: Bytes data to upload
            content_type: MIME type of the file

        Returns:
            The object name (key) of the uploaded file

        Raises:
            MinIOServiceError: If upload fails
        """
        return self.upload_file(
            object_name=object_name,
            data=io.BytesIO(data),
            length=len(data),
            content_type=content_type,
        )

    def get_public_url(self, object_name: str) -> str:
        """
        Build the public URL of an object.

        Args:
            object_name: Object key (path) in the bucket

        Returns:
            URL of the form {public base}/{bucket}/{object_name}
        """
        return f"{settings.public_base_url}/{self.bucket}/{object_name.lstrip('/')}"


# Global service instance
minio_service = MinIOService()


def get_minio_service() -> MinIOService:
    """
    FastAPI dependency for getting the MinIO service instance.

    Returns:
        MinIO service instance
    """
    return minio_service
