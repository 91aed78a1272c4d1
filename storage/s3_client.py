"""
S3 client for submission image storage.
"""
import boto3
from botocore.exceptions import ClientError, BotoCoreError
from io import BytesIO
from typing import Optional

from core.logger import logger


class S3Client:
    """S3 client for storing and retrieving submission images in a single bucket."""

    def __init__(
        self,
        bucket_name: str,
        aws_access_key_id: Optional[str] = None,
        aws_secret_access_key: Optional[str] = None,
        region_name: str = "us-east-1",
        endpoint_url: Optional[str] = None,  # For S3-compatible services (MinIO, etc.)
        url_expiration: int = 3600,
        auto_create_bucket: bool = True,
        client=None,
    ):
        """
        Initialize S3 client.

        Args:
            bucket_name: Bucket holding submission images
            aws_access_key_id: AWS access key (or from env)
            aws_secret_access_key: AWS secret key (or from env)
            region_name: AWS region
            endpoint_url: Custom endpoint URL (for MinIO, etc.)
            url_expiration: Lifetime of presigned GET URLs in seconds
            auto_create_bucket: Create the bucket if it doesn't exist
            client: Pre-built boto3 S3 client (skips client construction)
        """
        self.bucket_name = bucket_name
        self.region_name = region_name
        self.url_expiration = url_expiration
        self.auto_create_bucket = auto_create_bucket

        if client is None:
            client_kwargs = {
                "region_name": region_name
            }
            if aws_access_key_id:
                client_kwargs["aws_access_key_id"] = aws_access_key_id
            if aws_secret_access_key:
                client_kwargs["aws_secret_access_key"] = aws_secret_access_key
            if endpoint_url:
                client_kwargs["endpoint_url"] = endpoint_url
            client = boto3.client("s3", **client_kwargs)

        self.s3_client = client
        self._bucket_verified = False

        logger.info(f"S3 client initialized (bucket: {bucket_name})")

    def ensure_bucket_exists(self):
        """Ensure bucket exists, create if it doesn't."""
        if self._bucket_verified:
            return

        try:
            self.s3_client.head_bucket(Bucket=self.bucket_name)
            logger.debug(f"Bucket {self.bucket_name} exists")
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "")
            if error_code not in ("404", "NoSuchBucket") or not self.auto_create_bucket:
                logger.error(f"Error checking bucket {self.bucket_name}: {e}")
                raise
            if self.region_name == "us-east-1":
                self.s3_client.create_bucket(Bucket=self.bucket_name)
            else:
                self.s3_client.create_bucket(
                    Bucket=self.bucket_name,
                    CreateBucketConfiguration={"LocationConstraint": self.region_name}
                )
            logger.info(f"Created bucket: {self.bucket_name}")
        self._bucket_verified = True

    def put(self, key: str, data: bytes, content_type: str) -> str:
        """
        Store bytes under ``key``.

        Args:
            key: S3 object key (path)
            data: Object content
            content_type: MIME type

        Returns:
            Presigned HTTPS URL for reading the object
        """
        try:
            self.s3_client.upload_fileobj(
                BytesIO(data),
                self.bucket_name,
                key,
                ExtraArgs={"ContentType": content_type}
            )
            logger.info(f"Uploaded file object to S3: s3://{self.bucket_name}/{key} ({len(data)} bytes)")
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to upload file object to S3: {e}")
            raise
        return self.get_presigned_url(key)

    def delete(self, key: str) -> bool:
        """
        Delete an object from S3.

        Returns:
            True if successful
        """
        try:
            self.s3_client.delete_object(Bucket=self.bucket_name, Key=key)
            logger.info(f"Deleted file from S3: {self.bucket_name}/{key}")
            return True
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to delete file from S3: {e}")
            raise

    def exists(self, key: str) -> bool:
        """Check if an object exists in S3."""
        try:
            self.s3_client.head_object(Bucket=self.bucket_name, Key=key)
            return True
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in ("404", "NoSuchKey"):
                return False
            raise

    def get_presigned_url(self, key: str, expiration: Optional[int] = None) -> str:
        """
        Generate a presigned URL for temporary read access.

        Args:
            key: S3 object key (path)
            expiration: URL lifetime in seconds (defaults to url_expiration)
        """
        try:
            return self.s3_client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket_name, "Key": key},
                ExpiresIn=expiration or self.url_expiration
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to generate presigned URL: {e}")
            raise

    def url_for(self, key: str) -> str:
        """Presigned GET URL for an object, valid for url_expiration seconds from now."""
        return self.get_presigned_url(key)

    def check_health(self) -> dict:
        """Bucket reachability for the health endpoint."""
        try:
            self.s3_client.head_bucket(Bucket=self.bucket_name)
            return {"status": "ok", "backend": "s3", "bucket": self.bucket_name}
        except (ClientError, BotoCoreError) as e:
            return {"status": "error", "backend": "s3", "bucket": self.bucket_name, "error": str(e)}
