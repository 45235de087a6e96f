"""
Object storage for renter uploads (meter photos, payment screenshots).

Uses boto3 against any S3-compatible backend (MinIO locally, AWS S3 or
DigitalOcean Spaces in production). Objects are public-read so owners can
open them straight from the URL stored on the row.
"""
import json
import logging
import mimetypes
import uuid
from typing import Optional

import boto3
from botocore.client import Config as BotoConfig
from botocore.exceptions import ClientError
from flask import current_app
from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename

logger = logging.getLogger(__name__)


def build_object_name(folder: str, owner_key, filename: str) -> str:
    """
    Object key for an upload, e.g. 'meter-photos/12/2025-03/3f2a..._meter.jpg'.

    The random prefix keeps repeated uploads of the same file name apart.
    """
    safe_name = secure_filename(filename or '') or 'upload'
    return f"{folder}/{owner_key}/{uuid.uuid4().hex[:12]}_{safe_name}"


class StorageService:
    """
    S3-compatible object storage service.

    Usage:
        storage = get_storage_service()
        url = storage.upload_file(file, 'meter-photos/12/2025-03/a1_meter.jpg')
    """

    def __init__(self):
        self.endpoint = current_app.config['S3_ENDPOINT']
        self.bucket = current_app.config['S3_BUCKET']
        self.public_url = current_app.config['S3_PUBLIC_URL']

        self.client = boto3.client(
            's3',
            endpoint_url=self.endpoint,
            aws_access_key_id=current_app.config['S3_ACCESS_KEY'],
            aws_secret_access_key=current_app.config['S3_SECRET_KEY'],
            region_name=current_app.config['S3_REGION'],
            config=BotoConfig(signature_version='s3v4')
        )

        self._ensure_bucket_exists()

    def _ensure_bucket_exists(self):
        """Create the bucket with a public-read policy if it is missing."""
        try:
            self.client.head_bucket(Bucket=self.bucket)
            logger.info(f"[STORAGE] Bucket '{self.bucket}' exists")
        except ClientError as e:
            error_code = e.response.get('Error', {}).get('Code')
            if error_code != '404':
                logger.error(f"[STORAGE] Failed to check bucket: {e}")
                raise
            try:
                self.client.create_bucket(Bucket=self.bucket)
                policy = {
                    "Version": "2012-10-17",
                    "Statement": [
                        {
                            "Effect": "Allow",
                            "Principal": {"AWS": "*"},
                            "Action": "s3:GetObject",
                            "Resource": f"arn:aws:s3:::{self.bucket}/*"
                        }
                    ]
                }
                self.client.put_bucket_policy(Bucket=self.bucket, Policy=json.dumps(policy))
                logger.info(f"[STORAGE] Bucket '{self.bucket}' created (public-read)")
            except ClientError as create_error:
                logger.error(f"[STORAGE] Failed to create bucket: {create_error}")
                raise

    def upload_file(
        self,
        file: FileStorage,
        object_name: str,
        content_type: Optional[str] = None,
        metadata: Optional[dict] = None
    ) -> str:
        """
        Upload a file and return its public URL.

        Raises:
            ValueError: If the file is missing, too large or of a disallowed type
            ClientError: If the upload itself fails
        """
        self._validate_file(file)

        if not content_type:
            content_type = file.content_type or mimetypes.guess_type(file.filename)[0] or 'application/octet-stream'

        extra_args = {
            'ContentType': content_type,
            'ACL': 'public-read'
        }
        if metadata:
            extra_args['Metadata'] = metadata

        try:
            file.seek(0)
            logger.info(f"[STORAGE] Uploading '{object_name}' to bucket '{self.bucket}'...")
            self.client.upload_fileobj(file.stream, self.bucket, object_name, ExtraArgs=extra_args)
            url = self.get_public_url(object_name)
            logger.info(f"[STORAGE] File uploaded: {url}")
            return url
        except ClientError as e:
            logger.exception(f"[STORAGE] Upload failed: {e}")
            raise

    def get_public_url(self, object_name: str) -> str:
        return f"{self.public_url}/{self.bucket}/{object_name}"

    @staticmethod
    def file_size(file: FileStorage) -> int:
        file.seek(0, 2)
        size = file.tell()
        file.seek(0)
        return size

    def _validate_file(self, file: FileStorage):
        """
        Check presence, size and MIME type of an upload.

        Raises:
            ValueError: If validation fails
        """
        if not file or not file.filename:
            raise ValueError("No file was provided")

        max_size = current_app.config.get('MAX_UPLOAD_SIZE', 5 * 1024 * 1024)
        size = self.file_size(file)
        if size > max_size:
            max_mb = max_size / (1024 * 1024)
            raise ValueError(f"File is too large. Maximum {max_mb:.1f}MB")

        allowed_types = current_app.config.get('ALLOWED_MIME_TYPES', set())
        content_type = file.content_type
        if allowed_types and content_type not in allowed_types:
            raise ValueError(
                f"File type not allowed: {content_type}. Allowed: {', '.join(sorted(allowed_types))}"
            )

        logger.info(f"[STORAGE] File validation passed: {file.filename} ({size} bytes, {content_type})")


# Singleton instance
_storage_service = None


def get_storage_service() -> StorageService:
    """Get or create the StorageService singleton."""
    global _storage_service
    if _storage_service is None:
        _storage_service = StorageService()
    return _storage_service
