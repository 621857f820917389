"""
Object storage for the company logo (S3-compatible: MinIO, AWS S3, DigitalOcean Spaces).

Architecture:
- Uses boto3 (AWS SDK for Python)
- Logo objects are public-read; the public URL is stored in app_config
- Uploads are validated (type image/*, size limit) before any network call
- The bucket is checked/created lazily on the first write
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

from cotizador.exceptions import ValidationError

logger = logging.getLogger(__name__)

LOGO_PREFIX = 'logos'


def validate_logo(file: Optional[FileStorage], max_size: int, mime_prefix: str = 'image/') -> int:
    """
    Check an uploaded logo. Returns its size in bytes.

    Raises:
        ValidationError: no file, wrong content type or too large
    """
    if not file or not file.filename:
        raise ValidationError({'logo': 'No se proporcionó ningún archivo'})

    content_type = file.content_type or mimetypes.guess_type(file.filename)[0] or ''
    if not content_type.startswith(mime_prefix):
        raise ValidationError({'logo': 'El archivo debe ser una imagen'})

    file.stream.seek(0, 2)
    file_size = file.stream.tell()
    file.stream.seek(0)

    if file_size > max_size:
        max_mb = max_size / (1024 * 1024)
        raise ValidationError({'logo': f'La imagen no debe superar {max_mb:.0f}MB'})

    return file_size


class StorageService:
    """
    S3-compatible object storage service.

    Usage:
        storage = StorageService()
        key, url = storage.upload_logo(request.files['logo'])
        storage.delete_file(key)
    """

    def __init__(self, config=None):
        """Initialize the S3 client from Flask config (or an explicit mapping)."""
        config = config or current_app.config
        self.endpoint = config['S3_ENDPOINT']
        self.bucket = config['S3_BUCKET']
        self.public_url = config['S3_PUBLIC_URL']
        self.max_size = config.get('MAX_UPLOAD_SIZE', 2 * 1024 * 1024)
        self.mime_prefix = config.get('ALLOWED_MIME_PREFIX', 'image/')
        self._bucket_checked = False

        self.client = boto3.client(
            's3',
            endpoint_url=self.endpoint,
            aws_access_key_id=config['S3_ACCESS_KEY'],
            aws_secret_access_key=config['S3_SECRET_KEY'],
            region_name=config['S3_REGION'],
            config=BotoConfig(signature_version='s3v4')
        )

    def _ensure_bucket_exists(self):
        """Create the bucket (public-read policy) if it doesn't exist."""
        if self._bucket_checked:
            return
        try:
            self.client.head_bucket(Bucket=self.bucket)
        except ClientError as e:
            error_code = e.response.get('Error', {}).get('Code')
            if error_code not in ('404', 'NoSuchBucket'):
                logger.error(f"[STORAGE] Failed to check bucket: {e}")
                raise
            self.client.create_bucket(Bucket=self.bucket)
            policy = {
                "Version": "2012-10-17",
                "Statement": [{
                    "Effect": "Allow",
                    "Principal": {"AWS": "*"},
                    "Action": "s3:GetObject",
                    "Resource": f"arn:aws:s3:::{self.bucket}/*"
                }]
            }
            self.client.put_bucket_policy(Bucket=self.bucket, Policy=json.dumps(policy))
            logger.info(f"[STORAGE] Bucket '{self.bucket}' created with public-read policy")
        self._bucket_checked = True

    def upload_logo(self, file: FileStorage):
        """
        Validate and upload a logo.

        Returns:
            (object key, public URL)

        Raises:
            ValidationError: if the file is not an image or is too large
            ClientError: if the upload fails
        """
        size = validate_logo(file, self.max_size, self.mime_prefix)

        extension = (file.filename.rsplit('.', 1)[-1].lower() if '.' in file.filename else 'png')
        object_name = f"{LOGO_PREFIX}/logo-{uuid.uuid4().hex[:12]}.{extension}"
        content_type = file.content_type or mimetypes.guess_type(file.filename)[0]

        self._ensure_bucket_exists()
        try:
            logger.info(f"[STORAGE] Uploading '{object_name}' ({size} bytes) to bucket '{self.bucket}'")
            self.client.upload_fileobj(
                file.stream,
                self.bucket,
                object_name,
                ExtraArgs={'ContentType': content_type, 'ACL': 'public-read'}
            )
        except ClientError as e:
            logger.exception(f"[STORAGE] Upload failed: {e}")
            raise

        return object_name, self.get_public_url(object_name)

    def delete_file(self, object_name: str) -> bool:
        """Delete an object. Returns False (logged) when the backend refuses."""
        try:
            self.client.delete_object(Bucket=self.bucket, Key=object_name)
            logger.info(f"[STORAGE] Deleted '{object_name}'")
            return True
        except ClientError as e:
            logger.warning(f"[STORAGE] Delete failed for '{object_name}': {e}")
            return False

    def download(self, object_name: str) -> Optional[bytes]:
        """Object bytes, or None when it cannot be fetched."""
        try:
            response = self.client.get_object(Bucket=self.bucket, Key=object_name)
            return response['Body'].read()
        except ClientError as e:
            logger.warning(f"[STORAGE] Download failed for '{object_name}': {e}")
            return None

    def get_public_url(self, object_name: str) -> str:
        return f"{self.public_url}/{self.bucket}/{object_name}"


# Singleton instance
_storage_service = None


def get_storage_service() -> StorageService:
    """Get or create the StorageService singleton."""
    global _storage_service
    if _storage_service is None:
        _storage_service = StorageService()
    return _storage_service
