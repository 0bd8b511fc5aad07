"""
Upload collaborator: stores files in an S3 bucket and hands back a public URL
plus the object key ("public id") needed to delete it later.
"""
import logging
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from .errors import UploadError

logger = logging.getLogger(__name__)

IMAGE_TYPES = ('image/*',)
DOCUMENT_TYPES = ('application/pdf', 'image/*')


@dataclass(frozen=True)
class StoredMedia:
    public_url: str
    public_id: str
    
    def to_dict(self) -> dict:
        return {'url': self.public_url, 'public_id': self.public_id}


def content_type_allowed(content_type: str, allowed_types: Iterable[str]) -> bool:
    """Match a MIME type against patterns like 'image/*' or 'application/pdf'."""
    content_type = (content_type or '').lower()
    for pattern in allowed_types:
        pattern = pattern.lower()
        if pattern.endswith('/*'):
            if content_type.startswith(pattern[:-1]):
                return True
        elif content_type == pattern:
            return True
    return False


class MediaStore:
    def __init__(
        self,
        bucket: str,
        region: str = None,
        public_base_url: str = '',
        folder: str = 'uploads',
        client=None,
        endpoint_url: str = None
    ):
        self.bucket = bucket
        self.region = region
        self.public_base_url = (public_base_url or '').rstrip('/')
        self.folder = folder.strip('/')
        self.client = client or boto3.client(
            's3',
            region_name=region,
            endpoint_url=endpoint_url,
            config=BotoConfig(signature_version='s3v4', s3={'addressing_style': 'virtual'})
        )
    
    @classmethod
    def from_config(cls, app_config, client=None) -> Optional['MediaStore']:
        """Build from Flask config; None when no bucket is configured."""
        if not app_config.get('MEDIA_BUCKET'):
            return None
        return cls(
            bucket=app_config['MEDIA_BUCKET'],
            region=app_config.get('MEDIA_REGION'),
            public_base_url=app_config.get('MEDIA_PUBLIC_URL', ''),
            folder=app_config.get('MEDIA_FOLDER', 'uploads'),
            client=client,
            endpoint_url=app_config.get('MEDIA_ENDPOINT_URL')
        )
    
    def public_url(self, key: str) -> str:
        if self.public_base_url:
            return f"{self.public_base_url}/{key}"
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{key}"
    
    def _key_for(self, filename: Optional[str], subfolder: str = '') -> str:
        extension = Path(filename or '').suffix.lower()
        prefix = '/'.join(part for part in (self.folder, subfolder.strip('/')) if part)
        return f"{prefix}/{uuid.uuid4().hex}{extension}"
    
    def store(
        self,
        data: bytes,
        content_type: str,
        filename: str = None,
        max_bytes: int = None,
        allowed_types: Iterable[str] = None,
        subfolder: str = ''
    ) -> StoredMedia:
        """
        Upload a file.
        
        Raises:
            UploadError when the file is empty, too large, of a disallowed type,
            or the bucket rejects the upload.
        """
        if not data:
            raise UploadError('No file provided')
        if max_bytes is not None and len(data) > max_bytes:
            raise UploadError(
                f"File is too large; the limit is {max_bytes // 1024} KB",
                too_large=True
            )
        if allowed_types and not content_type_allowed(content_type, allowed_types):
            raise UploadError(f"File type '{content_type or 'unknown'}' is not allowed")
        
        key = self._key_for(filename, subfolder)
        try:
            self.client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentType=content_type or 'application/octet-stream'
            )
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Upload to {self.bucket}/{key} failed: {e}")
            raise UploadError('Upload failed, please try again') from e
        
        logger.info(f"Stored {len(data)} bytes as {key}")
        return StoredMedia(public_url=self.public_url(key), public_id=key)
    
    def delete(self, public_id: str) -> bool:
        if not public_id:
            return False
        try:
            self.client.delete_object(Bucket=self.bucket, Key=public_id)
        except ClientError as e:
            if e.response.get('Error', {}).get('Code') in ('NoSuchKey', '404'):
                return True
            logger.error(f"Delete of {public_id} failed: {e}")
            raise UploadError(f"Deletion failed: {public_id}") from e
        except BotoCoreError as e:
            logger.error(f"Delete of {public_id} failed: {e}")
            raise UploadError(f"Deletion failed: {public_id}") from e
        return True
