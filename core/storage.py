"""Blob storage backends for normalized images"""
from pathlib import Path
from typing import Optional

from config.settings import Settings
from core.errors import StorageConfigError
from utils.logger import get_logger

logger = get_logger(__name__)


class BlobStorage:
    """Interface shared by storage backends."""

    def put(self, key: str, data: bytes, content_type: str, overwrite: bool = True) -> str:
        """Store bytes under key and return the public URL."""
        raise NotImplementedError

    def delete(self, key: str):
        raise NotImplementedError

    def get_public_url(self, key: str) -> str:
        raise NotImplementedError

    def key_from_url(self, url: Optional[str]) -> Optional[str]:
        """
        Map a public URL back to a storage key.

        Returns:
            Key if the URL points into this storage, otherwise None
        """
        base = self.get_public_url('')
        if not url or not base or not url.startswith(base):
            return None
        key = url[len(base):].lstrip('/')
        return key or None


class LocalBlobStorage(BlobStorage):
    """Stores images on the local filesystem (development and tests)."""

    def __init__(self, root_dir: str = None, public_base_url: str = None):
        self.root = Path(root_dir or Settings.STORAGE_DIR).resolve()
        self.public_base_url = (public_base_url or Settings.PUBLIC_BASE_URL or self.root.as_uri()).rstrip('/')
        self.root.mkdir(parents=True, exist_ok=True)
        logger.info(f"Local storage: {self.root}")

    def _path_for(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if self.root not in path.parents:
            raise ValueError(f"Storage key escapes storage root: {key}")
        return path

    def put(self, key: str, data: bytes, content_type: str, overwrite: bool = True) -> str:
        path = self._path_for(key)
        if path.exists() and not overwrite:
            raise FileExistsError(f"Object already exists: {key}")

        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_name(path.name + '.part')
        tmp_path.write_bytes(data)
        tmp_path.replace(path)

        logger.debug(f"Stored {len(data)} bytes at {key} ({content_type})")
        return self.get_public_url(key)

    def delete(self, key: str):
        path = self._path_for(key)
        if path.exists():
            path.unlink()
            logger.debug(f"Deleted {key}")

    def exists(self, key: str) -> bool:
        return self._path_for(key).exists()

    def get_public_url(self, key: str) -> str:
        return f"{self.public_base_url}/{key}" if key else f"{self.public_base_url}/"


class S3BlobStorage(BlobStorage):
    """Stores images in an S3 bucket with public-read URLs."""

    def __init__(
        self,
        bucket: str = None,
        region: str = None,
        prefix: str = None,
        public_base_url: str = None,
        client=None
    ):
        self.bucket = bucket or Settings.S3_BUCKET
        if not self.bucket:
            raise StorageConfigError("CATALOG_IMAGES_S3_BUCKET is not set")

        self.region = region or Settings.S3_REGION
        self.prefix = (Settings.S3_PREFIX if prefix is None else prefix).strip('/')

        if client is None:
            import boto3
            client = boto3.client('s3', region_name=self.region)
        self.client = client

        base = public_base_url or Settings.PUBLIC_BASE_URL
        if not base:
            base = f"https://{self.bucket}.s3.{self.region}.amazonaws.com"
            if self.prefix:
                base = f"{base}/{self.prefix}"
        self.public_base_url = base.rstrip('/')
        logger.info(f"S3 storage: s3://{self.bucket}/{self.prefix}")

    def _object_key(self, key: str) -> str:
        return f"{self.prefix}/{key}" if self.prefix else key

    def put(self, key: str, data: bytes, content_type: str, overwrite: bool = True) -> str:
        from botocore.exceptions import ClientError

        object_key = self._object_key(key)
        if not overwrite:
            try:
                self.client.head_object(Bucket=self.bucket, Key=object_key)
                raise FileExistsError(f"Object already exists: {key}")
            except ClientError:
                pass

        self.client.put_object(
            Bucket=self.bucket,
            Key=object_key,
            Body=data,
            ContentType=content_type,
            CacheControl='public, max-age=31536000',
        )
        logger.debug(f"Uploaded {len(data)} bytes to s3://{self.bucket}/{object_key}")
        return self.get_public_url(key)

    def delete(self, key: str):
        self.client.delete_object(Bucket=self.bucket, Key=self._object_key(key))
        logger.debug(f"Deleted s3://{self.bucket}/{self._object_key(key)}")

    def get_public_url(self, key: str) -> str:
        return f"{self.public_base_url}/{key}" if key else f"{self.public_base_url}/"


def create_storage(backend: str = None) -> BlobStorage:
    """
    Build the storage backend named in settings.

    Args:
        backend: 'local' or 's3' (default from settings)

    Returns:
        BlobStorage instance
    """
    backend = (backend or Settings.STORAGE_BACKEND).lower()
    if backend == 'local':
        return LocalBlobStorage()
    if backend == 's3':
        return S3BlobStorage()
    raise StorageConfigError(f"Unknown storage backend: {backend}")
