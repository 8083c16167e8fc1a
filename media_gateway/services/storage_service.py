"""
Object store service.

Stores uploaded media by key in an S3-compatible bucket (Cloudflare R2,
AWS S3, MinIO), falling back to the local filesystem when no credentials
are available.
"""
import asyncio
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
from urllib.parse import quote

import boto3
from botocore.exceptions import BotoCoreError, ClientError, NoCredentialsError

from media_gateway.config import Settings
from media_gateway.exceptions import StorageConflictError

logger = logging.getLogger(__name__)

_MISSING_CODES = {"404", "NoSuchKey", "NotFound"}
META_DIR_NAME = ".meta"


@dataclass
class StoredObject:
    """An object read back from the store."""
    key: str
    body: bytes
    content_type: Optional[str] = None
    cache_control: Optional[str] = None


class ObjectStore(ABC):
    """Key-addressed binary storage."""

    @abstractmethod
    async def get(self, key: str) -> Optional[StoredObject]:
        ...

    @abstractmethod
    async def exists(self, key: str) -> bool:
        ...

    @abstractmethod
    async def put(self, key: str, body: bytes, content_type: str, cache_control: Optional[str] = None) -> None:
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        ...

    async def close(self) -> None:
        return


class S3ObjectStore(ObjectStore):
    """
    S3-compatible bucket storage.
    boto3 is blocking, so every call runs in a worker thread.
    """

    def __init__(self, client, bucket_name: str):
        self.s3_client = client
        self.bucket_name = bucket_name

    async def get(self, key: str) -> Optional[StoredObject]:
        return await asyncio.to_thread(self._get_object, key)

    async def exists(self, key: str) -> bool:
        return await asyncio.to_thread(self._head_object, key)

    async def put(self, key: str, body: bytes, content_type: str, cache_control: Optional[str] = None) -> None:
        await asyncio.to_thread(self._put_object, key, body, content_type, cache_control)

    async def delete(self, key: str) -> None:
        await asyncio.to_thread(self.s3_client.delete_object, Bucket=self.bucket_name, Key=key)

    def _get_object(self, key: str) -> Optional[StoredObject]:
        try:
            response = self.s3_client.get_object(Bucket=self.bucket_name, Key=key)
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in _MISSING_CODES:
                return None
            raise
        return StoredObject(
            key=key,
            body=response["Body"].read(),
            content_type=response.get("ContentType"),
            cache_control=response.get("CacheControl"),
        )

    def _head_object(self, key: str) -> bool:
        try:
            self.s3_client.head_object(Bucket=self.bucket_name, Key=key)
            return True
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in _MISSING_CODES:
                return False
            raise

    def _put_object(self, key: str, body: bytes, content_type: str, cache_control: Optional[str]) -> None:
        params = {
            "Bucket": self.bucket_name,
            "Key": key,
            "Body": body,
            "ContentType": content_type,
        }
        if cache_control:
            params["CacheControl"] = cache_control
        self.s3_client.put_object(**params)


class LocalObjectStore(ObjectStore):
    """
    Filesystem storage for development and demo mode.
    HTTP metadata is kept in ``<root>/.meta/``, one file per key named by the
    percent-encoded key. Valid keys never start with ``.`` so no key can land
    in that directory. File I/O runs in worker threads like the S3 calls.
    """

    def __init__(self, root_dir: str):
        self.local_storage_dir = Path(root_dir)
        self.local_storage_dir.mkdir(parents=True, exist_ok=True)
        self.meta_dir = self.local_storage_dir / META_DIR_NAME
        self.meta_dir.mkdir(exist_ok=True)

    def _get_local_path(self, key: str) -> Path:
        return self.local_storage_dir / key

    def _get_meta_path(self, key: str) -> Path:
        return self.meta_dir / f"{quote(key, safe='')}.json"

    async def get(self, key: str) -> Optional[StoredObject]:
        return await asyncio.to_thread(self._read, key)

    async def exists(self, key: str) -> bool:
        return await asyncio.to_thread(self._get_local_path(key).is_file)

    async def put(self, key: str, body: bytes, content_type: str, cache_control: Optional[str] = None) -> None:
        await asyncio.to_thread(self._write, key, body, content_type, cache_control)

    async def delete(self, key: str) -> None:
        await asyncio.to_thread(self._remove, key)

    def _read(self, key: str) -> Optional[StoredObject]:
        local_path = self._get_local_path(key)
        if not local_path.is_file():
            return None
        meta = {}
        meta_path = self._get_meta_path(key)
        if meta_path.is_file():
            meta = json.loads(meta_path.read_text())
        return StoredObject(
            key=key,
            body=local_path.read_bytes(),
            content_type=meta.get("content_type"),
            cache_control=meta.get("cache_control"),
        )

    def _write(self, key: str, body: bytes, content_type: str, cache_control: Optional[str]) -> None:
        local_path = self._get_local_path(key)
        meta_path = self._get_meta_path(key)
        try:
            local_path.parent.mkdir(parents=True, exist_ok=True)
            local_path.write_bytes(body)
            meta_path.write_text(json.dumps({"content_type": content_type, "cache_control": cache_control}))
        except (FileExistsError, NotADirectoryError, IsADirectoryError) as e:
            logger.warning(f"Key conflicts with existing storage entry: {key}")
            raise StorageConflictError(
                f'Path "{key}" conflicts with an existing file or folder',
                {"path": key},
            ) from e

    def _remove(self, key: str) -> None:
        for path in (self._get_local_path(key), self._get_meta_path(key)):
            if path.is_file():
                path.unlink()


def create_object_store(settings: Settings) -> ObjectStore:
    """
    Build the object store for this deployment.
    - Uses explicit access keys / endpoint from settings when present
    - Falls back to the default boto3 credential chain
    - Falls back to local file storage if no credentials or bucket is unreachable
    """
    try:
        session = boto3.Session(
            aws_access_key_id=settings.AWS_ACCESS_KEY_ID,
            aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
            region_name=settings.AWS_REGION,
        )
        if session.get_credentials() is None:
            logger.warning("No object store credentials found - using local file storage")
            return _local_store(settings)

        client = session.client("s3", endpoint_url=settings.S3_ENDPOINT_URL)
        client.head_bucket(Bucket=settings.MEDIA_BUCKET)
        logger.info(f"Bucket '{settings.MEDIA_BUCKET}' accessible")
        return S3ObjectStore(client, settings.MEDIA_BUCKET)

    except NoCredentialsError:
        logger.warning("No object store credentials found - using local file storage")
    except (ClientError, BotoCoreError) as e:
        logger.error(f"Bucket access error: {e}")
    return _local_store(settings)


def _local_store(settings: Settings) -> LocalObjectStore:
    logger.info(f"Using local storage at {settings.LOCAL_STORAGE_DIR}")
    return LocalObjectStore(settings.LOCAL_STORAGE_DIR)
