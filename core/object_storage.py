import asyncio
import logging
from pathlib import Path
from typing import Dict, List, Optional, Protocol

from botocore.exceptions import ClientError

from core.errors import ObjectNotFoundError

logger = logging.getLogger(__name__)


class ObjectStorage(Protocol):
    async def get(self, bucket: str, key: str) -> bytes: ...

    async def put(self, key: str, data: bytes) -> None: ...

    async def list_keys(self) -> List[str]: ...


class InMemoryObjectStorage:
    """
    Objects live in a dict keyed by object key. Reads try the full
    "bucket/key" name first, then the bare key, then the disk mirror.
    """

    def __init__(self, storage_dir: Optional[str] = None):
        self._lock = asyncio.Lock()
        self._data: Dict[str, bytes] = {}
        self.storage_dir = Path(storage_dir) if storage_dir else None

    def _file_path(self, key: str) -> Path:
        return self.storage_dir / key

    async def put(self, key: str, data: bytes) -> None:
        async with self._lock:
            self._data[key] = data

        if self.storage_dir is not None:
            path = self._file_path(key)
            await asyncio.to_thread(self._write_file, path, data)
            logger.info("File saved to disk at: %s", path)

        logger.info("Stored object %s (%d bytes)", key, len(data))

    @staticmethod
    def _write_file(path: Path, data: bytes):
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)

    async def get(self, bucket: str, key: str) -> bytes:
        full_key = f"{bucket}/{key}"
        async with self._lock:
            data = self._data.get(full_key)
            if data is None:
                data = self._data.get(key)
        if data is not None:
            return data

        if self.storage_dir is not None:
            path = self._file_path(key)
            if path.is_file():
                data = await asyncio.to_thread(path.read_bytes)
                async with self._lock:
                    self._data[key] = data
                logger.info("Read file from disk: %s (%d bytes)", path, len(data))
                return data

        raise ObjectNotFoundError(bucket, key)

    async def list_keys(self) -> List[str]:
        async with self._lock:
            return sorted(self._data)


class S3ObjectStorage:
    """Objects in a single S3 bucket; an empty bucket name means the configured one"""

    def __init__(self, client, bucket: str):
        self.client = client
        self.bucket = bucket

    async def put(self, key: str, data: bytes) -> None:
        await asyncio.to_thread(
            self.client.put_object,
            Bucket=self.bucket,
            Key=key,
            Body=data,
            ContentType="text/csv",
        )
        logger.info("Uploaded s3://%s/%s (%d bytes)", self.bucket, key, len(data))

    async def get(self, bucket: str, key: str) -> bytes:
        bucket = bucket or self.bucket
        try:
            obj = await asyncio.to_thread(self.client.get_object, Bucket=bucket, Key=key)
        except ClientError as exc:
            code = exc.response.get("Error", {}).get("Code")
            if code in ("NoSuchKey", "NoSuchBucket", "404"):
                raise ObjectNotFoundError(bucket, key) from exc
            raise
        return await asyncio.to_thread(obj["Body"].read)

    async def list_keys(self) -> List[str]:
        return await asyncio.to_thread(self._list_all_keys)

    def _list_all_keys(self) -> List[str]:
        paginator = self.client.get_paginator("list_objects_v2")
        keys = []
        for page in paginator.paginate(Bucket=self.bucket):
            keys.extend(item["Key"] for item in page.get("Contents", []))
        return keys
