"""S3-compatible object store access built on the MinIO SDK."""
import asyncio
import io
import json
import logging
from datetime import timedelta
from functools import partial
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence, Union, runtime_checkable

from minio import Minio
from minio.datatypes import Part as MinioPart
from minio.error import S3Error

from vidtransfer.core.config import MinioConfig
from vidtransfer.core.exceptions import (
    InvalidArgumentException,
    ObjectNotFoundException,
    RangeUnsatisfiableException,
    StorageException,
)
from vidtransfer.models.part import PartToken
from vidtransfer.models.transfer import ObjectRecord, ObjectSource
from vidtransfer.utils.logger import get_logger

logger: logging.Logger = get_logger(__name__)

NOT_FOUND_CODES = {"NoSuchKey", "NoSuchObject", "NoSuchBucket", "ResourceNotFound"}


@runtime_checkable
class ObjectStore(Protocol):
    """Protocol describing the object store operations used by transfers."""

    async def put_object(
        self,
        name: str,
        data: Union[bytes, io.IOBase],
        length: int,
        content_type: str = "application/octet-stream"
    ) -> Optional[str]:
        """Store an object in a single request and return its ETag."""
        ...

    async def get_object_range(self, name: str, start: int, end: int) -> bytes:
        """Read bytes ``start..end`` (inclusive) of an object."""
        ...

    async def stat_object(self, name: str) -> ObjectRecord:
        """Return size metadata or raise ObjectNotFoundException."""
        ...

    async def delete_object(self, name: str) -> None:
        """Delete an object or raise ObjectNotFoundException."""
        ...

    async def list_objects(self, prefix: str = "") -> List[ObjectRecord]:
        """List objects under a prefix."""
        ...

    async def presign(
        self,
        method: str,
        name: str,
        expiry: int,
        extra_params: Optional[Dict[str, str]] = None
    ) -> str:
        """Create a time-limited signed URL."""
        ...

    async def initiate_multipart(self, name: str, content_type: str = "application/octet-stream") -> str:
        """Begin a native multipart upload and return its upload id."""
        ...

    async def complete_multipart(self, name: str, upload_id: str, tokens: Sequence[PartToken]) -> str:
        """Commit an ordered token list into the final object."""
        ...

    async def abort_multipart(self, name: str, upload_id: str) -> None:
        """Discard a multipart upload and its stored parts."""
        ...

    async def ensure_bucket(self) -> None:
        ...

    async def is_alive(self) -> bool:
        ...


def public_read_policy(bucket_name: str) -> str:
    """Bucket policy granting anonymous GetObject."""
    return json.dumps({
        "Version": "2012-10-17",
        "Statement": [
            {
                "Effect": "Allow",
                "Principal": {"AWS": ["*"]},
                "Action": ["s3:GetObject"],
                "Resource": [f"arn:aws:s3:::{bucket_name}/*"]
            }
        ]
    })


class MinioObjectStore:
    """
    Object store backed by a MinIO bucket.

    The MinIO SDK is synchronous; every call runs in the default executor so
    the event loop keeps serving other part transfers.
    """

    def __init__(self, config: MinioConfig, client: Optional[Minio] = None):
        """
        Initialize the store.

        Args:
            config: MinIO connection settings.
            client: Pre-built SDK client, mainly for tests.
        """
        self.config = config
        self.bucket_name = config.bucket_name
        self.client = client or Minio(
            config.endpoint,
            access_key=config.access_key,
            secret_key=config.secret_key,
            secure=config.secure,
            region=config.region
        )
        logger.info(f"MinIO object store configured for {config.endpoint}/{self.bucket_name}")

    async def _run(self, func: Callable[..., Any], *args, **kwargs) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, partial(func, *args, **kwargs))

    def _translate(self, error: S3Error, name: str, operation: str) -> Exception:
        if error.code in NOT_FOUND_CODES:
            return ObjectNotFoundException(name, source=ObjectSource.MINIO.value)
        return StorageException(
            f"MinIO {operation} failed for {name}: {error.code}",
            operation=operation,
            details={"name": name, "code": error.code},
            original_error=error
        )

    async def ensure_bucket(self) -> None:
        """Create the bucket if missing and apply the public-read policy when enabled."""
        try:
            exists = await self._run(self.client.bucket_exists, bucket_name=self.bucket_name)
            if not exists:
                logger.info(f"Creating MinIO bucket: {self.bucket_name}")
                await self._run(self.client.make_bucket, bucket_name=self.bucket_name)
                logger.info(f"Bucket '{self.bucket_name}' created successfully")
            else:
                logger.info(f"Bucket '{self.bucket_name}' already exists")

            if self.config.public_read:
                await self._run(
                    self.client.set_bucket_policy,
                    bucket_name=self.bucket_name,
                    policy=public_read_policy(self.bucket_name)
                )
                logger.info(f"Public-read policy applied to bucket '{self.bucket_name}'")
        except S3Error as e:
            logger.error(f"Failed to prepare bucket '{self.bucket_name}': {e}")
            raise StorageException(
                f"Failed to prepare bucket {self.bucket_name}: {e.code}",
                operation="ensure_bucket",
                original_error=e
            )

    async def is_alive(self) -> bool:
        try:
            return bool(await self._run(self.client.bucket_exists, bucket_name=self.bucket_name))
        except Exception as e:
            logger.warning(f"MinIO health check failed: {e}")
            return False

    async def put_object(
        self,
        name: str,
        data: Union[bytes, io.IOBase],
        length: int,
        content_type: str = "application/octet-stream"
    ) -> Optional[str]:
        stream = io.BytesIO(data) if isinstance(data, (bytes, bytearray)) else data
        try:
            result = await self._run(
                self.client.put_object,
                bucket_name=self.bucket_name,
                object_name=name,
                data=stream,
                length=length,
                content_type=content_type
            )
        except S3Error as e:
            raise self._translate(e, name, "put_object")
        logger.info(f"Stored {name} in MinIO ({length} bytes)")
        return result.etag

    async def get_object_range(self, name: str, start: int, end: int) -> bytes:
        if start < 0 or end < start:
            raise RangeUnsatisfiableException(name, start, end)

        def _read() -> bytes:
            response = self.client.get_object(
                bucket_name=self.bucket_name,
                object_name=name,
                offset=start,
                length=end - start + 1
            )
            try:
                return response.read()
            finally:
                response.close()
                response.release_conn()

        try:
            return await self._run(_read)
        except S3Error as e:
            if e.code == "InvalidRange":
                raise RangeUnsatisfiableException(name, start, end, original_error=e)
            raise self._translate(e, name, "get_object")

    async def stat_object(self, name: str) -> ObjectRecord:
        try:
            stat = await self._run(self.client.stat_object, bucket_name=self.bucket_name, object_name=name)
        except S3Error as e:
            raise self._translate(e, name, "stat_object")
        return ObjectRecord(name=name, size=stat.size, source=ObjectSource.MINIO)

    async def delete_object(self, name: str) -> None:
        """
        Delete an object.

        S3 deletes are idempotent, so existence is checked first to report
        ``ObjectNotFoundException`` for missing objects.
        """
        await self.stat_object(name)
        try:
            await self._run(self.client.remove_object, bucket_name=self.bucket_name, object_name=name)
        except S3Error as e:
            raise self._translate(e, name, "remove_object")
        logger.info(f"Deleted {name} from MinIO")

    async def list_objects(self, prefix: str = "") -> List[ObjectRecord]:
        def _list() -> List[ObjectRecord]:
            return [
                ObjectRecord(name=obj.object_name, size=obj.size or 0, source=ObjectSource.MINIO)
                for obj in self.client.list_objects(
                    bucket_name=self.bucket_name,
                    prefix=prefix or None,
                    recursive=True
                )
                if not obj.is_dir
            ]

        try:
            return await self._run(_list)
        except S3Error as e:
            raise self._translate(e, prefix or self.bucket_name, "list_objects")

    async def presign(
        self,
        method: str,
        name: str,
        expiry: int,
        extra_params: Optional[Dict[str, str]] = None
    ) -> str:
        method = method.upper()
        if method not in ("GET", "PUT"):
            raise InvalidArgumentException(f"Unsupported presign method: {method}", field="method")
        try:
            return await self._run(
                self.client.get_presigned_url,
                method=method,
                bucket_name=self.bucket_name,
                object_name=name,
                expires=timedelta(seconds=expiry),
                extra_query_params=extra_params
            )
        except S3Error as e:
            raise self._translate(e, name, "presign")

    async def initiate_multipart(self, name: str, content_type: str = "application/octet-stream") -> str:
        try:
            upload_id = await self._run(
                self.client._create_multipart_upload,
                bucket_name=self.bucket_name,
                object_name=name,
                headers={"Content-Type": content_type}
            )
        except S3Error as e:
            raise self._translate(e, name, "create_multipart_upload")
        logger.info(f"Multipart upload initiated for {name}: {upload_id}")
        return upload_id

    async def complete_multipart(self, name: str, upload_id: str, tokens: Sequence[PartToken]) -> str:
        parts = [
            MinioPart(part_number=token.part_number, etag=token.etag)
            for token in sorted(tokens, key=lambda t: t.index)
        ]
        try:
            result = await self._run(
                self.client._complete_multipart_upload,
                bucket_name=self.bucket_name,
                object_name=name,
                upload_id=upload_id,
                parts=parts
            )
        except S3Error as e:
            raise self._translate(e, name, "complete_multipart_upload")
        logger.info(f"Multipart upload completed for {name} ({len(parts)} parts)")
        return result.etag

    async def abort_multipart(self, name: str, upload_id: str) -> None:
        try:
            await self._run(
                self.client._abort_multipart_upload,
                bucket_name=self.bucket_name,
                object_name=name,
                upload_id=upload_id
            )
        except S3Error as e:
            if e.code == "NoSuchUpload":
                logger.debug(f"Multipart upload {upload_id} for {name} already gone")
                return
            raise self._translate(e, name, "abort_multipart_upload")
        logger.info(f"Multipart upload aborted for {name}: {upload_id}")
