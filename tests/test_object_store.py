"""Tests for the MinIO object store adapter with a mocked SDK client."""
import json
from unittest.mock import MagicMock

import pytest
from minio.error import S3Error

from vidtransfer.core.config import MinioConfig
from vidtransfer.core.exceptions import (
    InvalidArgumentException,
    ObjectNotFoundException,
    RangeUnsatisfiableException,
    StorageException,
)
from vidtransfer.models.part import PartToken
from vidtransfer.models.transfer import ObjectSource
from vidtransfer.services.object_store import MinioObjectStore, ObjectStore, public_read_policy


def s3_error(code: str) -> S3Error:
    return S3Error(code, f"{code} message", "/videos/clip.mp4", "request-id", "host-id", MagicMock())


@pytest.fixture(name="minio_client")
def fixture_minio_client():
    return MagicMock()


@pytest.fixture(name="store")
def fixture_store(minio_client):
    config = MinioConfig(endpoint="minio.test:9000", access_key="key", secret_key="secret")
    return MinioObjectStore(config, client=minio_client)


def test_satisfies_protocol(store):
    assert isinstance(store, ObjectStore)


def test_public_read_policy():
    policy = json.loads(public_read_policy("videos"))

    assert policy["Statement"][0]["Action"] == ["s3:GetObject"]
    assert policy["Statement"][0]["Resource"] == ["arn:aws:s3:::videos/*"]


class TestBucket:
    """Bucket preparation and liveness."""

    async def test_creates_missing_bucket(self, store, minio_client):
        minio_client.bucket_exists.return_value = False

        await store.ensure_bucket()

        minio_client.make_bucket.assert_called_once_with(bucket_name="videos")
        minio_client.set_bucket_policy.assert_called_once()

    async def test_existing_bucket_not_recreated(self, store, minio_client):
        minio_client.bucket_exists.return_value = True

        await store.ensure_bucket()

        minio_client.make_bucket.assert_not_called()

    async def test_bucket_error(self, store, minio_client):
        minio_client.bucket_exists.side_effect = s3_error("AccessDenied")

        with pytest.raises(StorageException):
            await store.ensure_bucket()

    async def test_is_alive_false_on_error(self, store, minio_client):
        minio_client.bucket_exists.side_effect = ConnectionError("refused")

        assert await store.is_alive() is False


class TestObjects:
    """Single-object operations."""

    async def test_range_read(self, store, minio_client):
        response = MagicMock()
        response.read.return_value = b"2345"
        minio_client.get_object.return_value = response

        assert await store.get_object_range("clip.mp4", 2, 5) == b"2345"

        minio_client.get_object.assert_called_once_with(
            bucket_name="videos", object_name="clip.mp4", offset=2, length=4
        )
        response.close.assert_called_once()
        response.release_conn.assert_called_once()

    async def test_invalid_range(self, store, minio_client):
        minio_client.get_object.side_effect = s3_error("InvalidRange")

        with pytest.raises(RangeUnsatisfiableException):
            await store.get_object_range("clip.mp4", 100, 200)

    async def test_stat_missing(self, store, minio_client):
        minio_client.stat_object.side_effect = s3_error("NoSuchKey")

        with pytest.raises(ObjectNotFoundException):
            await store.stat_object("clip.mp4")

    async def test_stat(self, store, minio_client):
        minio_client.stat_object.return_value = MagicMock(size=42)

        record = await store.stat_object("clip.mp4")

        assert (record.name, record.size, record.source) == ("clip.mp4", 42, ObjectSource.MINIO)

    async def test_delete_missing_object(self, store, minio_client):
        minio_client.stat_object.side_effect = s3_error("NoSuchKey")

        with pytest.raises(ObjectNotFoundException):
            await store.delete_object("clip.mp4")

        minio_client.remove_object.assert_not_called()

    async def test_put_returns_etag(self, store, minio_client):
        minio_client.put_object.return_value = MagicMock(etag="abc")

        assert await store.put_object("clip.mp4", b"data", 4, "video/mp4") == "abc"

    async def test_list_skips_directories(self, store, minio_client):
        minio_client.list_objects.return_value = [
            MagicMock(object_name="a.mp4", size=3, is_dir=False),
            MagicMock(object_name="dir/", size=None, is_dir=True),
        ]

        records = await store.list_objects()

        assert [(r.name, r.size) for r in records] == [("a.mp4", 3)]

    async def test_other_errors_become_storage_errors(self, store, minio_client):
        minio_client.stat_object.side_effect = s3_error("InternalError")

        with pytest.raises(StorageException) as exc_info:
            await store.stat_object("clip.mp4")

        assert exc_info.value.details["code"] == "InternalError"


class TestSignedUrlsAndMultipart:
    """Presigning and native multipart uploads."""

    async def test_presign_part_url(self, store, minio_client):
        minio_client.get_presigned_url.return_value = "http://signed"

        url = await store.presign("put", "clip.mp4", 3600, extra_params={"uploadId": "u1", "partNumber": "2"})

        assert url == "http://signed"
        kwargs = minio_client.get_presigned_url.call_args.kwargs
        assert kwargs["method"] == "PUT"
        assert kwargs["expires"].total_seconds() == 3600
        assert kwargs["extra_query_params"] == {"uploadId": "u1", "partNumber": "2"}

    async def test_presign_rejects_other_methods(self, store):
        with pytest.raises(InvalidArgumentException):
            await store.presign("DELETE", "clip.mp4", 60)

    async def test_complete_sends_sorted_one_based_parts(self, store, minio_client):
        minio_client._complete_multipart_upload.return_value = MagicMock(etag="final")
        tokens = [PartToken(index=1, etag="e1"), PartToken(index=0, etag="e0")]

        assert await store.complete_multipart("clip.mp4", "u1", tokens) == "final"

        parts = minio_client._complete_multipart_upload.call_args.kwargs["parts"]
        assert [(p.part_number, p.etag) for p in parts] == [(1, "e0"), (2, "e1")]

    async def test_initiate_multipart(self, store, minio_client):
        minio_client._create_multipart_upload.return_value = "u1"

        assert await store.initiate_multipart("clip.mp4", "video/mp4") == "u1"
        assert minio_client._create_multipart_upload.call_args.kwargs["headers"] == {"Content-Type": "video/mp4"}

    async def test_abort_ignores_missing_upload(self, store, minio_client):
        minio_client._abort_multipart_upload.side_effect = s3_error("NoSuchUpload")

        await store.abort_multipart("clip.mp4", "u1")

    async def test_abort_other_errors_raise(self, store, minio_client):
        minio_client._abort_multipart_upload.side_effect = s3_error("AccessDenied")

        with pytest.raises(StorageException):
            await store.abort_multipart("clip.mp4", "u1")
