"""Shared fixtures: in-memory object store, signed URL client and wired services."""
import hashlib
import os
import uuid
from typing import Dict, List, Optional, Sequence, Set
from urllib.parse import parse_qs, urlparse

import pytest
from faker import Faker

from vidtransfer.core.exceptions import (
    ObjectNotFoundException,
    RangeUnsatisfiableException,
    StorageException,
)
from vidtransfer.models.part import PartToken
from vidtransfer.models.transfer import ObjectRecord, ObjectSource
from vidtransfer.services.local_store import LocalObjectStore, PartStaging
from vidtransfer.services.session_store import ChunkSessionStore
from vidtransfer.services.transfer_service import TransferService

fake = Faker()

FAKE_ENDPOINT = "http://minio.test/videos"


def etag_of(data: bytes) -> str:
    return hashlib.md5(data).hexdigest()


class FakeObjectStore:
    """In-memory stand-in for the MinIO bucket, including multipart uploads."""

    def __init__(self):
        self.objects: Dict[str, bytes] = {}
        self.uploads: Dict[str, Dict] = {}
        self.aborted: List[str] = []
        self.completed: List[str] = []
        self.alive = True
        self.fail_listing = False

    async def put_object(self, name, data, length, content_type="application/octet-stream"):
        self.objects[name] = bytes(data)
        return etag_of(self.objects[name])

    async def get_object_range(self, name: str, start: int, end: int) -> bytes:
        data = self._require(name)
        if start < 0 or start >= len(data) or end < start:
            raise RangeUnsatisfiableException(name, start, end, actual_size=len(data))
        return data[start:end + 1]

    async def stat_object(self, name: str) -> ObjectRecord:
        return ObjectRecord(name=name, size=len(self._require(name)), source=ObjectSource.MINIO)

    async def delete_object(self, name: str) -> None:
        self._require(name)
        del self.objects[name]

    async def list_objects(self, prefix: str = "") -> List[ObjectRecord]:
        if self.fail_listing:
            raise StorageException("MinIO list_objects failed", operation="list_objects")
        return [
            ObjectRecord(name=name, size=len(data), source=ObjectSource.MINIO)
            for name, data in sorted(self.objects.items())
            if name.startswith(prefix)
        ]

    async def presign(self, method: str, name: str, expiry: int,
                      extra_params: Optional[Dict[str, str]] = None) -> str:
        query = f"X-Amz-Expires={expiry}&X-Amz-Method={method}"
        for key, value in (extra_params or {}).items():
            query += f"&{key}={value}"
        return f"{FAKE_ENDPOINT}/{name}?{query}"

    async def initiate_multipart(self, name: str, content_type: str = "application/octet-stream") -> str:
        upload_id = uuid.uuid4().hex
        self.uploads[upload_id] = {"name": name, "parts": {}}
        return upload_id

    async def complete_multipart(self, name: str, upload_id: str, tokens: Sequence[PartToken]) -> str:
        upload = self.uploads.get(upload_id)
        if upload is None or upload["name"] != name:
            raise StorageException(f"No such upload {upload_id}", operation="complete_multipart_upload")
        numbers = [t.part_number for t in tokens]
        if numbers != sorted(numbers):
            raise StorageException("Parts out of order", operation="complete_multipart_upload")
        chunks = []
        for token in tokens:
            data = upload["parts"].get(token.part_number)
            if data is None or etag_of(data) != token.etag:
                raise StorageException(f"Invalid part {token.part_number}", operation="complete_multipart_upload")
            chunks.append(data)
        self.objects[name] = b"".join(chunks)
        del self.uploads[upload_id]
        self.completed.append(name)
        return etag_of(self.objects[name])

    async def abort_multipart(self, name: str, upload_id: str) -> None:
        self.uploads.pop(upload_id, None)
        self.aborted.append(upload_id)

    async def ensure_bucket(self) -> None:
        return None

    async def is_alive(self) -> bool:
        return self.alive

    def _require(self, name: str) -> bytes:
        if name not in self.objects:
            raise ObjectNotFoundException(name, source=ObjectSource.MINIO.value)
        return self.objects[name]


class FakeSignedUrlClient:
    """Serves signed URLs minted by ``FakeObjectStore`` without any network."""

    def __init__(self, store: FakeObjectStore):
        self.store = store
        self.fail_part_numbers: Set[int] = set()
        self.put_calls = 0
        self.get_calls = 0

    @staticmethod
    def _parse(url: str):
        parsed = urlparse(url)
        name = parsed.path.rsplit("/", 1)[-1]
        params = {k: v[0] for k, v in parse_qs(parsed.query).items()}
        return name, params

    async def put(self, url: str, payload: bytes, content_type: Optional[str] = None) -> str:
        self.put_calls += 1
        name, params = self._parse(url)
        upload_id = params.get("uploadId")
        if upload_id is None:
            return await self.store.put_object(name, payload, len(payload))

        part_number = int(params["partNumber"])
        if part_number in self.fail_part_numbers:
            raise StorageException(f"Signed PUT failed with HTTP 500", operation="signed_put")
        upload = self.store.uploads.get(upload_id)
        if upload is None:
            raise StorageException("Signed PUT failed with HTTP 404", operation="signed_put")
        upload["parts"][part_number] = bytes(payload)
        return etag_of(payload)

    async def get_range(self, url: str, start: int, end: int) -> bytes:
        self.get_calls += 1
        name, _ = self._parse(url)
        return await self.store.get_object_range(name, start, end)

    async def close(self) -> None:
        return None


@pytest.fixture
def fake_store() -> FakeObjectStore:
    return FakeObjectStore()


@pytest.fixture
def url_client(fake_store: FakeObjectStore) -> FakeSignedUrlClient:
    return FakeSignedUrlClient(fake_store)


@pytest.fixture
def local_store(tmp_path) -> LocalObjectStore:
    return LocalObjectStore(tmp_path / "uploads" / "permanent")


@pytest.fixture
def staging(tmp_path) -> PartStaging:
    return PartStaging(tmp_path / "uploads" / "chunks")


@pytest.fixture
def session_store() -> ChunkSessionStore:
    return ChunkSessionStore(max_sessions=16, ttl_seconds=3600, sweep_interval=0.05)


@pytest.fixture
def transfer_service(
    fake_store: FakeObjectStore,
    local_store: LocalObjectStore,
    staging: PartStaging,
    session_store: ChunkSessionStore
) -> TransferService:
    return TransferService(
        object_store=fake_store,
        local_store=local_store,
        staging=staging,
        session_store=session_store
    )


@pytest.fixture
def video_name() -> str:
    return f"{fake.slug()}.mp4"


@pytest.fixture
def video_bytes() -> bytes:
    return os.urandom(64 * 1024 + 123)
