"""Tests for the signed URL client and the HTTP gateway with mocked aiohttp sessions."""
from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest

from vidtransfer.client.http_gateway import TransferApiClient
from vidtransfer.client.signed_url import SignedUrlClient
from vidtransfer.core.exceptions import (
    RangeUnsatisfiableException,
    SessionNotFoundException,
    StorageException,
)
from vidtransfer.models.transfer import DeleteStatus, ObjectSource


def make_response(status=200, headers=None, body=b"", json_data=None):
    response = MagicMock()
    response.status = status
    response.headers = headers or {}
    response.read = AsyncMock(return_value=body)
    response.text = AsyncMock(return_value=body.decode())
    response.json = AsyncMock(return_value=json_data)
    return response


def as_context(response):
    context = MagicMock()
    context.__aenter__ = AsyncMock(return_value=response)
    context.__aexit__ = AsyncMock(return_value=False)
    return context


@pytest.fixture(name="http_session")
def fixture_http_session():
    session = MagicMock()
    session.closed = False
    return session


class TestSignedUrlClient:
    """Signed PUT and ranged GET."""

    async def test_put_returns_unquoted_etag(self, http_session):
        http_session.put.return_value = as_context(make_response(200, headers={"ETag": '"abc123"'}))
        client = SignedUrlClient(session=http_session)

        assert await client.put("http://signed", b"data") == "abc123"

        headers = http_session.put.call_args.kwargs["headers"]
        assert headers["Content-Length"] == "4"

    async def test_put_error_status(self, http_session):
        http_session.put.return_value = as_context(make_response(403, body=b"AccessDenied"))
        client = SignedUrlClient(session=http_session)

        with pytest.raises(StorageException) as exc_info:
            await client.put("http://signed", b"data")

        assert exc_info.value.details["status"] == 403

    async def test_put_without_etag(self, http_session):
        http_session.put.return_value = as_context(make_response(200))
        client = SignedUrlClient(session=http_session)

        with pytest.raises(StorageException):
            await client.put("http://signed", b"data")

    async def test_get_range(self, http_session):
        http_session.get.return_value = as_context(make_response(206, body=b"2345"))
        client = SignedUrlClient(session=http_session)

        assert await client.get_range("http://signed", 2, 5) == b"2345"
        assert http_session.get.call_args.kwargs["headers"] == {"Range": "bytes=2-5"}

    async def test_get_range_whole_body_is_sliced(self, http_session):
        http_session.get.return_value = as_context(make_response(200, body=b"0123456789"))
        client = SignedUrlClient(session=http_session)

        assert await client.get_range("http://signed", 2, 5) == b"2345"

    async def test_get_range_unsatisfiable(self, http_session):
        http_session.get.return_value = as_context(make_response(416))
        client = SignedUrlClient(session=http_session)

        with pytest.raises(RangeUnsatisfiableException):
            await client.get_range("http://signed?sig=1", 100, 200)

    async def test_shared_session_not_closed(self, http_session):
        http_session.close = AsyncMock()

        async with SignedUrlClient(session=http_session):
            pass

        http_session.close.assert_not_called()


class TestTransferApiClient:
    """Remote gateway over the HTTP API."""

    async def test_proxied_session_routes(self, http_session):
        http_session.request.side_effect = [
            as_context(make_response(json_data={"upload_id": "s1", "chunk_size": 4, "total_chunks": 2})),
            as_context(make_response(json_data={"upload_id": "s1", "chunk_index": 0, "size": 4})),
            as_context(make_response(json_data={"name": "clip.mp4", "size": 4, "source": "local"})),
        ]
        client = TransferApiClient("http://server:3000/", session=http_session)

        session_id = await client.initiate_session("clip.mp4", 2)
        part = await client.submit_part(session_id, 0, b"data")
        record = await client.finalize_session(session_id)

        urls = [c.args[1] for c in http_session.request.call_args_list]
        assert urls == [
            "http://server:3000/api/traditional/chunk/init",
            "http://server:3000/api/traditional/chunk/upload",
            "http://server:3000/api/traditional/chunk/complete",
        ]
        assert part.size == 4
        assert record.source == ObjectSource.LOCAL

    async def test_direct_session_routes(self, http_session):
        http_session.request.side_effect = [
            as_context(make_response(json_data={
                "session_id": "s1", "upload_id": "u1", "chunk_size": 4, "total_chunks": 1
            })),
            as_context(make_response(json_data={"session_id": "s1", "aborted": True})),
        ]
        client = TransferApiClient("http://server:3000", session=http_session)

        opened = await client.initiate_direct_session("clip.mp4", 1)
        aborted = await client.abort_session(opened["session_id"])

        assert opened == {"session_id": "s1", "upload_id": "u1"}
        assert aborted is True
        method, url = http_session.request.call_args_list[-1].args
        assert (method, url) == ("DELETE", "http://server:3000/api/optimized/multipart/s1")

    async def test_error_envelope_raises_matching_exception(self, http_session):
        http_session.request.return_value = as_context(make_response(404, json_data={"error": {
            "code": "SESSION_NOT_FOUND",
            "message": "Upload session not found: s1",
            "category": "not_found",
            "severity": "medium",
            "details": {"session_id": "s1"},
        }}))
        client = TransferApiClient("http://server:3000", session=http_session)

        with pytest.raises(SessionNotFoundException) as exc_info:
            await client.submit_part("s1", 0, b"x")

        assert exc_info.value.details == {"session_id": "s1"}

    async def test_names_are_quoted(self, http_session):
        http_session.request.return_value = as_context(make_response(json_data={"size": 7}))
        client = TransferApiClient("http://server:3000", session=http_session)

        assert await client.object_size("my clip.mp4", ObjectSource.MINIO) == 7
        assert http_session.request.call_args.args[1] == "http://server:3000/api/optimized/size/my%20clip.mp4"

    async def test_delete_report(self, http_session):
        http_session.request.return_value = as_context(make_response(json_data={
            "name": "clip.mp4",
            "deleted": True,
            "results": [
                {"source": "local", "status": "deleted", "error": None},
                {"source": "minio", "status": "failed", "error": "down"},
            ],
        }))
        client = TransferApiClient("http://server:3000", session=http_session)

        report = await client.delete_object_everywhere("clip.mp4")

        assert report.deleted is True
        assert [r.status for r in report.results] == [DeleteStatus.DELETED, DeleteStatus.FAILED]

    async def test_health_unreachable(self, http_session):
        http_session.request.side_effect = aiohttp.ClientConnectionError("refused")
        client = TransferApiClient("http://server:3000", session=http_session)

        health = await client.health()

        assert health["status"] == "unreachable"
