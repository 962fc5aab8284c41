"""aiohttp client for the transfer API, usable wherever the in-process service is."""
import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import aiohttp

from vidtransfer.core.exceptions import TransferException, exception_from_error_payload
from vidtransfer.models.part import PartResult
from vidtransfer.models.transfer import (
    DeleteReport,
    DeleteResult,
    DeleteStatus,
    ObjectRecord,
    ObjectSource,
)
from vidtransfer.models.upload_session import TransferStrategy
from vidtransfer.utils.logger import get_logger

logger: logging.Logger = get_logger(__name__)


def _record_from_json(data: Dict[str, Any]) -> ObjectRecord:
    return ObjectRecord(name=data["name"], size=int(data["size"]), source=ObjectSource(data["source"]))


class TransferApiClient:
    """
    Remote gateway speaking the HTTP API.

    Method names and return types match ``TransferService`` so transports
    work unchanged against a local service or a remote server. Error
    envelopes are turned back into the matching application exception.

    Args:
        base_url: Server root, e.g. ``http://localhost:3000``.
        api_prefix: Route prefix the server mounts its API under.
        session: Shared aiohttp session; created lazily and owned when omitted.
        timeout: Total timeout per request in seconds.
    """

    def __init__(
        self,
        base_url: str,
        api_prefix: str = "/api",
        session: Optional[aiohttp.ClientSession] = None,
        timeout: float = 300.0
    ):
        self.base_url = base_url.rstrip("/") + api_prefix.rstrip("/")
        self.timeout = timeout
        self._session = session
        self._owns_session = session is None
        self._strategies: Dict[str, TransferStrategy] = {}

    async def __aenter__(self):
        self._get_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout, connect=60)
            )
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    async def _raise_for_error(self, response: aiohttp.ClientResponse) -> None:
        if response.status < 400:
            return
        try:
            payload = await response.json(content_type=None)
        except (aiohttp.ContentTypeError, ValueError):
            payload = {"error": {"message": await response.text()}}
        exc = exception_from_error_payload(payload, response.status)
        logger.debug(f"API error {response.status} {exc.error_code}: {exc.message}")
        raise exc

    async def _request_json(self, method: str, path: str, **kwargs) -> Any:
        async with self._get_session().request(method, self._url(path), **kwargs) as response:
            await self._raise_for_error(response)
            return await response.json()

    async def _request_bytes(self, method: str, path: str, **kwargs) -> bytes:
        async with self._get_session().request(method, self._url(path), **kwargs) as response:
            await self._raise_for_error(response)
            return await response.read()

    @staticmethod
    def _name(name: str) -> str:
        return quote(name, safe="")

    # Proxied strategy

    async def initiate_session(
        self,
        target_name: str,
        total_parts: int,
        total_size: Optional[int] = None,
        content_type: Optional[str] = None
    ) -> str:
        data = await self._request_json("POST", "/traditional/chunk/init", json={
            "filename": target_name,
            "total_chunks": total_parts,
            "total_size": total_size,
            "content_type": content_type
        })
        session_id = data["upload_id"]
        self._strategies[session_id] = TransferStrategy.PROXIED
        return session_id

    async def submit_part(self, session_id: str, index: int, payload: bytes) -> PartResult:
        form = aiohttp.FormData()
        form.add_field("upload_id", session_id)
        form.add_field("chunk_index", str(index))
        form.add_field(
            "chunk",
            payload,
            filename=f"chunk_{index}",
            content_type="application/octet-stream"
        )
        data = await self._request_json("POST", "/traditional/chunk/upload", data=form)
        return PartResult(index=data["chunk_index"], size=data["size"])

    async def finalize_session(self, session_id: str) -> ObjectRecord:
        if self._strategies.get(session_id) == TransferStrategy.DIRECT:
            data = await self._request_json("POST", f"/optimized/multipart/{session_id}/complete")
        else:
            data = await self._request_json(
                "POST", "/traditional/chunk/complete", json={"upload_id": session_id}
            )
        self._strategies.pop(session_id, None)
        return _record_from_json(data)

    async def abort_session(self, session_id: str) -> bool:
        if self._strategies.pop(session_id, None) == TransferStrategy.DIRECT:
            data = await self._request_json("DELETE", f"/optimized/multipart/{session_id}")
        else:
            data = await self._request_json("DELETE", f"/traditional/chunk/{session_id}")
        return bool(data["aborted"])

    async def object_size(self, name: str, source: ObjectSource = ObjectSource.LOCAL) -> int:
        if ObjectSource(source) == ObjectSource.LOCAL:
            data = await self._request_json("GET", f"/traditional/chunk/download/{self._name(name)}")
        else:
            data = await self._request_json("GET", f"/optimized/size/{self._name(name)}")
        return int(data["size"])

    async def read_range(self, name: str, start: int, end: int) -> bytes:
        return await self._request_bytes(
            "GET",
            f"/traditional/chunk/download/{self._name(name)}",
            params={"start": str(start), "end": str(end)}
        )

    # Direct strategy

    async def initiate_direct_session(
        self,
        target_name: str,
        total_parts: int,
        total_size: Optional[int] = None,
        content_type: Optional[str] = None
    ) -> Dict[str, str]:
        data = await self._request_json("POST", "/optimized/multipart/init", json={
            "filename": target_name,
            "total_chunks": total_parts,
            "total_size": total_size,
            "content_type": content_type
        })
        self._strategies[data["session_id"]] = TransferStrategy.DIRECT
        return {"session_id": data["session_id"], "upload_id": data["upload_id"]}

    async def presign_part_url(self, session_id: str, index: int) -> str:
        data = await self._request_json("GET", f"/optimized/multipart/{session_id}/part-url/{index}")
        return data["url"]

    async def record_part_token(self, session_id: str, index: int, etag: str) -> None:
        await self._request_json(
            "POST", f"/optimized/multipart/{session_id}/part/{index}", json={"etag": etag}
        )

    async def presign_upload_url(self, name: str) -> str:
        data = await self._request_json("GET", "/optimized/get-upload-url", params={"filename": name})
        return data["url"]

    async def presign_download_url(self, name: str) -> str:
        data = await self._request_json("GET", f"/optimized/get-download-url/{self._name(name)}")
        return data["url"]

    # Library

    async def list_objects(self) -> List[ObjectRecord]:
        data = await self._request_json("GET", "/videos")
        return [_record_from_json(item) for item in data]

    async def delete_object_everywhere(self, name: str) -> DeleteReport:
        data = await self._request_json("DELETE", f"/videos/{self._name(name)}")
        return DeleteReport(
            name=data["name"],
            results=[
                DeleteResult(
                    source=ObjectSource(item["source"]),
                    status=DeleteStatus(item["status"]),
                    error=item.get("error")
                )
                for item in data["results"]
            ]
        )

    async def health(self) -> Dict[str, Any]:
        try:
            return await self._request_json("GET", "/health")
        except (aiohttp.ClientError, TransferException) as e:
            logger.warning(f"Health check failed: {e}")
            return {"status": "unreachable", "error": str(e)}
