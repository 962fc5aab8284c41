"""Part transports for the proxied and direct transfer strategies."""
import logging
from dataclasses import dataclass
from typing import Any, Optional, Protocol, runtime_checkable

from vidtransfer.client.signed_url import SignedUrlClient
from vidtransfer.core.exceptions import RangeUnsatisfiableException
from vidtransfer.models.part import PartResult, PartSpec
from vidtransfer.models.transfer import ObjectRecord, ObjectSource
from vidtransfer.utils.logger import get_logger

logger: logging.Logger = get_logger(__name__)


@dataclass(frozen=True)
class DownloadSource:
    """Where the parts of one download are read from."""
    name: str
    url: Optional[str] = None


@runtime_checkable
class PartTransport(Protocol):
    """Moves single parts between a client and one backend."""

    strategy: str

    async def open_session(
        self,
        target_name: str,
        total_parts: int,
        total_size: Optional[int] = None,
        content_type: Optional[str] = None
    ) -> str:
        """Open an upload session and return its id."""
        ...

    async def upload_part(self, session_id: str, index: int, payload: bytes) -> PartResult:
        """Deliver one part into the session."""
        ...

    async def finalize(self, session_id: str) -> ObjectRecord:
        """Reassemble the session's parts into the finished object."""
        ...

    async def abort(self, session_id: str) -> bool:
        """Discard the session and anything it stored."""
        ...

    async def probe_size(self, name: str) -> int:
        """Size of a stored object."""
        ...

    async def open_download(self, name: str) -> DownloadSource:
        """Resolve the source shared by every part of one download."""
        ...

    async def download_part(self, source: DownloadSource, part: PartSpec) -> bytes:
        """Read exactly ``part.length`` bytes at ``part.offset``."""
        ...


def _check_length(name: str, part: PartSpec, data: bytes) -> bytes:
    if len(data) != part.length:
        raise RangeUnsatisfiableException(
            name, part.offset, part.end,
            actual_size=len(data)
        )
    return data


class ProxiedPartTransport:
    """
    Sends part bytes through the coordinating server, which stages them on disk.

    Args:
        gateway: ``TransferService`` in-process or ``TransferApiClient`` over HTTP.
    """

    strategy = "proxied"

    def __init__(self, gateway: Any):
        self.gateway = gateway

    async def open_session(
        self,
        target_name: str,
        total_parts: int,
        total_size: Optional[int] = None,
        content_type: Optional[str] = None
    ) -> str:
        return await self.gateway.initiate_session(target_name, total_parts, total_size, content_type)

    async def upload_part(self, session_id: str, index: int, payload: bytes) -> PartResult:
        return await self.gateway.submit_part(session_id, index, payload)

    async def finalize(self, session_id: str) -> ObjectRecord:
        return await self.gateway.finalize_session(session_id)

    async def abort(self, session_id: str) -> bool:
        return await self.gateway.abort_session(session_id)

    async def probe_size(self, name: str) -> int:
        return await self.gateway.object_size(name, ObjectSource.LOCAL)

    async def open_download(self, name: str) -> DownloadSource:
        return DownloadSource(name)

    async def download_part(self, source: DownloadSource, part: PartSpec) -> bytes:
        if part.length == 0:
            return b""
        data = await self.gateway.read_range(source.name, part.offset, part.end)
        return _check_length(source.name, part, data)


class DirectPartTransport:
    """
    Moves part bytes straight to and from the object store through signed URLs.

    The gateway only issues URLs and records the ETags of uploaded parts.

    Args:
        gateway: ``TransferService`` in-process or ``TransferApiClient`` over HTTP.
        url_client: Client performing the signed PUT and ranged GET requests.
    """

    strategy = "direct"

    def __init__(self, gateway: Any, url_client: SignedUrlClient):
        self.gateway = gateway
        self.url_client = url_client

    async def open_session(
        self,
        target_name: str,
        total_parts: int,
        total_size: Optional[int] = None,
        content_type: Optional[str] = None
    ) -> str:
        result = await self.gateway.initiate_direct_session(target_name, total_parts, total_size, content_type)
        return result["session_id"]

    async def upload_part(self, session_id: str, index: int, payload: bytes) -> PartResult:
        url = await self.gateway.presign_part_url(session_id, index)
        etag = await self.url_client.put(url, payload)
        await self.gateway.record_part_token(session_id, index, etag)
        return PartResult(index=index, size=len(payload), etag=etag)

    async def finalize(self, session_id: str) -> ObjectRecord:
        return await self.gateway.finalize_session(session_id)

    async def abort(self, session_id: str) -> bool:
        return await self.gateway.abort_session(session_id)

    async def probe_size(self, name: str) -> int:
        return await self.gateway.object_size(name, ObjectSource.MINIO)

    async def open_download(self, name: str) -> DownloadSource:
        # Minted per download and shared by its parts
        return DownloadSource(name, await self.gateway.presign_download_url(name))

    async def download_part(self, source: DownloadSource, part: PartSpec) -> bytes:
        if part.length == 0:
            return b""
        data = await self.url_client.get_range(source.url, part.offset, part.end)
        return _check_length(source.name, part, data)
