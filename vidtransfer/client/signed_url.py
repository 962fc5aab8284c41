"""HTTP client for moving part bytes through signed URLs."""
import logging
from typing import Optional

import aiohttp

from vidtransfer.core.exceptions import RangeUnsatisfiableException, StorageException
from vidtransfer.utils.logger import get_logger

logger: logging.Logger = get_logger(__name__)


class SignedUrlClient:
    """
    Transfers bytes straight to and from the object store using signed URLs.

    Use as an async context manager, or call ``close()`` when done.
    """

    def __init__(
        self,
        session: Optional[aiohttp.ClientSession] = None,
        timeout: float = 300.0,
        connection_pool_size: int = 100
    ):
        """
        Args:
            session: Shared aiohttp session; when omitted one is created lazily and owned.
            timeout: Total timeout per request in seconds.
            connection_pool_size: Connection pool size for an owned session.
        """
        self._session = session
        self._owns_session = session is None
        self.timeout = timeout
        self.connection_pool_size = connection_pool_size

    async def __aenter__(self):
        self._get_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            connector = aiohttp.TCPConnector(
                limit=self.connection_pool_size,
                keepalive_timeout=30
            )
            self._session = aiohttp.ClientSession(
                connector=connector,
                timeout=aiohttp.ClientTimeout(total=self.timeout, connect=60)
            )
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()

    async def put(self, url: str, payload: bytes, content_type: Optional[str] = None) -> str:
        """
        PUT a payload to a signed URL.

        Returns:
            str: The ETag reported by the store, without quotes.
        """
        headers = {"Content-Length": str(len(payload))}
        if content_type:
            headers["Content-Type"] = content_type

        async with self._get_session().put(url, data=payload, headers=headers) as response:
            if response.status >= 300:
                body = await response.text()
                raise StorageException(
                    f"Signed PUT failed with HTTP {response.status}",
                    operation="signed_put",
                    details={"status": response.status, "body": body[:500]}
                )
            etag = response.headers.get("ETag", "").strip('"')

        if not etag:
            raise StorageException("Signed PUT response carried no ETag", operation="signed_put")
        logger.debug(f"Signed PUT stored {len(payload)} bytes (etag {etag})")
        return etag

    async def get_range(self, url: str, start: int, end: int) -> bytes:
        """
        GET an inclusive byte range from a signed URL.

        Raises:
            RangeUnsatisfiableException: on HTTP 416
        """
        headers = {"Range": f"bytes={start}-{end}"}
        async with self._get_session().get(url, headers=headers) as response:
            if response.status == 416:
                raise RangeUnsatisfiableException(url.split("?", 1)[0], start, end)
            if response.status not in (200, 206):
                body = await response.text()
                raise StorageException(
                    f"Signed GET failed with HTTP {response.status}",
                    operation="signed_get",
                    details={"status": response.status, "body": body[:500]}
                )
            data = await response.read()

        if response.status == 200:
            # Server ignored the Range header and sent the whole object
            data = data[start:end + 1]
        return data
