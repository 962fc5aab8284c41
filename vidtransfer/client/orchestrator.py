"""Client-side orchestration of chunked uploads and downloads."""
import logging
import os
from pathlib import Path
from typing import Awaitable, Callable, List, Optional, Tuple, Union

import aiofiles

from vidtransfer.client.transport import PartTransport
from vidtransfer.core.exceptions import (
    InvalidArgumentException,
    StorageException,
    TransferFailedException,
)
from vidtransfer.models.part import Part, PartResult, PartSpec
from vidtransfer.models.transfer import (
    DEFAULT_CHUNK_SIZE,
    DEFAULT_CONCURRENCY_LIMIT,
    TransferJob,
    TransferOutcome,
    TransferProgress,
)
from vidtransfer.services.batcher import ParallelBatcher
from vidtransfer.services.reassembler import merge_parts
from vidtransfer.utils.file_utils import guess_content_type
from vidtransfer.utils.logger import get_logger

logger: logging.Logger = get_logger(__name__)

Source = Union[bytes, bytearray, str, Path]
ProgressCallback = Callable[[TransferProgress], Optional[Awaitable[None]]]


def plan_parts(total_size: int, chunk_size: Optional[int]) -> List[PartSpec]:
    """
    Split an object into consecutive parts.

    Every part except the last is exactly ``chunk_size`` bytes. A
    ``chunk_size`` of ``None`` (or one at least the object size) yields a
    single part, and an empty object yields one empty part.

    Args:
        total_size: Object size in bytes.
        chunk_size: Part size in bytes, or None for single-shot.

    Returns:
        List[PartSpec]: Parts in index order.
    """
    if total_size < 0:
        raise InvalidArgumentException(f"total_size must not be negative, got {total_size}", field="total_size")
    if chunk_size is not None and chunk_size <= 0:
        raise InvalidArgumentException(f"chunk_size must be positive, got {chunk_size}", field="chunk_size")

    if chunk_size is None or chunk_size >= total_size:
        return [PartSpec(index=0, offset=0, length=total_size)]

    return [
        PartSpec(index=index, offset=offset, length=min(chunk_size, total_size - offset))
        for index, offset in enumerate(range(0, total_size, chunk_size))
    ]


class TransferOrchestrator:
    """
    Drives whole-object transfers over a part transport.

    Parts move in windows of ``concurrency_limit``. Any failed part aborts
    the upload session, so no partial object is left in either backend.

    Args:
        transport: Proxied or direct part transport.
        chunk_size: Part size in bytes; None transfers in a single part.
        concurrency_limit: Maximum parts in flight.
        progress_callback: Called with a ``TransferProgress`` after each part.
    """

    def __init__(
        self,
        transport: PartTransport,
        chunk_size: Optional[int] = DEFAULT_CHUNK_SIZE,
        concurrency_limit: int = DEFAULT_CONCURRENCY_LIMIT,
        progress_callback: Optional[ProgressCallback] = None
    ):
        if chunk_size is not None and chunk_size <= 0:
            raise InvalidArgumentException(f"chunk_size must be positive, got {chunk_size}", field="chunk_size")
        self.transport = transport
        self.chunk_size = chunk_size
        self.concurrency_limit = concurrency_limit
        self.progress_callback = progress_callback
        self.batcher = ParallelBatcher(concurrency_limit)

    def _new_job(self, target_name: str, total_size: int, parts: List[PartSpec]) -> TransferJob:
        return TransferJob(
            target_name=target_name,
            total_size=total_size,
            total_parts=len(parts),
            chunk_size=self.chunk_size or total_size,
            concurrency_limit=self.concurrency_limit
        )

    def _progress_hook(self, job: TransferJob, size_of: Callable[[object], int]):
        async def on_complete(index: int, result: object) -> None:
            job.record_part(size_of(result))
            if self.progress_callback is not None:
                maybe_awaitable = self.progress_callback(job.progress())
                if maybe_awaitable is not None:
                    await maybe_awaitable
        return on_complete

    @staticmethod
    def _source_size(source: Source) -> int:
        if isinstance(source, (bytes, bytearray)):
            return len(source)
        return os.path.getsize(source)

    @staticmethod
    async def _read_part(source: Source, part: PartSpec) -> bytes:
        if isinstance(source, (bytes, bytearray)):
            return bytes(source[part.offset:part.offset + part.length])
        async with aiofiles.open(source, "rb") as f:
            await f.seek(part.offset)
            return await f.read(part.length)

    async def _abort(self, session_id: str, target_name: str) -> None:
        try:
            await self.transport.abort(session_id)
        except Exception as e:
            logger.error(f"Failed to abort session {session_id} for {target_name}: {e}")

    async def upload_file(
        self,
        source: Source,
        target_name: str,
        content_type: Optional[str] = None
    ) -> TransferOutcome:
        """
        Upload bytes or a file as ``target_name``.

        Args:
            source: Object bytes or a path; file parts are read as their window starts.
            target_name: Name of the finished object.
            content_type: Content type; guessed from the name when omitted.

        Returns:
            TransferOutcome: Duration, size, part count and throughput.

        Raises:
            TransferFailedException: a part or the final merge failed; the session was aborted
        """
        total_size = self._source_size(source)
        parts = plan_parts(total_size, self.chunk_size)
        job = self._new_job(target_name, total_size, parts)
        content_type = content_type or guess_content_type(target_name)

        logger.info(
            f"Upload started: {target_name} ({total_size} bytes, {len(parts)} parts, "
            f"{self.transport.strategy})"
        )
        session_id = await self.transport.open_session(target_name, len(parts), total_size, content_type)

        def make_operation(part: PartSpec):
            async def operation() -> PartResult:
                try:
                    payload = await self._read_part(source, part)
                    return await self.transport.upload_part(session_id, part.index, payload)
                except Exception as e:
                    raise TransferFailedException(target_name, e, index=part.index) from e
            return operation

        try:
            await self.batcher.run(
                [make_operation(part) for part in parts],
                on_complete=self._progress_hook(job, lambda result: result.size)
            )
            await self.transport.finalize(session_id)
        except TransferFailedException as e:
            logger.error(f"Upload of {target_name} failed: {e.message}")
            await self._abort(session_id, target_name)
            raise
        except Exception as e:
            logger.error(f"Finalizing {target_name} failed: {e}")
            await self._abort(session_id, target_name)
            raise TransferFailedException(target_name, e) from e

        outcome = TransferOutcome.from_job(job)
        logger.info(
            f"Upload completed: {target_name} - {outcome.bytes_transferred} bytes in "
            f"{outcome.duration:.2f}s ({outcome.speed_mbps:.2f} MB/s)"
        )
        return outcome

    async def _download(self, target_name: str) -> Tuple[bytes, TransferOutcome]:
        total_size = await self.transport.probe_size(target_name)
        parts = plan_parts(total_size, self.chunk_size)
        job = self._new_job(target_name, total_size, parts)
        source = await self.transport.open_download(target_name)

        logger.info(
            f"Download started: {target_name} ({total_size} bytes, {len(parts)} parts, "
            f"{self.transport.strategy})"
        )

        def make_operation(part: PartSpec):
            async def operation() -> Part:
                try:
                    payload = await self.transport.download_part(source, part)
                except Exception as e:
                    raise TransferFailedException(target_name, e, index=part.index) from e
                return Part(index=part.index, payload=payload)
            return operation

        results = await self.batcher.run(
            [make_operation(part) for part in parts],
            on_complete=self._progress_hook(job, lambda result: result.size)
        )
        data = merge_parts(results, len(parts), target_name)

        if len(data) != total_size:
            raise TransferFailedException(
                target_name,
                StorageException(
                    f"Downloaded {len(data)} bytes, expected {total_size}",
                    operation="download"
                )
            )

        outcome = TransferOutcome.from_job(job)
        logger.info(
            f"Download completed: {target_name} - {outcome.bytes_transferred} bytes in "
            f"{outcome.duration:.2f}s ({outcome.speed_mbps:.2f} MB/s)"
        )
        return data, outcome

    async def download_file(self, target_name: str) -> bytes:
        """
        Download an object in parallel ranged parts.

        Raises:
            TransferFailedException: any part could not be read in full
        """
        data, _ = await self._download(target_name)
        return data

    async def download_to_path(self, target_name: str, path: Union[str, Path]) -> TransferOutcome:
        """Download an object and write it to ``path``."""
        data, outcome = await self._download(target_name)
        async with aiofiles.open(path, "wb") as out:
            await out.write(data)
        return outcome
