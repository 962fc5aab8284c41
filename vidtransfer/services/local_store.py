"""Local disk storage: permanent objects and per-session part staging."""
import logging
import os
import uuid
from pathlib import Path
from typing import AsyncIterator, List, Optional, Union

import aiofiles

from vidtransfer.core.exceptions import (
    ObjectNotFoundException,
    RangeUnsatisfiableException,
    StorageException,
)
from vidtransfer.models.transfer import ObjectRecord, ObjectSource
from vidtransfer.utils.file_utils import FileProcessor, validate_object_name
from vidtransfer.utils.logger import get_logger

logger: logging.Logger = get_logger(__name__)

STREAM_CHUNK_SIZE = 1024 * 1024


def hidden_temp_path(directory: Path, name: str) -> Path:
    """Dot-prefixed scratch path next to its final location; listings skip it."""
    return directory / f".{name}.{uuid.uuid4().hex}.tmp"


class LocalObjectStore:
    """Permanent object storage in a local directory (``uploads/permanent``)."""

    def __init__(self, root: Union[str, Path]):
        self.root = FileProcessor.ensure_directory(root)

    def path_for(self, name: str) -> Path:
        validate_object_name(name, field="name")
        return self.root / name

    async def put_object(self, name: str, data: bytes, length: Optional[int] = None,
                         content_type: str = "application/octet-stream") -> int:
        """Write a whole object. Readers never observe a half-written file."""
        if length is not None and length != len(data):
            raise StorageException(
                f"Length mismatch for {name}: declared {length}, got {len(data)}",
                operation="put_object"
            )

        async def _single() -> AsyncIterator[bytes]:
            yield data

        return await self.put_stream(name, _single())

    async def put_stream(self, name: str, chunks: AsyncIterator[bytes]) -> int:
        """
        Stream chunks into a new object.

        Args:
            name: Object name
            chunks: Async iterator of byte chunks

        Returns:
            int: Number of bytes written
        """
        final_path = self.path_for(name)
        temp_path = hidden_temp_path(self.root, name)
        written = 0
        try:
            async with aiofiles.open(temp_path, "wb") as out:
                async for chunk in chunks:
                    await out.write(chunk)
                    written += len(chunk)
            os.replace(temp_path, final_path)
        except BaseException:
            temp_path.unlink(missing_ok=True)
            raise

        logger.info(f"Stored {name} locally ({written} bytes)")
        return written

    async def stat_object(self, name: str) -> ObjectRecord:
        path = self.path_for(name)
        if not path.is_file():
            raise ObjectNotFoundException(name, source=ObjectSource.LOCAL.value)
        return ObjectRecord(name=name, size=path.stat().st_size, source=ObjectSource.LOCAL)

    def resolve_range(self, name: str, size: int, start: int, end: Optional[int]) -> int:
        """
        Clamp an inclusive byte range to the object and return the clamped end.

        Raises:
            RangeUnsatisfiableException: when the range starts past the object end
        """
        if end is None or end >= size:
            end = size - 1
        if start < 0 or start >= size or end < start:
            raise RangeUnsatisfiableException(name, start, end, actual_size=size)
        return end

    async def get_object_range(self, name: str, start: int, end: int) -> bytes:
        record = await self.stat_object(name)
        end = self.resolve_range(name, record.size, start, end)
        async with aiofiles.open(self.path_for(name), "rb") as f:
            await f.seek(start)
            return await f.read(end - start + 1)

    async def iter_range(
        self,
        name: str,
        start: int,
        end: int,
        chunk_size: int = STREAM_CHUNK_SIZE
    ) -> AsyncIterator[bytes]:
        """Yield an already-resolved inclusive range in bounded chunks."""
        remaining = end - start + 1
        async with aiofiles.open(self.path_for(name), "rb") as f:
            await f.seek(start)
            while remaining > 0:
                data = await f.read(min(chunk_size, remaining))
                if not data:
                    break
                remaining -= len(data)
                yield data

    async def delete_object(self, name: str) -> None:
        path = self.path_for(name)
        if not path.is_file():
            raise ObjectNotFoundException(name, source=ObjectSource.LOCAL.value)
        FileProcessor.safe_remove(path)
        logger.info(f"Deleted {name} from local storage")

    async def list_objects(self, prefix: str = "") -> List[ObjectRecord]:
        return [
            ObjectRecord(name=info.path.name, size=info.size, source=ObjectSource.LOCAL)
            for info in FileProcessor.list_files(self.root)
            if info.path.name.startswith(prefix)
        ]


class PartStaging:
    """Per-session part files under ``uploads/chunks/<session_id>/chunk_<index>``."""

    def __init__(self, root: Union[str, Path]):
        self.root = FileProcessor.ensure_directory(root)

    def session_dir(self, session_id: str) -> Path:
        return self.root / session_id

    def part_path(self, session_id: str, index: int) -> Path:
        return self.session_dir(session_id) / f"chunk_{index}"

    async def write_part(self, session_id: str, index: int, payload: bytes) -> int:
        """Write (or overwrite) one part; replacing is atomic so a re-receipt is safe."""
        directory = FileProcessor.ensure_directory(self.session_dir(session_id))
        final_path = self.part_path(session_id, index)
        temp_path = hidden_temp_path(directory, final_path.name)
        try:
            async with aiofiles.open(temp_path, "wb") as out:
                await out.write(payload)
            os.replace(temp_path, final_path)
        except BaseException:
            temp_path.unlink(missing_ok=True)
            raise
        logger.debug(f"Staged part {index} for session {session_id} ({len(payload)} bytes)")
        return len(payload)

    async def iter_part(self, session_id: str, index: int,
                        chunk_size: int = STREAM_CHUNK_SIZE) -> AsyncIterator[bytes]:
        path = self.part_path(session_id, index)
        if not path.is_file():
            raise StorageException(
                f"Staged part {index} missing for session {session_id}",
                operation="read_part",
                details={"session_id": session_id, "index": index}
            )
        async with aiofiles.open(path, "rb") as f:
            while True:
                data = await f.read(chunk_size)
                if not data:
                    break
                yield data

    def discard(self, session_id: str) -> bool:
        """Remove every staged part for a session."""
        removed = FileProcessor.safe_remove(self.session_dir(session_id))
        if removed:
            logger.debug(f"Discarded staged parts for session {session_id}")
        return removed
