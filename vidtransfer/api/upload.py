"""Proxied ("traditional") upload and download endpoints."""
import logging
from typing import AsyncIterator, Optional, Tuple

from fastapi import APIRouter, Depends, File, Form, Header, Query, UploadFile, status
from fastapi.responses import Response, StreamingResponse

from vidtransfer.api.dependencies import get_settings, get_transfer_service
from vidtransfer.core.config import Settings
from vidtransfer.core.exceptions import InvalidArgumentException, RangeUnsatisfiableException
from vidtransfer.schemas.upload import (
    AbortResponse,
    ChunkCompleteRequest,
    ChunkInitRequest,
    ChunkInitResponse,
    ChunkUploadResponse,
    ObjectResponse,
    SizeResponse,
)
from vidtransfer.services.local_store import STREAM_CHUNK_SIZE
from vidtransfer.services.transfer_service import TransferService
from vidtransfer.utils.file_utils import guess_content_type
from vidtransfer.utils.logger import get_logger

logger: logging.Logger = get_logger(__name__)

router = APIRouter(prefix="/traditional")


def parse_range_header(header: str, name: str, size: int) -> Tuple[int, int]:
    """
    Parse a single ``bytes=`` range against an object size.

    Supports ``start-end``, open-ended ``start-`` and suffix ``-length`` forms.

    Returns:
        Tuple of inclusive (start, end).
    """
    unit, _, byte_range = header.partition("=")
    if unit.strip().lower() != "bytes" or not byte_range or "," in byte_range:
        raise InvalidArgumentException(f"Unsupported Range header: {header}", field="range")

    start_text, _, end_text = byte_range.strip().partition("-")
    try:
        if not start_text:
            suffix = int(end_text)
            start, end = max(size - suffix, 0), size - 1
        else:
            start = int(start_text)
            end = int(end_text) if end_text else size - 1
    except ValueError:
        raise InvalidArgumentException(f"Malformed Range header: {header}", field="range")

    end = min(end, size - 1)
    if start < 0 or start >= size or end < start:
        raise RangeUnsatisfiableException(name, start, end, actual_size=size)
    return start, end


async def _iter_upload(file: UploadFile) -> AsyncIterator[bytes]:
    while True:
        data = await file.read(STREAM_CHUNK_SIZE)
        if not data:
            break
        yield data


@router.post("/upload", response_model=ObjectResponse, status_code=status.HTTP_201_CREATED)
async def upload_file(
    file: UploadFile = File(...),
    filename: Optional[str] = Form(None),
    service: TransferService = Depends(get_transfer_service),
    settings: Settings = Depends(get_settings)
):
    """
    Upload a whole file in one request.

    Args:
        file: Uploaded file
        filename: Optional object name; defaults to the uploaded file's name

    Returns:
        ObjectResponse: The stored object
    """
    if file.size is not None and file.size > settings.max_upload_size:
        raise InvalidArgumentException(
            f"File too large. Maximum size is {settings.max_upload_size} bytes",
            field="file"
        )

    target_name = filename or file.filename
    record = await service.upload_single(target_name, _iter_upload(file))
    logger.info(f"Single-shot upload stored {record.name} ({record.size} bytes)")
    return ObjectResponse.from_record(record)


@router.get("/video/{filename}")
async def stream_video(
    filename: str,
    range_header: Optional[str] = Header(None, alias="range"),
    service: TransferService = Depends(get_transfer_service)
):
    """
    Stream a stored video, honoring HTTP Range requests.

    Returns 206 with ``Content-Range`` for ranged requests and 200 otherwise.
    """
    record = await service.local_store.stat_object(filename)
    size = record.size
    headers = {"Accept-Ranges": "bytes"}
    media_type = guess_content_type(filename)

    if range_header and size > 0:
        start, end = parse_range_header(range_header, filename, size)
        headers["Content-Range"] = f"bytes {start}-{end}/{size}"
        headers["Content-Length"] = str(end - start + 1)
        return StreamingResponse(
            service.local_store.iter_range(filename, start, end),
            status_code=status.HTTP_206_PARTIAL_CONTENT,
            media_type=media_type,
            headers=headers
        )

    headers["Content-Length"] = str(size)
    if size == 0:
        return Response(content=b"", media_type=media_type, headers=headers)
    return StreamingResponse(
        service.local_store.iter_range(filename, 0, size - 1),
        media_type=media_type,
        headers=headers
    )


@router.post("/chunk/init", response_model=ChunkInitResponse)
async def init_chunked_upload(
    request: ChunkInitRequest,
    service: TransferService = Depends(get_transfer_service),
    settings: Settings = Depends(get_settings)
):
    """Open a proxied chunked upload session."""
    if request.total_size is not None and request.total_size > settings.max_upload_size:
        raise InvalidArgumentException(
            f"File too large. Maximum size is {settings.max_upload_size} bytes",
            field="total_size"
        )

    upload_id = await service.initiate_session(
        target_name=request.filename,
        total_parts=request.total_chunks,
        total_size=request.total_size,
        content_type=request.content_type
    )
    return ChunkInitResponse(
        upload_id=upload_id,
        chunk_size=settings.chunk_size,
        total_chunks=request.total_chunks
    )


@router.post("/chunk/upload", response_model=ChunkUploadResponse)
async def upload_chunk(
    upload_id: str = Form(...),
    chunk_index: int = Form(...),
    chunk: UploadFile = File(...),
    service: TransferService = Depends(get_transfer_service)
):
    """
    Upload one chunk of a proxied session.

    Args:
        upload_id: Upload session ID
        chunk_index: 0-based chunk index
        chunk: Chunk bytes

    Returns:
        ChunkUploadResponse: Stored chunk information
    """
    payload = await chunk.read()
    result = await service.submit_part(upload_id, chunk_index, payload)
    return ChunkUploadResponse(upload_id=upload_id, chunk_index=result.index, size=result.size)


@router.post("/chunk/complete", response_model=ObjectResponse)
async def complete_chunked_upload(
    request: ChunkCompleteRequest,
    service: TransferService = Depends(get_transfer_service)
):
    """Merge all chunks of a proxied session into permanent storage."""
    record = await service.finalize_session(request.upload_id)
    return ObjectResponse.from_record(record)


@router.delete("/chunk/{upload_id}", response_model=AbortResponse)
async def abort_chunked_upload(
    upload_id: str,
    service: TransferService = Depends(get_transfer_service)
):
    """Abort a proxied session and discard its staged chunks."""
    aborted = await service.abort_session(upload_id)
    return AbortResponse(session_id=upload_id, aborted=aborted)


@router.get("/chunk/download/{filename}")
async def download_chunk(
    filename: str,
    start: int = Query(0, ge=0),
    end: Optional[int] = Query(None, ge=0),
    service: TransferService = Depends(get_transfer_service)
):
    """
    Byte-range read of a locally stored object.

    Without ``end`` the response is the object size, which clients use to plan parts.
    """
    if end is None:
        return SizeResponse(size=await service.object_size(filename))

    data = await service.read_range(filename, start, end)
    return Response(
        content=data,
        media_type="application/octet-stream",
        headers={"Content-Range": f"bytes {start}-{start + len(data) - 1}"}
    )
