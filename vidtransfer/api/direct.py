"""Direct ("optimized") transfer endpoints: signed URLs and native multipart uploads."""
import logging

from fastapi import APIRouter, Depends, Query

from vidtransfer.api.dependencies import get_settings, get_transfer_service
from vidtransfer.core.config import Settings
from vidtransfer.core.exceptions import InvalidArgumentException
from vidtransfer.models.transfer import ObjectSource
from vidtransfer.schemas.upload import (
    AbortResponse,
    ChunkInitRequest,
    MultipartInitResponse,
    ObjectResponse,
    PartAckResponse,
    PartTokenRequest,
    PartUrlResponse,
    PresignedUrlResponse,
    SizeResponse,
)
from vidtransfer.services.transfer_service import TransferService
from vidtransfer.utils.logger import get_logger

logger: logging.Logger = get_logger(__name__)

router = APIRouter(prefix="/optimized")


@router.get("/get-upload-url", response_model=PresignedUrlResponse)
async def get_upload_url(
    filename: str = Query(..., min_length=1),
    service: TransferService = Depends(get_transfer_service),
    settings: Settings = Depends(get_settings)
):
    """Signed PUT URL for uploading a whole file straight to the object store."""
    url = await service.presign_upload_url(filename)
    return PresignedUrlResponse(url=url, filename=filename, expires_in=settings.presign_expiry_seconds)


@router.get("/get-download-url/{filename}", response_model=PresignedUrlResponse)
async def get_download_url(
    filename: str,
    service: TransferService = Depends(get_transfer_service),
    settings: Settings = Depends(get_settings)
):
    """Signed GET URL for downloading straight from the object store."""
    url = await service.presign_download_url(filename)
    return PresignedUrlResponse(url=url, filename=filename, expires_in=settings.presign_expiry_seconds)


@router.get("/size/{filename}", response_model=SizeResponse)
async def get_object_size(
    filename: str,
    service: TransferService = Depends(get_transfer_service)
):
    """Size of an object in the object store."""
    return SizeResponse(size=await service.object_size(filename, ObjectSource.MINIO))


@router.post("/multipart/init", response_model=MultipartInitResponse)
async def init_multipart_upload(
    request: ChunkInitRequest,
    service: TransferService = Depends(get_transfer_service),
    settings: Settings = Depends(get_settings)
):
    """Open a direct chunked upload backed by a native multipart upload."""
    if request.total_size is not None and request.total_size > settings.max_upload_size:
        raise InvalidArgumentException(
            f"File too large. Maximum size is {settings.max_upload_size} bytes",
            field="total_size"
        )

    result = await service.initiate_direct_session(
        target_name=request.filename,
        total_parts=request.total_chunks,
        total_size=request.total_size,
        content_type=request.content_type
    )
    return MultipartInitResponse(
        session_id=result["session_id"],
        upload_id=result["upload_id"],
        chunk_size=settings.chunk_size,
        total_chunks=request.total_chunks
    )


@router.get("/multipart/{session_id}/part-url/{index}", response_model=PartUrlResponse)
async def get_part_url(
    session_id: str,
    index: int,
    service: TransferService = Depends(get_transfer_service),
    settings: Settings = Depends(get_settings)
):
    """Signed PUT URL for one part of a direct session."""
    url = await service.presign_part_url(session_id, index)
    return PartUrlResponse(
        url=url,
        index=index,
        part_number=index + 1,
        expires_in=settings.presign_expiry_seconds
    )


@router.post("/multipart/{session_id}/part/{index}", response_model=PartAckResponse)
async def record_part(
    session_id: str,
    index: int,
    request: PartTokenRequest,
    service: TransferService = Depends(get_transfer_service)
):
    """Record the ETag of a part the client uploaded through its signed URL."""
    await service.record_part_token(session_id, index, request.etag)
    return PartAckResponse(session_id=session_id, index=index)


@router.post("/multipart/{session_id}/complete", response_model=ObjectResponse)
async def complete_multipart_upload(
    session_id: str,
    service: TransferService = Depends(get_transfer_service)
):
    """Commit every recorded part into the final object."""
    record = await service.finalize_session(session_id)
    return ObjectResponse.from_record(record)


@router.delete("/multipart/{session_id}", response_model=AbortResponse)
async def abort_multipart_upload(
    session_id: str,
    service: TransferService = Depends(get_transfer_service)
):
    """Abort a direct session and its multipart upload."""
    aborted = await service.abort_session(session_id)
    return AbortResponse(session_id=session_id, aborted=aborted)
