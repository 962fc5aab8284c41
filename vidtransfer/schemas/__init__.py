"""Pydantic schemas for API requests and responses."""
from vidtransfer.schemas.upload import (
    AbortResponse,
    ChunkCompleteRequest,
    ChunkInitRequest,
    ChunkInitResponse,
    ChunkUploadResponse,
    DeleteReportResponse,
    DeleteResultResponse,
    MultipartInitResponse,
    ObjectResponse,
    PartAckResponse,
    PartTokenRequest,
    PartUrlResponse,
    PresignedUrlResponse,
    SizeResponse,
)

__all__ = [
    # Proxied upload schemas
    "ChunkInitRequest",
    "ChunkInitResponse",
    "ChunkUploadResponse",
    "ChunkCompleteRequest",
    # Direct upload schemas
    "MultipartInitResponse",
    "PartUrlResponse",
    "PartTokenRequest",
    "PartAckResponse",
    "PresignedUrlResponse",
    # Shared schemas
    "AbortResponse",
    "SizeResponse",
    "ObjectResponse",
    "DeleteReportResponse",
    "DeleteResultResponse",
]
