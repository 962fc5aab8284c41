"""Upload and download request/response schemas."""
from typing import List, Optional

from pydantic import BaseModel, Field

from vidtransfer.models.transfer import DeleteReport, DeleteStatus, ObjectRecord, ObjectSource


class ChunkInitRequest(BaseModel):
    """Schema for opening a chunked upload session."""
    filename: str = Field(..., min_length=1, description="Name of the finished object")
    total_chunks: int = Field(..., ge=1, description="Total number of chunks")
    total_size: Optional[int] = Field(None, ge=0, description="Total file size in bytes")
    content_type: Optional[str] = Field(None, description="Content type of the finished object")


class ChunkInitResponse(BaseModel):
    """Schema for a newly opened proxied session."""
    upload_id: str = Field(..., description="Upload session ID")
    chunk_size: int = Field(..., description="Recommended chunk size in bytes")
    total_chunks: int = Field(..., description="Total number of chunks")


class ChunkUploadResponse(BaseModel):
    """Schema for an accepted chunk."""
    upload_id: str = Field(..., description="Upload session ID")
    chunk_index: int = Field(..., description="Index of the stored chunk")
    size: int = Field(..., description="Chunk size in bytes")


class ChunkCompleteRequest(BaseModel):
    """Schema for completing a proxied session."""
    upload_id: str = Field(..., description="Upload session ID")


class MultipartInitResponse(BaseModel):
    """Schema for a newly opened direct session."""
    session_id: str = Field(..., description="Upload session ID")
    upload_id: str = Field(..., description="Backend multipart upload ID")
    chunk_size: int = Field(..., description="Recommended chunk size in bytes")
    total_chunks: int = Field(..., description="Total number of chunks")


class PartUrlResponse(BaseModel):
    """Schema for a signed part upload URL."""
    url: str = Field(..., description="Signed PUT URL")
    index: int = Field(..., description="0-based part index")
    part_number: int = Field(..., description="1-based multipart part number")
    expires_in: int = Field(..., description="URL lifetime in seconds")


class PartTokenRequest(BaseModel):
    """Schema for reporting a directly uploaded part."""
    etag: str = Field(..., min_length=1, description="ETag returned by the object store")


class PartAckResponse(BaseModel):
    """Schema for an acknowledged part."""
    session_id: str = Field(..., description="Upload session ID")
    index: int = Field(..., description="0-based part index")


class PresignedUrlResponse(BaseModel):
    """Schema for a signed object URL."""
    url: str = Field(..., description="Signed URL")
    filename: str = Field(..., description="Object name")
    expires_in: int = Field(..., description="URL lifetime in seconds")


class SizeResponse(BaseModel):
    """Schema for an object size probe."""
    size: int = Field(..., ge=0, description="Object size in bytes")


class AbortResponse(BaseModel):
    """Schema for an aborted session."""
    session_id: str = Field(..., description="Upload session ID")
    aborted: bool = Field(..., description="False if the session was already gone")


class ObjectResponse(BaseModel):
    """Schema for a stored object."""
    name: str = Field(..., description="Object name")
    size: int = Field(..., ge=0, description="Object size in bytes")
    source: ObjectSource = Field(..., description="Backend holding the object")

    @classmethod
    def from_record(cls, record: ObjectRecord) -> "ObjectResponse":
        return cls(name=record.name, size=record.size, source=record.source)


class DeleteResultResponse(BaseModel):
    """Schema for one backend's delete outcome."""
    source: ObjectSource
    status: DeleteStatus
    error: Optional[str] = None


class DeleteReportResponse(BaseModel):
    """Schema for a dual-backend delete."""
    name: str = Field(..., description="Object name")
    deleted: bool = Field(..., description="True if any backend removed the object")
    results: List[DeleteResultResponse] = Field(default_factory=list)

    @classmethod
    def from_report(cls, report: DeleteReport) -> "DeleteReportResponse":
        return cls(
            name=report.name,
            deleted=report.deleted,
            results=[
                DeleteResultResponse(source=r.source, status=r.status, error=r.error)
                for r in report.results
            ]
        )
