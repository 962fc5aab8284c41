"""Object library endpoints spanning both backends."""
from typing import List

from fastapi import APIRouter, Depends

from vidtransfer.api.dependencies import get_transfer_service
from vidtransfer.schemas.upload import DeleteReportResponse, ObjectResponse
from vidtransfer.services.transfer_service import TransferService

router = APIRouter()


@router.get("/videos", response_model=List[ObjectResponse])
async def list_videos(service: TransferService = Depends(get_transfer_service)):
    """List every stored object in MinIO and local storage."""
    records = await service.list_objects()
    return [ObjectResponse.from_record(record) for record in records]


@router.delete("/videos/{filename}", response_model=DeleteReportResponse)
async def delete_video(filename: str, service: TransferService = Depends(get_transfer_service)):
    """Delete an object from both backends and report each outcome."""
    report = await service.delete_object_everywhere(filename)
    return DeleteReportResponse.from_report(report)


@router.get("/health")
async def health_check(service: TransferService = Depends(get_transfer_service)):
    """Liveness of the object store and session table usage."""
    return await service.health()
