"""Domain models for sessions, parts and transfers."""
from vidtransfer.models.part import Part, PartResult, PartSpec, PartToken
from vidtransfer.models.transfer import (
    DeleteReport,
    DeleteResult,
    DeleteStatus,
    ObjectRecord,
    ObjectSource,
    TransferJob,
    TransferOutcome,
    TransferProgress,
)
from vidtransfer.models.upload_session import TransferStrategy, UploadSession

__all__ = [
    # Session models
    "UploadSession",
    "TransferStrategy",
    # Part models
    "PartSpec",
    "Part",
    "PartResult",
    "PartToken",
    # Transfer models
    "TransferJob",
    "TransferProgress",
    "TransferOutcome",
    "ObjectRecord",
    "ObjectSource",
    "DeleteReport",
    "DeleteResult",
    "DeleteStatus",
]
