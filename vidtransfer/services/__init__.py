"""Service modules for storage, sessions and transfer coordination."""
from vidtransfer.services.batcher import ParallelBatcher
from vidtransfer.services.local_store import LocalObjectStore, PartStaging
from vidtransfer.services.object_store import MinioObjectStore, ObjectStore
from vidtransfer.services.reassembler import assemble_local, complete_multipart, merge_parts
from vidtransfer.services.session_store import ChunkSessionStore
from vidtransfer.services.transfer_service import TransferService

__all__ = [
    "ObjectStore",
    "MinioObjectStore",
    "LocalObjectStore",
    "PartStaging",
    "ChunkSessionStore",
    "ParallelBatcher",
    "merge_parts",
    "assemble_local",
    "complete_multipart",
    "TransferService",
]
