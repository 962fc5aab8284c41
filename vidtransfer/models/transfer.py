"""Transfer bookkeeping, progress reporting and object listing types."""
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

MIB = 1024 * 1024

DEFAULT_CHUNK_SIZE = 5 * MIB
DEFAULT_CONCURRENCY_LIMIT = 3


class ObjectSource(str, Enum):
    """Backend holding a stored object."""
    LOCAL = "local"
    MINIO = "minio"


class DeleteStatus(str, Enum):
    """Per-backend outcome of a delete."""
    DELETED = "deleted"
    NOT_FOUND = "not_found"
    FAILED = "failed"


def calculate_speed_mbps(transferred_bytes: int, elapsed_seconds: float) -> float:
    """Throughput in MiB/s, zero when no time has elapsed."""
    if elapsed_seconds <= 0:
        return 0.0
    return (transferred_bytes / MIB) / elapsed_seconds


@dataclass
class TransferProgress:
    """Progress metadata reported after each completed part."""
    target_name: str
    completed_parts: int
    total_parts: int
    transferred_bytes: int
    total_bytes: int
    percentage: float
    speed_mbps: float
    eta_seconds: float


@dataclass
class TransferJob:
    """Client-side bookkeeping for one upload or download. Never reused."""
    target_name: str
    total_size: int
    total_parts: int
    chunk_size: int = DEFAULT_CHUNK_SIZE
    concurrency_limit: int = DEFAULT_CONCURRENCY_LIMIT
    completed_parts: int = 0
    transferred_bytes: int = 0
    started_at: float = field(default_factory=time.perf_counter)

    def record_part(self, size: int) -> None:
        """Count one finished part. ``completed_parts`` only grows."""
        self.completed_parts += 1
        self.transferred_bytes += size

    @property
    def elapsed(self) -> float:
        return time.perf_counter() - self.started_at

    def progress(self) -> TransferProgress:
        """Snapshot of the job's progress."""
        elapsed = self.elapsed
        percentage = (
            (self.completed_parts / self.total_parts) * 100 if self.total_parts > 0 else 0.0
        )
        speed_mbps = calculate_speed_mbps(self.transferred_bytes, elapsed)

        if speed_mbps > 0:
            remaining_bytes = max(self.total_size - self.transferred_bytes, 0)
            eta_seconds = remaining_bytes / (speed_mbps * MIB)
        else:
            eta_seconds = 0.0

        return TransferProgress(
            target_name=self.target_name,
            completed_parts=self.completed_parts,
            total_parts=self.total_parts,
            transferred_bytes=self.transferred_bytes,
            total_bytes=self.total_size,
            percentage=percentage,
            speed_mbps=speed_mbps,
            eta_seconds=eta_seconds
        )


@dataclass
class TransferOutcome:
    """Timing and throughput of a finished transfer."""
    target_name: str
    duration: float
    bytes_transferred: int
    part_count: int
    speed_mbps: float

    @classmethod
    def from_job(cls, job: TransferJob) -> "TransferOutcome":
        duration = job.elapsed
        return cls(
            target_name=job.target_name,
            duration=duration,
            bytes_transferred=job.transferred_bytes,
            part_count=job.total_parts,
            speed_mbps=calculate_speed_mbps(job.transferred_bytes, duration)
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "target_name": self.target_name,
            "duration": round(self.duration, 3),
            "bytes_transferred": self.bytes_transferred,
            "part_count": self.part_count,
            "speed_mbps": round(self.speed_mbps, 2)
        }


@dataclass(frozen=True)
class ObjectRecord:
    """Listing entry for a stored object."""
    name: str
    size: int
    source: ObjectSource

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "size": self.size, "source": self.source.value}


@dataclass
class DeleteResult:
    """Outcome of deleting an object from one backend."""
    source: ObjectSource
    status: DeleteStatus
    error: Optional[str] = None


@dataclass
class DeleteReport:
    """Aggregated outcome of deleting an object from every backend."""
    name: str
    results: List[DeleteResult] = field(default_factory=list)

    @property
    def deleted(self) -> bool:
        """True if at least one backend held and removed the object."""
        return any(r.status == DeleteStatus.DELETED for r in self.results)

    @property
    def failed(self) -> List[DeleteResult]:
        return [r for r in self.results if r.status == DeleteStatus.FAILED]
