"""Part value types shared by the planner, transports and reassembler."""
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class PartSpec:
    """Byte range of one part within an object."""
    index: int
    offset: int
    length: int

    @property
    def end(self) -> int:
        """Inclusive end offset, as used by HTTP Range headers."""
        return self.offset + self.length - 1


@dataclass(frozen=True)
class Part:
    """Part payload moving between client and backend."""
    index: int
    payload: bytes
    etag: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.payload)


@dataclass(frozen=True)
class PartResult:
    """Outcome of one successful part upload."""
    index: int
    size: int
    etag: Optional[str] = None


@dataclass(frozen=True)
class PartToken:
    """Multipart completion token for one part."""
    index: int
    etag: str

    @property
    def part_number(self) -> int:
        """S3 part numbers are 1-based."""
        return self.index + 1
