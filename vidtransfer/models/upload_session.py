"""Upload session model."""
import uuid
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Dict, List, Optional, Set

from pydantic import BaseModel, Field, model_validator


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_session_id() -> str:
    """Opaque, collision-resistant session identifier."""
    return uuid.uuid4().hex


class TransferStrategy(str, Enum):
    """Where part bytes flow during an upload."""
    PROXIED = "proxied"
    DIRECT = "direct"


class UploadSession(BaseModel):
    """In-flight chunked upload session."""
    session_id: str = Field(default_factory=new_session_id, description="Upload session ID")
    target_name: str = Field(..., min_length=1, description="Logical name of the finished object")
    expected_part_count: int = Field(..., ge=1, description="Total number of parts")
    received_parts: Set[int] = Field(default_factory=set, description="Received part indices")
    part_tokens: Dict[int, str] = Field(default_factory=dict, description="Backend completion token per part")
    strategy: TransferStrategy = Field(default=TransferStrategy.PROXIED, description="Transfer strategy")
    upload_id: Optional[str] = Field(None, description="Backend multipart upload ID")
    total_size: Optional[int] = Field(None, ge=0, description="Expected object size in bytes")
    content_type: str = Field("application/octet-stream", description="Content type of the finished object")
    created_at: datetime = Field(default_factory=_utcnow)
    expires_at: Optional[datetime] = Field(None, description="Session expiration time")

    model_config = {
        "json_schema_extra": {
            "example": {
                "session_id": "3f2c1d7e9a0b4c5d8e6f7a8b9c0d1e2f",
                "target_name": "holiday.mp4",
                "expected_part_count": 3,
                "received_parts": [0, 2],
                "part_tokens": {},
                "strategy": "proxied",
                "upload_id": None,
                "total_size": 12582912,
                "content_type": "video/mp4",
                "created_at": "2024-01-01T00:00:00Z",
                "expires_at": "2024-01-01T01:00:00Z"
            }
        }
    }

    @model_validator(mode="after")
    def validate_received_parts(self):
        """Received indices must lie within the expected range."""
        for index in self.received_parts:
            if index < 0 or index >= self.expected_part_count:
                raise ValueError(
                    f"Part index {index} outside [0, {self.expected_part_count})"
                )
        return self

    @classmethod
    def create(
        cls,
        target_name: str,
        expected_part_count: int,
        ttl_seconds: Optional[int] = None,
        **kwargs
    ) -> "UploadSession":
        """Build a new session, deriving ``expires_at`` from a TTL."""
        created_at = _utcnow()
        expires_at = created_at + timedelta(seconds=ttl_seconds) if ttl_seconds else None
        return cls(
            target_name=target_name,
            expected_part_count=expected_part_count,
            created_at=created_at,
            expires_at=expires_at,
            **kwargs
        )

    @property
    def is_complete(self) -> bool:
        return len(self.received_parts) == self.expected_part_count

    @property
    def missing_parts(self) -> List[int]:
        return [i for i in range(self.expected_part_count) if i not in self.received_parts]

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """Whether the session outlived its TTL."""
        if self.expires_at is None:
            return False
        return (now or _utcnow()) >= self.expires_at

    def touch(self, ttl_seconds: Optional[int], now: Optional[datetime] = None) -> None:
        """Push ``expires_at`` forward after activity on the session."""
        if ttl_seconds:
            self.expires_at = (now or _utcnow()) + timedelta(seconds=ttl_seconds)
