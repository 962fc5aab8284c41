"""In-process table of in-flight chunked upload sessions."""
import asyncio
import logging
from datetime import datetime
from typing import Awaitable, Callable, Dict, List, Optional

from vidtransfer.core.exceptions import (
    IndexOutOfRangeException,
    InvalidArgumentException,
    SessionConflictException,
    SessionLimitExceededException,
    SessionNotFoundException,
)
from vidtransfer.models.upload_session import TransferStrategy, UploadSession
from vidtransfer.utils.logger import get_logger

logger: logging.Logger = get_logger(__name__)

ExpiredCallback = Callable[[UploadSession], Awaitable[None]]


class ChunkSessionStore:
    """
    Upload session table shared by concurrent request handlers.

    Every mutation happens under one ``asyncio.Lock``. Callers receive deep
    copies, so a returned session never changes underneath them.

    Args:
        max_sessions: Maximum number of open sessions.
        ttl_seconds: Session lifetime; ``None`` disables expiry.
        sweep_interval: Seconds between background expiry sweeps.
        on_expired: Async callback run for each session removed by the sweeper.
    """

    def __init__(
        self,
        max_sessions: int = 1000,
        ttl_seconds: Optional[int] = 3600,
        sweep_interval: float = 60.0,
        on_expired: Optional[ExpiredCallback] = None
    ):
        if max_sessions < 1:
            raise InvalidArgumentException("max_sessions must be at least 1", field="max_sessions")
        self.max_sessions = max_sessions
        self.ttl_seconds = ttl_seconds
        self.sweep_interval = sweep_interval
        self.on_expired = on_expired

        self._sessions: Dict[str, UploadSession] = {}
        self._by_target: Dict[str, str] = {}
        self._lock = asyncio.Lock()
        self._running = False
        self._sweep_task: Optional[asyncio.Task] = None

    def __len__(self) -> int:
        return len(self._sessions)

    def _require(self, session_id: str) -> UploadSession:
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundException(session_id)
        return session

    async def initiate(
        self,
        target_name: str,
        expected_part_count: int,
        strategy: TransferStrategy = TransferStrategy.PROXIED,
        total_size: Optional[int] = None,
        content_type: str = "application/octet-stream",
        upload_id: Optional[str] = None
    ) -> str:
        """
        Open a new session.

        Args:
            target_name: Logical name of the finished object.
            expected_part_count: Number of parts, fixed for the session's lifetime.
            strategy: Proxied or direct.
            total_size: Expected object size, verified at reassembly when given.
            content_type: Content type of the finished object.
            upload_id: Backend multipart upload id for direct sessions.

        Returns:
            str: The new session id.

        Raises:
            InvalidArgumentException: empty name or non-positive part count
            SessionLimitExceededException: the table is full
            SessionConflictException: another open session targets the same name
        """
        if not target_name:
            raise InvalidArgumentException("target_name must not be empty", field="target_name")
        if expected_part_count <= 0:
            raise InvalidArgumentException(
                f"expected_part_count must be positive, got {expected_part_count}",
                field="expected_part_count"
            )
        if total_size is not None and total_size < 0:
            raise InvalidArgumentException("total_size must not be negative", field="total_size")

        async with self._lock:
            existing = self._by_target.get(target_name)
            if existing is not None:
                raise SessionConflictException(target_name, existing)
            if len(self._sessions) >= self.max_sessions:
                raise SessionLimitExceededException(self.max_sessions)

            session = UploadSession.create(
                target_name=target_name,
                expected_part_count=expected_part_count,
                ttl_seconds=self.ttl_seconds,
                strategy=strategy,
                total_size=total_size,
                content_type=content_type,
                upload_id=upload_id
            )
            self._sessions[session.session_id] = session
            self._by_target[target_name] = session.session_id

        logger.info(
            f"Upload session created: {session.session_id} for {target_name} "
            f"({expected_part_count} parts, {strategy.value})"
        )
        return session.session_id

    async def attach_upload_id(self, session_id: str, upload_id: str) -> None:
        """Bind the backend multipart upload id to a direct session."""
        async with self._lock:
            session = self._require(session_id)
            session.upload_id = upload_id
            session.touch(self.ttl_seconds)

    async def record_part(self, session_id: str, index: int, token: Optional[str] = None) -> bool:
        """
        Mark a part as received.

        Re-recording an index is harmless; a new token replaces the old one.
        Every recorded part extends the session's expiry by the TTL.

        Returns:
            bool: True if the index was received for the first time.
        """
        async with self._lock:
            session = self._require(session_id)
            if index < 0 or index >= session.expected_part_count:
                raise IndexOutOfRangeException(session_id, index, session.expected_part_count)

            first_receipt = index not in session.received_parts
            session.received_parts.add(index)
            if token is not None:
                session.part_tokens[index] = token
            session.touch(self.ttl_seconds)

        logger.debug(f"Session {session_id}: part {index} recorded (first={first_receipt})")
        return first_receipt

    async def get(self, session_id: str) -> UploadSession:
        async with self._lock:
            return self._require(session_id).model_copy(deep=True)

    async def is_complete(self, session_id: str) -> bool:
        async with self._lock:
            return self._require(session_id).is_complete

    async def missing_parts(self, session_id: str) -> List[int]:
        async with self._lock:
            return self._require(session_id).missing_parts

    async def dispose(self, session_id: str) -> Optional[UploadSession]:
        """Remove a session; unknown ids are ignored."""
        async with self._lock:
            session = self._sessions.pop(session_id, None)
            if session is not None and self._by_target.get(session.target_name) == session_id:
                del self._by_target[session.target_name]

        if session is not None:
            logger.info(f"Upload session disposed: {session_id}")
        return session

    async def sweep_expired(self, now: Optional[datetime] = None) -> List[UploadSession]:
        """Remove and return every session past its expiry time."""
        async with self._lock:
            expired = [s for s in self._sessions.values() if s.is_expired(now)]
            for session in expired:
                del self._sessions[session.session_id]
                if self._by_target.get(session.target_name) == session.session_id:
                    del self._by_target[session.target_name]

        if expired:
            logger.info(f"Found {len(expired)} expired sessions; cleaning up")
        return expired

    async def start(self) -> None:
        """Start the background expiry sweeper."""
        if self._running:
            return
        self._running = True
        self._sweep_task = asyncio.create_task(self._sweep_loop())

    async def stop(self) -> None:
        """Stop the background expiry sweeper."""
        self._running = False
        if self._sweep_task:
            self._sweep_task.cancel()
            try:
                await self._sweep_task
            except asyncio.CancelledError:
                pass
            self._sweep_task = None

    async def _sweep_loop(self) -> None:
        logger.info("Upload session cleanup task started")

        while self._running:
            await asyncio.sleep(self.sweep_interval)
            for session in await self.sweep_expired():
                if self.on_expired is None:
                    continue
                try:
                    await self.on_expired(session)
                except Exception as e:
                    logger.error(f"Failed to cleanup expired session {session.session_id}: {e}")

        logger.info("Upload session cleanup task stopped")

    def stats(self) -> Dict[str, int]:
        return {"open_sessions": len(self._sessions), "max_sessions": self.max_sessions}
