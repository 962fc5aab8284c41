"""Coordinator-side transfer service shared by HTTP routes and in-process transports."""
import logging
from typing import Any, AsyncIterator, Dict, List, Optional

from vidtransfer.core.config import TransferConfig
from vidtransfer.core.decorators import async_exception_handler, async_performance_monitor
from vidtransfer.core.exceptions import (
    IndexOutOfRangeException,
    InvalidArgumentException,
    ObjectNotFoundException,
    StorageException,
    TransferException,
)
from vidtransfer.models.part import PartResult
from vidtransfer.models.transfer import (
    DeleteReport,
    DeleteResult,
    DeleteStatus,
    ObjectRecord,
    ObjectSource,
)
from vidtransfer.models.upload_session import TransferStrategy, UploadSession
from vidtransfer.services.local_store import LocalObjectStore, PartStaging
from vidtransfer.services.object_store import ObjectStore
from vidtransfer.services.reassembler import assemble_local, complete_multipart
from vidtransfer.services.session_store import ChunkSessionStore
from vidtransfer.utils.file_utils import guess_content_type, validate_object_name
from vidtransfer.utils.logger import get_logger

logger: logging.Logger = get_logger(__name__)


class TransferService:
    """
    Session-facing API of the coordinating process.

    Proxied sessions stage part bytes on local disk and are merged into
    permanent local storage. Direct sessions never see part bytes: the
    service hands out signed part URLs, records the ETags the client
    reports, and completes the store's native multipart upload.
    """

    def __init__(
        self,
        object_store: ObjectStore,
        local_store: LocalObjectStore,
        staging: PartStaging,
        session_store: ChunkSessionStore,
        transfer_config: Optional[TransferConfig] = None
    ):
        self.object_store = object_store
        self.local_store = local_store
        self.staging = staging
        self.sessions = session_store
        self.config = transfer_config or TransferConfig()

        if self.sessions.on_expired is None:
            self.sessions.on_expired = self._release_session_resources

    async def _release_session_resources(self, session: UploadSession) -> None:
        """Drop staged parts or the pending multipart upload of a closed session."""
        if session.strategy == TransferStrategy.PROXIED:
            self.staging.discard(session.session_id)
        elif session.upload_id:
            await self.object_store.abort_multipart(session.target_name, session.upload_id)

    async def _get_session(self, session_id: str, strategy: TransferStrategy) -> UploadSession:
        session = await self.sessions.get(session_id)
        if session.strategy != strategy:
            raise InvalidArgumentException(
                f"Session {session_id} is a {session.strategy.value} session",
                field="session_id"
            )
        return session

    # Proxied strategy

    async def initiate_session(
        self,
        target_name: str,
        total_parts: int,
        total_size: Optional[int] = None,
        content_type: Optional[str] = None
    ) -> str:
        """
        Open a proxied chunked upload.

        Args:
            target_name: Name of the finished object in local storage.
            total_parts: Number of parts the client will send.
            total_size: Expected size, checked after reassembly.
            content_type: Content type; guessed from the name when omitted.

        Returns:
            str: Session id.
        """
        validate_object_name(target_name)
        return await self.sessions.initiate(
            target_name=target_name,
            expected_part_count=total_parts,
            strategy=TransferStrategy.PROXIED,
            total_size=total_size,
            content_type=content_type or guess_content_type(target_name)
        )

    async def submit_part(self, session_id: str, index: int, payload: bytes) -> PartResult:
        """Stage one part on disk and mark it received."""
        session = await self._get_session(session_id, TransferStrategy.PROXIED)
        if index < 0 or index >= session.expected_part_count:
            raise IndexOutOfRangeException(session_id, index, session.expected_part_count)

        size = await self.staging.write_part(session_id, index, payload)
        await self.sessions.record_part(session_id, index)
        return PartResult(index=index, size=size)

    @async_performance_monitor(operation_name="transfer.finalize_session", slow_threshold=5.0)
    @async_exception_handler(TransferException, default_message="Failed to finalize upload session")
    async def finalize_session(self, session_id: str) -> ObjectRecord:
        """
        Complete a session of either strategy.

        Incomplete sessions stay open so the client can still send the
        missing parts or abort.

        Returns:
            ObjectRecord: The finished object.
        """
        session = await self.sessions.get(session_id)

        if session.strategy == TransferStrategy.PROXIED:
            size = await assemble_local(session, self.staging, self.local_store)
            await self.sessions.dispose(session_id)
            self.staging.discard(session_id)
            return ObjectRecord(name=session.target_name, size=size, source=ObjectSource.LOCAL)

        await complete_multipart(session, self.object_store)
        await self.sessions.dispose(session_id)
        if session.total_size is not None:
            size = session.total_size
        else:
            size = (await self.object_store.stat_object(session.target_name)).size
        return ObjectRecord(name=session.target_name, size=size, source=ObjectSource.MINIO)

    async def abort_session(self, session_id: str) -> bool:
        """
        Close a session and release whatever it holds. Unknown ids are a no-op.

        Returns:
            bool: True if a session was aborted.
        """
        session = await self.sessions.dispose(session_id)
        if session is None:
            return False
        await self._release_session_resources(session)
        logger.info(f"Upload session aborted: {session_id} ({session.target_name})")
        return True

    @async_performance_monitor(operation_name="transfer.upload_single", slow_threshold=5.0)
    async def upload_single(self, target_name: str, chunks: AsyncIterator[bytes]) -> ObjectRecord:
        """Store a whole object in local storage in one request."""
        validate_object_name(target_name)
        size = await self.local_store.put_stream(target_name, chunks)
        return ObjectRecord(name=target_name, size=size, source=ObjectSource.LOCAL)

    async def read_range(self, name: str, start: int, end: int) -> bytes:
        """Read an inclusive byte range of a locally stored object."""
        return await self.local_store.get_object_range(name, start, end)

    async def object_size(self, name: str, source: ObjectSource = ObjectSource.LOCAL) -> int:
        """Size of an object in the given backend."""
        if ObjectSource(source) == ObjectSource.LOCAL:
            record = await self.local_store.stat_object(name)
        else:
            record = await self.object_store.stat_object(name)
        return record.size

    # Direct strategy

    async def initiate_direct_session(
        self,
        target_name: str,
        total_parts: int,
        total_size: Optional[int] = None,
        content_type: Optional[str] = None
    ) -> Dict[str, str]:
        """
        Open a direct chunked upload backed by a native multipart upload.

        Returns:
            dict: ``session_id`` and the backend ``upload_id``.
        """
        validate_object_name(target_name)
        content_type = content_type or guess_content_type(target_name)
        session_id = await self.sessions.initiate(
            target_name=target_name,
            expected_part_count=total_parts,
            strategy=TransferStrategy.DIRECT,
            total_size=total_size,
            content_type=content_type
        )
        try:
            upload_id = await self.object_store.initiate_multipart(target_name, content_type)
        except Exception:
            await self.sessions.dispose(session_id)
            raise
        await self.sessions.attach_upload_id(session_id, upload_id)
        return {"session_id": session_id, "upload_id": upload_id}

    async def presign_part_url(self, session_id: str, index: int) -> str:
        """Signed PUT URL for one part of a direct session."""
        session = await self._get_session(session_id, TransferStrategy.DIRECT)
        if index < 0 or index >= session.expected_part_count:
            raise IndexOutOfRangeException(session_id, index, session.expected_part_count)

        return await self.object_store.presign(
            "PUT",
            session.target_name,
            self.config.presign_expiry_seconds,
            extra_params={"uploadId": session.upload_id, "partNumber": str(index + 1)}
        )

    async def record_part_token(self, session_id: str, index: int, etag: str) -> None:
        """Record the ETag the store returned for a directly uploaded part."""
        if not etag:
            raise InvalidArgumentException("etag must not be empty", field="etag")
        await self._get_session(session_id, TransferStrategy.DIRECT)
        await self.sessions.record_part(session_id, index, token=etag)

    async def presign_upload_url(self, name: str) -> str:
        """Signed PUT URL for a single-shot direct upload."""
        validate_object_name(name, field="filename")
        return await self.object_store.presign("PUT", name, self.config.presign_expiry_seconds)

    async def presign_download_url(self, name: str) -> str:
        """Signed GET URL for an object in the store."""
        await self.object_store.stat_object(name)
        return await self.object_store.presign("GET", name, self.config.presign_expiry_seconds)

    # Library

    async def list_objects(self) -> List[ObjectRecord]:
        """
        Every stored object from both backends, MinIO first.

        An unreachable MinIO does not hide local objects.
        """
        records: List[ObjectRecord] = []
        try:
            records.extend(await self.object_store.list_objects())
        except StorageException as e:
            logger.warning(f"MinIO listing failed, returning local objects only: {e.message}")
        records.extend(await self.local_store.list_objects())
        return records

    async def delete_object_everywhere(self, name: str) -> DeleteReport:
        """
        Delete an object from every backend.

        A backend that never held the object reports ``not_found``; any other
        error is reported as ``failed`` without stopping the other deletes.
        """
        validate_object_name(name, field="filename")
        report = DeleteReport(name=name)
        backends = [
            (ObjectSource.LOCAL, self.local_store),
            (ObjectSource.MINIO, self.object_store),
        ]

        for source, backend in backends:
            try:
                await backend.delete_object(name)
                report.results.append(DeleteResult(source=source, status=DeleteStatus.DELETED))
            except ObjectNotFoundException:
                report.results.append(DeleteResult(source=source, status=DeleteStatus.NOT_FOUND))
            except Exception as e:
                logger.error(f"Failed to delete {name} from {source.value}: {e}")
                report.results.append(
                    DeleteResult(source=source, status=DeleteStatus.FAILED, error=str(e))
                )

        return report

    async def health(self) -> Dict[str, Any]:
        minio_alive = await self.object_store.is_alive()
        return {
            "status": "healthy" if minio_alive else "degraded",
            "minio": minio_alive,
            "sessions": self.sessions.stats()
        }
