"""Ordered reassembly of parts into a finished object."""
import logging
import os
from typing import Dict, Iterable, List

import aiofiles

from vidtransfer.core.exceptions import (
    IncompleteUploadException,
    InvalidArgumentException,
    StorageException,
)
from vidtransfer.models.part import Part, PartToken
from vidtransfer.models.upload_session import UploadSession
from vidtransfer.services.local_store import LocalObjectStore, PartStaging, hidden_temp_path
from vidtransfer.services.object_store import ObjectStore
from vidtransfer.utils.logger import get_logger

logger: logging.Logger = get_logger(__name__)


def merge_parts(parts: Iterable[Part], expected_count: int, target_name: str = "") -> bytes:
    """
    Concatenate part payloads in index order.

    Args:
        parts: Parts in any order.
        expected_count: Number of parts the object was split into.
        target_name: Object name used in error reports.

    Returns:
        bytes: The reassembled object.

    Raises:
        IncompleteUploadException: if any index in ``[0, expected_count)`` is absent
        InvalidArgumentException: if a part index is outside that range
    """
    by_index: Dict[int, bytes] = {}
    for part in parts:
        if part.index < 0 or part.index >= expected_count:
            raise InvalidArgumentException(
                f"Part index {part.index} outside [0, {expected_count})",
                field="index"
            )
        by_index[part.index] = part.payload

    missing = [i for i in range(expected_count) if i not in by_index]
    if missing:
        raise IncompleteUploadException(target_name, missing)

    return b"".join(by_index[i] for i in range(expected_count))


def _require_complete(session: UploadSession) -> None:
    missing = session.missing_parts
    if missing:
        raise IncompleteUploadException(session.target_name, missing, session_id=session.session_id)


async def assemble_local(session: UploadSession, staging: PartStaging, store: LocalObjectStore) -> int:
    """
    Stream a session's staged parts into permanent local storage.

    Parts are appended in strictly increasing index order to a hidden
    temporary file that is renamed into place only after its length checks
    out. Staged parts are left for the caller to discard.

    Returns:
        int: Size of the finished object in bytes.
    """
    _require_complete(session)

    final_path = store.path_for(session.target_name)
    temp_path = hidden_temp_path(store.root, session.target_name)
    written = 0
    try:
        async with aiofiles.open(temp_path, "wb") as out:
            for index in range(session.expected_part_count):
                async for data in staging.iter_part(session.session_id, index):
                    await out.write(data)
                    written += len(data)

        if session.total_size is not None and written != session.total_size:
            raise StorageException(
                f"Reassembled size {written} does not match expected {session.total_size} "
                f"for {session.target_name}",
                operation="assemble_local",
                details={
                    "session_id": session.session_id,
                    "expected_size": session.total_size,
                    "actual_size": written
                }
            )

        os.replace(temp_path, final_path)
    except BaseException:
        temp_path.unlink(missing_ok=True)
        raise

    logger.info(
        f"Reassembled {session.target_name} from {session.expected_part_count} parts ({written} bytes)"
    )
    return written


def ordered_tokens(session: UploadSession) -> List[PartToken]:
    """Full token list in part order; a received part without a token counts as missing."""
    _require_complete(session)
    missing = [i for i in range(session.expected_part_count) if not session.part_tokens.get(i)]
    if missing:
        raise IncompleteUploadException(session.target_name, missing, session_id=session.session_id)
    return [PartToken(index=i, etag=session.part_tokens[i]) for i in range(session.expected_part_count)]


async def complete_multipart(session: UploadSession, object_store: ObjectStore) -> str:
    """
    Commit a direct session's parts through the backend's multipart completion.

    Returns:
        str: ETag of the finished object.
    """
    tokens = ordered_tokens(session)
    if not session.upload_id:
        raise InvalidArgumentException(
            f"Session {session.session_id} has no multipart upload id",
            field="upload_id"
        )

    etag = await object_store.complete_multipart(session.target_name, session.upload_id, tokens)
    logger.info(f"Multipart object {session.target_name} committed with {len(tokens)} parts")
    return etag
