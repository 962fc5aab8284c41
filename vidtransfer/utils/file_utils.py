"""Utility functions for file operations"""
import logging
import mimetypes
import shutil
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Iterator, Optional, Union

from vidtransfer.core.exceptions import (
    InvalidArgumentException,
    ObjectNotFoundException,
    StorageException,
)
from vidtransfer.utils.logger import get_logger

logger: logging.Logger = get_logger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"

VIDEO_CONTENT_TYPES = {
    ".mp4": "video/mp4",
    ".m4v": "video/x-m4v",
    ".mov": "video/quicktime",
    ".webm": "video/webm",
    ".mkv": "video/x-matroska",
    ".avi": "video/x-msvideo",
    ".ts": "video/mp2t",
}

INVALID_NAME_CHARS = ['/', '\\', ':', '*', '?', '"', '<', '>', '|', '\x00']


@dataclass
class FileInfo:
    """File information data class"""
    path: Path
    size: int
    modified_time: datetime
    mime_type: Optional[str] = None
    is_dir: bool = False


class FileProcessor:
    """Filesystem helpers used by the local object store and part staging."""

    @staticmethod
    def get_file_info(file_path: Union[str, Path]) -> FileInfo:
        """
        Get file information

        Args:
            file_path: Path to the file

        Returns:
            FileInfo: File information object
        """
        file_path = Path(file_path)

        if not file_path.exists():
            raise ObjectNotFoundException(file_path.name, source="local")

        try:
            stat = file_path.stat()
        except OSError as e:
            raise StorageException(
                f"Failed to stat {file_path}: {e}",
                operation="stat",
                original_error=e
            )

        return FileInfo(
            path=file_path,
            size=stat.st_size,
            modified_time=datetime.fromtimestamp(stat.st_mtime),
            mime_type=guess_content_type(file_path.name),
            is_dir=file_path.is_dir()
        )

    @staticmethod
    def safe_remove(path: Union[str, Path]) -> bool:
        """
        Delete a file or directory tree if it exists.

        Args:
            path: Path to file or directory

        Returns:
            bool: True if something was removed, False if the path did not exist
        """
        path = Path(path)

        try:
            if path.is_file():
                path.unlink()
                logger.debug(f"File removed: {path}")
                return True
            elif path.is_dir():
                shutil.rmtree(path)
                logger.debug(f"Directory removed: {path}")
                return True
            return False

        except OSError as e:
            logger.error(f"Failed to remove path {path}: {e}")
            raise StorageException(
                f"Failed to remove {path}: {e}",
                operation="remove",
                original_error=e
            )

    @staticmethod
    def ensure_directory(path: Union[str, Path], mode: int = 0o755) -> Path:
        """
        Ensure directory exists; create if it doesn't

        Args:
            path: Directory path
            mode: Directory permission mode

        Returns:
            Path: Created directory path
        """
        path = Path(path)
        path.mkdir(parents=True, exist_ok=True, mode=mode)
        return path

    @staticmethod
    def list_files(directory: Union[str, Path], include_hidden: bool = False) -> Iterator[FileInfo]:
        """
        List regular files directly inside a directory.

        Hidden files are skipped by default; in-progress merges live there.

        Args:
            directory: Directory path
            include_hidden: Whether to include dot-files

        Yields:
            FileInfo: File information object for each file
        """
        directory = Path(directory)

        if not directory.is_dir():
            return

        for item in sorted(directory.iterdir()):
            if not item.is_file():
                continue

            if not include_hidden and item.name.startswith('.'):
                continue

            yield FileProcessor.get_file_info(item)


def get_extension(filename: str) -> str:
    """Get file extension (lowercase)"""
    return Path(filename).suffix.lower()


def guess_content_type(filename: str) -> str:
    """Best-effort content type for a stored object name."""
    ext = get_extension(filename)
    if ext in VIDEO_CONTENT_TYPES:
        return VIDEO_CONTENT_TYPES[ext]
    mime_type, _ = mimetypes.guess_type(filename)
    return mime_type or DEFAULT_CONTENT_TYPE


def is_valid_filename(filename: str) -> bool:
    """Check if filename is valid (no invalid characters)"""
    if not filename or filename.startswith('.'):
        return False

    return not any(char in filename for char in INVALID_NAME_CHARS)


def validate_object_name(name: str, field: str = "target_name") -> str:
    """
    Validate a logical object name used as a file name and object key.

    Raises:
        InvalidArgumentException: if the name is empty, hidden or contains path separators
    """
    if not is_valid_filename(name):
        raise InvalidArgumentException(f"Invalid object name: {name!r}", field=field)
    return name
