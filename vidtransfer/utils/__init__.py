"""Utility modules - provide common utility functions and classes."""
from vidtransfer.utils.file_utils import (
    FileProcessor,
    get_extension,
    guess_content_type,
    is_valid_filename,
    validate_object_name,
)
from vidtransfer.utils.logger import configure_logging, get_logger, setup_logger

__all__ = [
    "FileProcessor",
    "get_extension",
    "guess_content_type",
    "is_valid_filename",
    "validate_object_name",
    "setup_logger",
    "configure_logging",
    "get_logger",
]
