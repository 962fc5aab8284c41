"""Centralized exception definitions and error taxonomy."""
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Type


class ErrorSeverity(Enum):
    """Describes severity for surfaced errors."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    """Categorization used for error routing and HTTP status mapping."""
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    CAPACITY = "capacity"
    RANGE = "range"
    STORAGE = "storage"
    NETWORK = "network"
    TRANSFER = "transfer"
    SYSTEM = "system"


class TransferException(Exception):
    """Base exception type for the application."""

    def __init__(
        self,
        message: str,
        error_code: str,
        category: ErrorCategory,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        details: Optional[Dict[str, Any]] = None,
        original_error: Optional[Exception] = None
    ):
        self.message = message
        self.error_code = error_code
        self.category = category
        self.severity = severity
        self.details = details or {}
        self.original_error = original_error
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize exception metadata into a dict."""
        return {
            "error_code": self.error_code,
            "message": self.message,
            "category": self.category.value,
            "severity": self.severity.value,
            "details": self.details,
            "type": self.__class__.__name__
        }


# Validation exceptions
class InvalidArgumentException(TransferException):
    """Raised when session or transfer parameters are invalid."""

    def __init__(self, message: str, field: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        validation_details = details or {}
        if field:
            validation_details["field"] = field
        super().__init__(
            message=message,
            error_code="INVALID_ARGUMENT",
            category=ErrorCategory.VALIDATION,
            severity=ErrorSeverity.LOW,
            details=validation_details
        )


class IndexOutOfRangeException(TransferException):
    """Raised when a part index falls outside the session's range."""

    def __init__(self, session_id: str, index: int, expected_part_count: int):
        super().__init__(
            message=f"Part index {index} out of range [0, {expected_part_count}) for session {session_id}",
            error_code="INDEX_OUT_OF_RANGE",
            category=ErrorCategory.VALIDATION,
            severity=ErrorSeverity.LOW,
            details={
                "session_id": session_id,
                "index": index,
                "expected_part_count": expected_part_count
            }
        )


class IncompleteUploadException(TransferException):
    """Raised when finalizing a session that is missing parts."""

    def __init__(self, target_name: str, missing_indices: Iterable[int], session_id: Optional[str] = None):
        missing: List[int] = sorted(missing_indices)
        details: Dict[str, Any] = {"target_name": target_name, "missing_indices": missing}
        if session_id:
            details["session_id"] = session_id
        super().__init__(
            message=f"Upload of {target_name} is incomplete, missing parts: {missing}",
            error_code="INCOMPLETE_UPLOAD",
            category=ErrorCategory.VALIDATION,
            severity=ErrorSeverity.MEDIUM,
            details=details
        )
        self.missing_indices = missing


# Session exceptions
class SessionNotFoundException(TransferException):
    """Raised when a session identifier cannot be located."""

    def __init__(self, session_id: str):
        super().__init__(
            message=f"Upload session not found: {session_id}",
            error_code="SESSION_NOT_FOUND",
            category=ErrorCategory.NOT_FOUND,
            severity=ErrorSeverity.MEDIUM,
            details={"session_id": session_id}
        )


class SessionConflictException(TransferException):
    """Raised when another open session already targets the same object name."""

    def __init__(self, target_name: str, existing_session_id: str):
        super().__init__(
            message=f"An upload session for {target_name} is already open",
            error_code="SESSION_CONFLICT",
            category=ErrorCategory.CONFLICT,
            severity=ErrorSeverity.MEDIUM,
            details={"target_name": target_name, "existing_session_id": existing_session_id}
        )


class SessionLimitExceededException(TransferException):
    """Raised when the session table is full."""

    def __init__(self, max_sessions: int):
        super().__init__(
            message=f"Too many open upload sessions (limit {max_sessions})",
            error_code="SESSION_LIMIT_EXCEEDED",
            category=ErrorCategory.CAPACITY,
            severity=ErrorSeverity.HIGH,
            details={"max_sessions": max_sessions}
        )


# Transfer exceptions
class RangeUnsatisfiableException(TransferException):
    """Raised when a backend cannot serve the requested byte range."""

    def __init__(
        self,
        name: str,
        start: int,
        end: int,
        actual_size: Optional[int] = None,
        original_error: Optional[Exception] = None
    ):
        details: Dict[str, Any] = {"name": name, "start": start, "end": end}
        if actual_size is not None:
            details["actual_size"] = actual_size
        super().__init__(
            message=f"Range {start}-{end} not satisfiable for {name}",
            error_code="RANGE_UNSATISFIABLE",
            category=ErrorCategory.RANGE,
            severity=ErrorSeverity.MEDIUM,
            details=details,
            original_error=original_error
        )


class TransferFailedException(TransferException):
    """Raised when any part operation of a transfer fails."""

    def __init__(self, target_name: str, cause: Exception, index: Optional[int] = None):
        super().__init__(
            message=f"Transfer of {target_name} failed"
                    + (f" at part {index}" if index is not None else "")
                    + f": {cause}",
            error_code="TRANSFER_FAILED",
            category=ErrorCategory.TRANSFER,
            severity=ErrorSeverity.HIGH,
            details={
                "target_name": target_name,
                "index": index,
                "cause": f"{type(cause).__name__}: {cause}"
            },
            original_error=cause
        )
        self.target_name = target_name
        self.index = index
        self.cause = cause


# Storage exceptions
class StorageException(TransferException):
    """Raised for storage layer failures."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        original_error: Optional[Exception] = None
    ):
        storage_details = details or {}
        if operation:
            storage_details["operation"] = operation
        super().__init__(
            message=message,
            error_code="STORAGE_ERROR",
            category=ErrorCategory.STORAGE,
            severity=ErrorSeverity.HIGH,
            details=storage_details,
            original_error=original_error
        )


class ObjectNotFoundException(TransferException):
    """Raised when an object cannot be located in a backend."""

    def __init__(self, name: str, source: Optional[str] = None):
        details: Dict[str, Any] = {"name": name}
        if source:
            details["source"] = source
        super().__init__(
            message=f"Object not found: {name}",
            error_code="OBJECT_NOT_FOUND",
            category=ErrorCategory.NOT_FOUND,
            severity=ErrorSeverity.LOW,
            details=details
        )


# System exceptions
class ConfigurationException(TransferException):
    """Raised for configuration/initialization failures."""

    def __init__(self, message: str, config_key: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        config_details = details or {}
        if config_key:
            config_details["config_key"] = config_key
        super().__init__(
            message=message,
            error_code="CONFIG_ERROR",
            category=ErrorCategory.SYSTEM,
            severity=ErrorSeverity.CRITICAL,
            details=config_details
        )


_EXCEPTIONS_BY_CODE: Dict[str, Type[TransferException]] = {
    "INVALID_ARGUMENT": InvalidArgumentException,
    "INDEX_OUT_OF_RANGE": IndexOutOfRangeException,
    "INCOMPLETE_UPLOAD": IncompleteUploadException,
    "SESSION_NOT_FOUND": SessionNotFoundException,
    "SESSION_CONFLICT": SessionConflictException,
    "SESSION_LIMIT_EXCEEDED": SessionLimitExceededException,
    "RANGE_UNSATISFIABLE": RangeUnsatisfiableException,
    "TRANSFER_FAILED": TransferFailedException,
    "STORAGE_ERROR": StorageException,
    "OBJECT_NOT_FOUND": ObjectNotFoundException,
    "CONFIG_ERROR": ConfigurationException,
}


def exception_from_error_payload(payload: Dict[str, Any], status_code: int) -> TransferException:
    """
    Rebuild an exception from the API's JSON error envelope.

    The concrete class is chosen by error code so remote callers can handle
    the same exception types as in-process callers. Constructor arguments
    differ between classes, so the instance is rebuilt without ``__init__``
    and populated from the payload.
    """
    error = payload.get("error", {}) if isinstance(payload, dict) else {}
    code = error.get("code", f"HTTP_{status_code}")
    message = error.get("message") or f"Request failed with status {status_code}"
    details = error.get("details") or {}
    if not isinstance(details, dict):
        details = {"details": details}

    exc_class = _EXCEPTIONS_BY_CODE.get(code)
    if exc_class is None:
        category = ErrorCategory.NOT_FOUND if status_code == 404 else ErrorCategory.NETWORK
        return TransferException(
            message=message,
            error_code=code,
            category=category,
            details={"status_code": status_code, **details}
        )

    exc = exc_class.__new__(exc_class)
    TransferException.__init__(
        exc,
        message=message,
        error_code=code,
        category=ErrorCategory(error.get("category", ErrorCategory.SYSTEM.value)),
        severity=ErrorSeverity(error.get("severity", ErrorSeverity.MEDIUM.value)),
        details=details
    )
    if isinstance(exc, IncompleteUploadException):
        exc.missing_indices = list(details.get("missing_indices", []))
    if isinstance(exc, TransferFailedException):
        exc.target_name = details.get("target_name", "")
        exc.index = details.get("index")
        exc.cause = None
    return exc
