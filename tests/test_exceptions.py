"""Tests for the exception taxonomy and error envelope round trip."""
import pytest

from vidtransfer.core.exceptions import (
    ErrorCategory,
    IncompleteUploadException,
    SessionNotFoundException,
    TransferException,
    TransferFailedException,
    exception_from_error_payload,
)


def test_to_dict():
    exc = SessionNotFoundException("abc")

    assert exc.to_dict() == {
        "error_code": "SESSION_NOT_FOUND",
        "message": "Upload session not found: abc",
        "category": "not_found",
        "severity": "medium",
        "details": {"session_id": "abc"},
        "type": "SessionNotFoundException",
    }


def test_incomplete_upload_sorts_missing_indices():
    exc = IncompleteUploadException("clip.mp4", {4, 1, 2})

    assert exc.missing_indices == [1, 2, 4]
    assert exc.details["missing_indices"] == [1, 2, 4]


def test_transfer_failed_keeps_cause_and_index():
    cause = ConnectionError("reset")
    exc = TransferFailedException("clip.mp4", cause, index=3)

    assert exc.index == 3
    assert exc.cause is cause
    assert exc.original_error is cause
    assert exc.category == ErrorCategory.TRANSFER
    assert "part 3" in exc.message
    assert exc.details["cause"] == "ConnectionError: reset"


def _envelope(code, category, details=None, message="failed"):
    return {"error": {
        "code": code,
        "message": message,
        "category": category,
        "severity": "medium",
        "details": details or {},
    }}


class TestExceptionFromPayload:
    """Rebuilding exceptions from HTTP error bodies."""

    def test_known_code_restores_class(self):
        exc = exception_from_error_payload(
            _envelope("INCOMPLETE_UPLOAD", "validation", {"missing_indices": [2, 5]}), 400
        )

        assert isinstance(exc, IncompleteUploadException)
        assert exc.missing_indices == [2, 5]
        assert exc.category == ErrorCategory.VALIDATION

    def test_transfer_failed_fields(self):
        exc = exception_from_error_payload(
            _envelope("TRANSFER_FAILED", "transfer", {"target_name": "clip.mp4", "index": 1}), 502
        )

        assert isinstance(exc, TransferFailedException)
        assert exc.target_name == "clip.mp4"
        assert exc.index == 1

    @pytest.mark.parametrize("status_code, category", [
        (404, ErrorCategory.NOT_FOUND),
        (500, ErrorCategory.NETWORK),
    ])
    def test_unknown_code(self, status_code, category):
        exc = exception_from_error_payload({"error": {"code": f"HTTP_{status_code}"}}, status_code)

        assert type(exc) is TransferException
        assert exc.category == category
        assert exc.details["status_code"] == status_code

    def test_non_json_body(self):
        exc = exception_from_error_payload({"error": {"message": "Bad Gateway"}}, 502)

        assert exc.error_code == "HTTP_502"
        assert exc.message == "Bad Gateway"
