"""Typed failures raised by the receipt ingestion pipeline.

Every failure the pipeline can surface to a caller is one of the
classes below.  Each carries the HTTP status it maps to, a
human-readable message and, for infrastructure failures only, an
operator-facing ``detail`` (stderr, parse error text).  Input-class
failures never expose internal detail.

The ingestion orchestrator is the only component that decides on file
cleanup; it records the outcome on ``file_removed`` so the response can
confirm it.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional


class IngestionError(Exception):
    """Base class for all pipeline failures."""

    status_code: int = 500
    default_message: str = "Internal server error while processing receipt"

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        detail: Optional[str] = None,
        errors: Optional[List[Dict[str, Any]]] = None,
    ) -> None:
        self.message = message or self.default_message
        self.detail = detail
        self.errors = errors
        # None: no file existed; True/False: outcome of the cleanup attempt
        self.file_removed: Optional[bool] = None
        super().__init__(self.message)

    @property
    def kind(self) -> str:
        return type(self).__name__

    @property
    def is_client_error(self) -> bool:
        return 400 <= self.status_code < 500

    def to_payload(self) -> Dict[str, Any]:
        """Render the stable ``success: false`` response body."""
        message = self.message
        if self.file_removed is True:
            message = f"{message}. The uploaded file has been removed"
        elif self.file_removed is False:
            message = f"{message}. The uploaded file could not be removed"
        payload: Dict[str, Any] = {"success": False, "message": message, "kind": self.kind}
        if self.errors:
            payload["errors"] = self.errors
        if not self.is_client_error and self.detail:
            payload["error"] = self.detail
        return payload


# -----------------------------------------------------------------------------
# Input errors (400, nothing to clean up)


class InvalidUserIdentifier(IngestionError):
    status_code = 400
    default_message = "Valid user ID is required"


class MissingFile(IngestionError):
    status_code = 400
    default_message = "No receipt file uploaded"


class UnexpectedFileField(IngestionError):
    status_code = 400
    default_message = "Unexpected file field"


class InvalidFileType(IngestionError):
    status_code = 400
    default_message = "Invalid file type"


class FileTooLarge(IngestionError):
    status_code = 400
    default_message = "File size too large"


class TooManyFiles(IngestionError):
    status_code = 400
    default_message = "Too many files. Only one file is allowed"


# -----------------------------------------------------------------------------
# Extraction errors


class ExtractionLaunchFailed(IngestionError):
    default_message = "Failed to start receipt OCR process"


class ExtractionFailed(IngestionError):
    default_message = "Receipt OCR processing failed"

    def __init__(self, stderr: str = "", exit_code: Optional[int] = None) -> None:
        self.stderr = stderr
        self.exit_code = exit_code
        detail = stderr.strip() or f"extraction tool exited with code {exit_code}"
        super().__init__(detail=detail)


class ExtractionOutputMalformed(IngestionError):
    default_message = "Failed to parse receipt OCR output"

    def __init__(self, parse_error: str) -> None:
        self.parse_error = parse_error
        super().__init__(detail=parse_error)


class ExtractionTimeout(IngestionError):
    default_message = "Receipt OCR processing timed out"

    def __init__(self, timeout: float) -> None:
        self.timeout = timeout
        super().__init__(detail=f"extraction tool did not finish within {timeout:g}s")


class ExtractionIncomplete(IngestionError):
    status_code = 400
    default_message = "Could not extract amount from receipt"


# -----------------------------------------------------------------------------
# Persistence errors


class PersistenceValidationFailed(IngestionError):
    status_code = 400
    default_message = "Failed to create transaction from receipt data"


class PersistenceError(IngestionError):
    default_message = "Internal server error while saving transaction"


__all__ = [
    "IngestionError",
    "InvalidUserIdentifier",
    "MissingFile",
    "UnexpectedFileField",
    "InvalidFileType",
    "FileTooLarge",
    "TooManyFiles",
    "ExtractionLaunchFailed",
    "ExtractionFailed",
    "ExtractionOutputMalformed",
    "ExtractionTimeout",
    "ExtractionIncomplete",
    "PersistenceValidationFailed",
    "PersistenceError",
]
