"""Policy Ingest - Error taxonomy.

Two families:
- Job-fatal errors (IngestError subclasses) abort the whole job before any
  row is counted and become the single terminal JobError message.
- RowProcessingError is row-local: it is recorded in the job summary and
  processing continues with the next row.
"""

from __future__ import annotations

from enum import StrEnum


class IngestErrorCode(StrEnum):
    """Error codes carried by terminal JobError messages and API responses."""

    CONNECTION_ERROR = "CONNECTION_ERROR"
    UNSUPPORTED_FORMAT = "UNSUPPORTED_FORMAT"
    FILE_READ_ERROR = "FILE_READ_ERROR"
    EMPTY_DATASET = "EMPTY_DATASET"
    ROW_PROCESSING_ERROR = "ROW_PROCESSING_ERROR"
    WORKER_ERROR = "WORKER_ERROR"
    FILE_TOO_LARGE = "FILE_TOO_LARGE"


class IngestError(Exception):
    """Base exception for job-fatal ingest errors."""

    def __init__(self, error_code: str, message: str):
        self.error_code = error_code
        self.message = message
        super().__init__(f"{error_code}: {message}")


class StoreConnectionError(IngestError):
    """The persistence store could not be reached."""

    def __init__(self, reason: str):
        super().__init__(
            IngestErrorCode.CONNECTION_ERROR, f"Failed to connect to database: {reason}"
        )


class UnsupportedFormatError(IngestError):
    """Declared file type is not one of the readable formats."""

    def __init__(self, declared_type: str):
        self.declared_type = declared_type
        super().__init__(
            IngestErrorCode.UNSUPPORTED_FORMAT, f"Unsupported file type: {declared_type!r}"
        )


class FileReadError(IngestError):
    """The file could not be opened or parsed structurally."""

    def __init__(self, path: str, reason: str):
        self.path = path
        super().__init__(IngestErrorCode.FILE_READ_ERROR, f"Failed to read {path}: {reason}")


class EmptyDatasetError(IngestError):
    """The file holds a header but no data rows."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(IngestErrorCode.EMPTY_DATASET, f"No data found in file: {path}")


class RowProcessingError(Exception):
    """A single row failed; carries the 1-based row index and ROW_PROCESSING_ERROR."""

    def __init__(self, row_number: int, message: str):
        self.error_code = IngestErrorCode.ROW_PROCESSING_ERROR
        self.row_number = row_number
        self.message = message
        super().__init__(f"Row {row_number}: {message}")
