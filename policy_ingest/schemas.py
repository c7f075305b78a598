"""Policy Ingest - Pydantic models for messages and API responses.

The terminal message of an ingestion job crosses a process boundary as a
plain dict; these models define (and validate) its shape. Job messages use
the camelCase keys callers already consume (recordsProcessed, rowErrors).
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


# --- Terminal job messages ---


class IngestSummary(BaseModel):
    """Per-kind write counters plus the row error count."""

    model_config = ConfigDict(extra="forbid")

    agents: int = Field(default=0, ge=0)
    users: int = Field(default=0, ge=0)
    accounts: int = Field(default=0, ge=0)
    lobs: int = Field(default=0, ge=0)
    carriers: int = Field(default=0, ge=0)
    policies: int = Field(default=0, ge=0)
    errors: int = Field(default=0, ge=0)


class JobResultMessage(BaseModel):
    """Terminal message of a job that ran to completion."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    records_processed: int = Field(..., ge=0, alias="recordsProcessed")
    summary: IngestSummary
    row_errors: list[str] | None = Field(
        default=None,
        alias="rowErrors",
        description="'Row <n>: <message>' entries, present only when summary.errors > 0",
    )


class JobErrorMessage(BaseModel):
    """Terminal message of a job that failed as a whole."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    error: str = Field(..., description="Human-readable failure description")
    error_code: str = Field(..., alias="errorCode")
    records_processed: int = Field(default=0, alias="recordsProcessed")
    summary: dict[str, Any] = Field(default_factory=dict)


def is_job_error(message: dict[str, Any]) -> bool:
    """True if a terminal message reports a whole-job failure."""
    return "error" in message


# --- API Response Models ---


class UploadSuccessResponse(BaseModel):
    """Response for a synchronous upload that was processed."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    message: str = Field(default="File uploaded and processed successfully")
    records_processed: int = Field(..., ge=0, alias="recordsProcessed")
    summary: IngestSummary
    row_errors: list[str] | None = Field(default=None, alias="rowErrors")


class IngestErrorResponse(BaseModel):
    """Response for failed ingest operations."""

    model_config = ConfigDict(extra="forbid")

    status: str = Field(default="error", description="Operation status")
    error_code: str = Field(..., description="Error taxonomy code")
    error_message: str = Field(..., description="Human-readable error description")


class JobAcceptedResponse(BaseModel):
    """Response for a queued ingestion job."""

    model_config = ConfigDict(extra="forbid")

    status: str = Field(default="queued")
    task_id: str = Field(..., description="Huey task id used to poll for the result")


class JobPendingResponse(BaseModel):
    """Response while a queued job has not produced its terminal message."""

    model_config = ConfigDict(extra="forbid")

    status: str = Field(default="pending")
    task_id: str


__all__ = [
    "IngestSummary",
    "JobResultMessage",
    "JobErrorMessage",
    "is_job_error",
    "UploadSuccessResponse",
    "IngestErrorResponse",
    "JobAcceptedResponse",
    "JobPendingResponse",
]
