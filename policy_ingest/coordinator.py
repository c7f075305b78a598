"""Policy Ingest - Ingestion coordinator.

Owns the lifecycle of one ingestion job inside whatever execution context
runs it:

1. Acquire the store (fatal StoreConnectionError if unavailable)
2. Open the file (fatal UnsupportedFormatError / FileReadError)
3. Process every row in file order, counting writes and row errors
4. Fail with EmptyDatasetError if the file had no data rows
5. Release the store

run_job() raises job-fatal errors. Converting results and errors into the
terminal message sent across the isolation boundary is done by
policy_ingest.worker.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from policy_ingest.db import job_store
from policy_ingest.errors import EmptyDatasetError, IngestError
from policy_ingest.readers import open_rows
from policy_ingest.rows import Failed, process_row
from policy_ingest.schemas import IngestSummary, JobErrorMessage, JobResultMessage
from policy_ingest.upserter import EntityKind
from policy_ingest.utils.failpoints import maybe_fail

logger = logging.getLogger(__name__)

# Summary counter bumped for each entity kind a row writes
SUMMARY_COUNTERS: dict[EntityKind, str] = {
    EntityKind.AGENT: "agents",
    EntityKind.USER: "users",
    EntityKind.ACCOUNT: "accounts",
    EntityKind.LINE_OF_BUSINESS: "lobs",
    EntityKind.CARRIER: "carriers",
    EntityKind.POLICY: "policies",
}


@dataclass
class JobSummary:
    """Running counters for one job."""

    agents: int = 0
    users: int = 0
    accounts: int = 0
    lobs: int = 0
    carriers: int = 0
    policies: int = 0
    errors: int = 0

    def record_applied(self, kinds) -> None:
        for kind in kinds:
            counter = SUMMARY_COUNTERS[kind]
            setattr(self, counter, getattr(self, counter) + 1)


@dataclass
class JobResult:
    """Result of a job that ran to completion."""

    records_processed: int
    summary: JobSummary = field(default_factory=JobSummary)
    row_errors: list[str] = field(default_factory=list)

    def to_message(self) -> dict[str, Any]:
        """Render the terminal message (rowErrors omitted when empty)."""
        message = JobResultMessage(
            records_processed=self.records_processed,
            summary=IngestSummary(**vars(self.summary)),
            row_errors=self.row_errors or None,
        )
        return message.model_dump(by_alias=True, exclude_none=True)


def job_error_message(error_code: str, message: str) -> dict[str, Any]:
    """Render the terminal message of a failed job."""
    return JobErrorMessage(error=message, error_code=error_code).model_dump(by_alias=True)


def error_to_message(error: IngestError) -> dict[str, Any]:
    return job_error_message(error.error_code, error.message)


def run_job(
    file_ref: str | Path,
    declared_type: str,
    db_path: str | Path | None = None,
) -> JobResult:
    """Ingest one tabular file.

    Rows are processed strictly in file order; each row commits or rolls
    back on its own, so a failing row never affects the others.

    Args:
        file_ref: Path to the file to ingest.
        declared_type: ".csv", ".xlsx" or ".xls".
        db_path: Optional SQLite path override.

    Returns:
        JobResult with per-kind counters and row errors.

    Raises:
        StoreConnectionError: If the store is unavailable.
        UnsupportedFormatError: If declared_type is not readable.
        FileReadError: If the file cannot be opened or parsed.
        EmptyDatasetError: If the file has no data rows.
    """
    logger.info("Ingestion job started: file=%s, type=%s", file_ref, declared_type)

    summary = JobSummary()
    row_errors: list[str] = []
    records_processed = 0

    with job_store(db_path) as session:
        with open_rows(file_ref, declared_type) as rows:
            for row_number, row in enumerate(rows, start=1):
                records_processed = row_number
                outcome = process_row(session, row, row_number)
                if isinstance(outcome, Failed):
                    summary.errors += 1
                    row_errors.append(str(outcome.error))
                else:
                    summary.record_applied(outcome.kinds)
                maybe_fail("INGEST_AFTER_ROW_COMMIT")

        if records_processed == 0:
            raise EmptyDatasetError(str(file_ref))

    logger.info(
        "Ingestion job completed: file=%s, records=%d, errors=%d",
        file_ref,
        records_processed,
        summary.errors,
    )
    return JobResult(records_processed=records_processed, summary=summary, row_errors=row_errors)
