"""Policy Ingest - Isolated job execution.

Each ingestion job runs in its own freshly spawned process so that parsing
and the long run of upsert round-trips never block the caller (typically a
request handler). The caller sends one JobDescriptor and receives exactly
one terminal message back over a one-way pipe:

- a JobResult message   {"recordsProcessed", "summary", "rowErrors"?}
- a JobError message    {"error", "errorCode", "recordsProcessed": 0, "summary": {}}

There are no progress messages. The process is joined and closed before
run_job_isolated() returns; it is never reused.

Teardown:
- The child turns SIGTERM into SystemExit, so terminating it unwinds through
  the job's store scope and releases the connection.
- A child that dies without sending anything yields a WORKER_ERROR message.
- An expired deadline terminates the child and yields a CONNECTION_ERROR
  message.
"""

from __future__ import annotations

import logging
import multiprocessing
import signal
from dataclasses import dataclass
from multiprocessing.connection import Connection
from pathlib import Path
from typing import Any

from policy_ingest.config import JOB_TIMEOUT_SECONDS
from policy_ingest.coordinator import error_to_message, job_error_message, run_job
from policy_ingest.errors import IngestError, IngestErrorCode

logger = logging.getLogger(__name__)

# Grace period for a child to exit after sending its message or being terminated
JOIN_GRACE_SECONDS = 5.0


@dataclass(frozen=True)
class JobDescriptor:
    """Everything the isolated process needs to run one job."""

    file_ref: str
    declared_type: str
    db_path: str | None = None


def execute_job(descriptor: JobDescriptor) -> dict[str, Any]:
    """Run one job in the current process and build its terminal message.

    Never raises: job-fatal errors and unexpected exceptions both become a
    JobError message.
    """
    try:
        result = run_job(descriptor.file_ref, descriptor.declared_type, descriptor.db_path)
        return result.to_message()
    except IngestError as e:
        logger.error("Ingestion job failed: %s", e)
        return error_to_message(e)
    except Exception as e:
        logger.exception("Unexpected error during ingestion job: file=%s", descriptor.file_ref)
        return job_error_message(IngestErrorCode.WORKER_ERROR, str(e))


def _raise_system_exit(signum, frame) -> None:
    raise SystemExit(128 + signum)


def _job_entrypoint(conn: Connection, descriptor: JobDescriptor) -> None:
    """Target of the spawned job process."""
    signal.signal(signal.SIGTERM, _raise_system_exit)
    logging.basicConfig(level=logging.INFO)

    try:
        conn.send(execute_job(descriptor))
    finally:
        conn.close()


def run_job_isolated(
    file_ref: str | Path,
    declared_type: str,
    *,
    db_path: str | Path | None = None,
    timeout: float | None = JOB_TIMEOUT_SECONDS,
) -> dict[str, Any]:
    """Run one ingestion job in a dedicated process and wait for its message.

    Args:
        file_ref: Path to the file to ingest.
        declared_type: ".csv", ".xlsx" or ".xls".
        db_path: Optional SQLite path override.
        timeout: Optional deadline in seconds; None waits indefinitely.

    Returns:
        The terminal message (JobResult or JobError shape).
    """
    descriptor = JobDescriptor(
        file_ref=str(file_ref),
        declared_type=declared_type,
        db_path=str(db_path) if db_path is not None else None,
    )

    ctx = multiprocessing.get_context("spawn")
    receiver, sender = ctx.Pipe(duplex=False)
    process = ctx.Process(
        target=_job_entrypoint,
        args=(sender, descriptor),
        name="policy-ingest-job",
    )
    process.start()
    # Only the child holds the sending end, so its exit means EOF here
    sender.close()
    logger.info("Started ingestion process pid=%s for file=%s", process.pid, descriptor.file_ref)

    try:
        return _receive_terminal_message(receiver, process, timeout)
    finally:
        receiver.close()
        _teardown(process)


def _receive_terminal_message(
    receiver: Connection,
    process: multiprocessing.process.BaseProcess,
    timeout: float | None,
) -> dict[str, Any]:
    if not receiver.poll(timeout):
        logger.error("Ingestion process pid=%s timed out after %ss", process.pid, timeout)
        process.terminate()
        return job_error_message(
            IngestErrorCode.CONNECTION_ERROR, f"Job timed out after {timeout}s"
        )

    try:
        return receiver.recv()
    except EOFError:
        process.join(JOIN_GRACE_SECONDS)
        logger.error(
            "Ingestion process pid=%s exited without a result (exit code %s)",
            process.pid,
            process.exitcode,
        )
        return job_error_message(
            IngestErrorCode.WORKER_ERROR, f"Worker stopped with exit code {process.exitcode}"
        )


def _teardown(process: multiprocessing.process.BaseProcess) -> None:
    process.join(JOIN_GRACE_SECONDS)
    if process.is_alive():
        logger.warning("Ingestion process pid=%s did not exit, killing it", process.pid)
        process.kill()
        process.join()
    process.close()
