"""Policy Ingest - Huey task queue configuration.

Huey setup with SQLite backend for queued ingestion jobs. The upload API can
hand a stored file to the queue instead of waiting for the job; the Huey
consumer then runs it through the same isolated per-job process and keeps
the terminal message as the task result.

How to run:
1. Start the upload API:
   uvicorn services.upload_api.main:app --reload

2. Start the Huey consumer (processes queued jobs):
   huey_consumer.py policy_ingest.huey_app.huey
"""

from __future__ import annotations

import logging
from pathlib import Path

from huey import SqliteHuey

from policy_ingest.config import HUEY_DB_PATH, QUEUE_DIR

logger = logging.getLogger(__name__)


def _ensure_queue_dir() -> None:
    """Ensure the queue directory exists."""
    Path(QUEUE_DIR).mkdir(parents=True, exist_ok=True)


# Ensure queue directory exists before creating Huey instance
_ensure_queue_dir()

# SQLite-backed Huey instance (results are stored for polling)
huey = SqliteHuey(
    name="policy_ingest",
    filename=str(HUEY_DB_PATH),
    immediate=False,  # Tasks queued for consumer processing
)


@huey.task()
def ingest_file_task(
    file_ref: str,
    declared_type: str,
    db_path: str | None = None,
    delete_after: bool = False,
) -> dict:
    """Huey task running one ingestion job.

    Args:
        file_ref: Path to the stored upload.
        declared_type: ".csv", ".xlsx" or ".xls".
        db_path: Optional SQLite path override.
        delete_after: Remove file_ref once the job has finished.

    Returns:
        The job's terminal message (stored as the task result).
    """
    # Import here to avoid spawning machinery at module import
    from policy_ingest.worker import run_job_isolated

    logger.info("Ingest task started for file=%s", file_ref)
    try:
        message = run_job_isolated(file_ref, declared_type, db_path=db_path)
    finally:
        if delete_after:
            try:
                Path(file_ref).unlink()
            except OSError:
                logger.warning("Could not delete uploaded file %s", file_ref, exc_info=True)
    logger.info("Ingest task finished for file=%s: %s", file_ref, message)
    return message


def enqueue_ingest_job(
    file_ref: str | Path,
    declared_type: str,
    delete_after: bool = True,
) -> str:
    """Enqueue an ingestion job.

    Non-blocking: returns immediately even if the Huey consumer is not
    running. The task is persisted in SQLite and processed when it starts.

    Args:
        file_ref: Path to the stored upload.
        declared_type: ".csv", ".xlsx" or ".xls".
        delete_after: Remove the file once the job has finished.

    Returns:
        The Huey task id.
    """
    logger.info("Enqueueing ingest job for file=%s", file_ref)
    result = ingest_file_task(str(file_ref), declared_type, delete_after=delete_after)
    return result.id


def get_job_message(task_id: str) -> dict | None:
    """Return the terminal message of a queued job, or None while pending."""
    return huey.result(task_id, preserve=True)
