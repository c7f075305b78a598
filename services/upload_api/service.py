"""Policy Ingest - Upload service logic.

The upload layer in front of the ingestion pipeline:
- Extension filter (.csv, .xlsx, .xls) and size limit (MAX_UPLOAD_BYTES)
- Streaming the upload to a file the isolated job can open
- Running the job (synchronously or through the Huey queue)
- Deleting the temporary file regardless of the job outcome

NO row processing here; that lives in policy_ingest.
"""

from __future__ import annotations

import logging
import tempfile
import uuid
from pathlib import Path
from typing import TYPE_CHECKING, Any

from policy_ingest.config import MAX_UPLOAD_BYTES, UPLOAD_DIR
from policy_ingest.errors import IngestError, IngestErrorCode, UnsupportedFormatError
from policy_ingest.readers import normalize_file_type

if TYPE_CHECKING:
    from collections.abc import Callable
    from typing import BinaryIO

logger = logging.getLogger(__name__)

CHUNK_SIZE = 65536


class FileTooLargeError(IngestError):
    """Upload exceeds MAX_UPLOAD_BYTES."""

    def __init__(self, limit: int):
        super().__init__(IngestErrorCode.FILE_TOO_LARGE, f"File exceeds the {limit} byte limit")


class UploadFailedError(IngestError):
    """The upload could not be stored or queued."""

    def __init__(self, reason: str):
        super().__init__(IngestErrorCode.WORKER_ERROR, f"Upload failed: {reason}")


def declared_type_for(filename: str | None) -> str:
    """Derive the declared file type from an uploaded filename.

    Raises:
        UnsupportedFormatError: If the extension is not .csv, .xlsx or .xls.
    """
    suffix = Path(filename or "").suffix.lower()
    if not suffix:
        raise UnsupportedFormatError(filename or "")
    return normalize_file_type(suffix)


def save_upload_stream(
    stream: BinaryIO,
    suffix: str,
    dest_dir: str | Path | None = None,
    max_bytes: int | None = None,
) -> Path:
    """Write an upload stream to a new file, enforcing the size limit.

    Args:
        stream: File-like object with read() method.
        suffix: File suffix, e.g. ".csv".
        dest_dir: Directory for the file; system temp dir when None.
        max_bytes: Maximum accepted size; MAX_UPLOAD_BYTES when None.

    Returns:
        Path of the written file. The caller owns (and must delete) it.

    Raises:
        FileTooLargeError: If the stream is larger than max_bytes.
        UploadFailedError: If the file cannot be written.
    """
    if max_bytes is None:
        max_bytes = MAX_UPLOAD_BYTES

    try:
        if dest_dir is not None:
            Path(dest_dir).mkdir(parents=True, exist_ok=True)
            dest_path = Path(dest_dir) / f"{uuid.uuid4().hex}{suffix}"
            fh = open(dest_path, "wb")
        else:
            fh = tempfile.NamedTemporaryFile(delete=False, suffix=suffix)
            dest_path = Path(fh.name)
    except OSError as e:
        raise UploadFailedError(f"Failed to create upload file: {e}") from e

    written = 0
    try:
        with fh:
            while True:
                chunk = stream.read(CHUNK_SIZE)
                if not chunk:
                    break
                written += len(chunk)
                if written > max_bytes:
                    raise FileTooLargeError(max_bytes)
                fh.write(chunk)
    except FileTooLargeError:
        _unlink_quietly(dest_path)
        raise
    except OSError as e:
        _unlink_quietly(dest_path)
        raise UploadFailedError(f"Failed to write upload: {e}") from e

    return dest_path


def process_upload(
    stream: BinaryIO,
    filename: str | None,
    runner: Callable[..., dict[str, Any]] | None = None,
    db_path: str | Path | None = None,
) -> dict[str, Any]:
    """Store an upload, ingest it in an isolated process, and clean up.

    Args:
        stream: Uploaded file stream.
        filename: Original filename (its extension is the declared type).
        runner: Job runner; defaults to policy_ingest.worker.run_job_isolated.
        db_path: Optional SQLite path override passed to the runner.

    Returns:
        The job's terminal message.

    Raises:
        UnsupportedFormatError: If the extension is not accepted.
        FileTooLargeError: If the upload is too large.
        UploadFailedError: If the upload cannot be stored.
    """
    declared_type = declared_type_for(filename)
    if runner is None:
        from policy_ingest.worker import run_job_isolated

        runner = run_job_isolated

    tmp_path = save_upload_stream(stream, declared_type)
    try:
        return runner(tmp_path, declared_type, db_path=db_path)
    finally:
        # Always cleanup temp file
        _unlink_quietly(tmp_path)


def queue_upload(stream: BinaryIO, filename: str | None) -> str:
    """Store an upload under UPLOAD_DIR and enqueue its ingestion job.

    The queued task deletes the file once the job finishes.

    Returns:
        The Huey task id.
    """
    declared_type = declared_type_for(filename)
    stored_path = save_upload_stream(stream, declared_type, dest_dir=UPLOAD_DIR)

    try:
        from policy_ingest.huey_app import enqueue_ingest_job

        return enqueue_ingest_job(stored_path, declared_type, delete_after=True)
    except Exception as e:
        _unlink_quietly(stored_path)
        raise UploadFailedError(f"Failed to enqueue ingestion job: {e}") from e


def _unlink_quietly(path: Path) -> None:
    try:
        path.unlink()
    except OSError:
        logger.warning("Error deleting uploaded file %s", path, exc_info=True)
