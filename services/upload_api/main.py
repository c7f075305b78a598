"""Policy Ingest - Upload API FastAPI application.

Thin upload layer in front of the ingestion pipeline. It filters and stores
the uploaded file, hands it to an isolated ingestion job, translates the
job's terminal message into an HTTP response and always removes the
temporary file. No row processing happens in this process.

Run with:
    uvicorn services.upload_api.main:app --reload  # dev server only
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Annotated

from fastapi import FastAPI, File, UploadFile
from fastapi.responses import JSONResponse

from policy_ingest.config import DATA_DIR, UPLOAD_DIR
from policy_ingest.errors import IngestError, IngestErrorCode
from policy_ingest.schemas import (
    IngestErrorResponse,
    JobAcceptedResponse,
    JobPendingResponse,
    UploadSuccessResponse,
    is_job_error,
)
from services.upload_api.service import process_upload, queue_upload

logger = logging.getLogger(__name__)

# --- Job runner ---

# None means policy_ingest.worker.run_job_isolated (resolved by the service)
_job_runner = None


def override_job_runner(runner) -> None:
    """Override the job runner for testing."""
    global _job_runner
    _job_runner = runner


# --- Lifespan ---


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler.

    Ensures the data and upload directories exist on startup.
    """
    DATA_DIR.mkdir(parents=True, exist_ok=True)
    UPLOAD_DIR.mkdir(parents=True, exist_ok=True)
    yield


# --- FastAPI App ---


app = FastAPI(
    title="Policy Ingest - Upload API",
    description="Upload CSV / Excel policy exports for ingestion.",
    version="0.1.0",
    lifespan=lifespan,
)


# --- Error Handling ---


def error_code_to_status(error_code: str) -> int:
    """Map error codes to HTTP status codes.

    - UNSUPPORTED_FORMAT -> 400
    - FILE_TOO_LARGE -> 413
    - everything else (job failures) -> 500
    """
    if error_code == IngestErrorCode.UNSUPPORTED_FORMAT:
        return 400
    if error_code == IngestErrorCode.FILE_TOO_LARGE:
        return 413
    return 500


def make_error_response(error_code: str, error_message: str) -> JSONResponse:
    """Create a JSON error response."""
    return JSONResponse(
        status_code=error_code_to_status(error_code),
        content=IngestErrorResponse(
            error_code=error_code,
            error_message=error_message,
        ).model_dump(),
    )


# --- Endpoints ---


@app.post(
    "/v1/ingest/upload",
    response_model=UploadSuccessResponse,
    response_model_by_alias=True,
    response_model_exclude_none=True,
    responses={
        400: {"model": IngestErrorResponse, "description": "Unsupported file type"},
        413: {"model": IngestErrorResponse, "description": "File too large"},
        500: {"model": IngestErrorResponse, "description": "Ingestion failed"},
    },
    summary="Upload and ingest a policy file",
    description="Ingest a CSV or Excel file and wait for the job summary.",
)
def ingest_upload(
    file: Annotated[UploadFile, File(description="CSV or Excel file to ingest")],
):
    """Upload a file and ingest it in an isolated process.

    Declared as a sync endpoint so FastAPI runs it in its threadpool; the
    event loop keeps serving requests while the job runs.
    """
    try:
        message = process_upload(file.file, file.filename, runner=_job_runner)
    except IngestError as e:
        return make_error_response(e.error_code, e.message)
    except Exception:
        # Log full exception server-side, return generic message to client
        logger.exception("Unexpected error during upload ingest")
        return make_error_response(
            IngestErrorCode.WORKER_ERROR,
            "An unexpected error occurred during ingest",
        )

    if is_job_error(message):
        return make_error_response(
            message.get("errorCode", IngestErrorCode.WORKER_ERROR),
            message["error"],
        )

    return UploadSuccessResponse(
        records_processed=message["recordsProcessed"],
        summary=message["summary"],
        row_errors=message.get("rowErrors"),
    )


@app.post(
    "/v1/ingest/jobs",
    status_code=202,
    response_model=JobAcceptedResponse,
    responses={
        400: {"model": IngestErrorResponse, "description": "Unsupported file type"},
        413: {"model": IngestErrorResponse, "description": "File too large"},
        500: {"model": IngestErrorResponse, "description": "Queueing failed"},
    },
    summary="Upload a policy file for queued ingestion",
)
def ingest_queued(
    file: Annotated[UploadFile, File(description="CSV or Excel file to ingest")],
):
    """Store the upload and enqueue its ingestion job on the Huey queue."""
    try:
        task_id = queue_upload(file.file, file.filename)
    except IngestError as e:
        return make_error_response(e.error_code, e.message)
    except Exception:
        logger.exception("Unexpected error while queueing upload")
        return make_error_response(
            IngestErrorCode.WORKER_ERROR,
            "An unexpected error occurred while queueing the upload",
        )
    return JobAcceptedResponse(task_id=task_id)


@app.get(
    "/v1/ingest/jobs/{task_id}",
    summary="Get the result of a queued ingestion job",
    responses={202: {"model": JobPendingResponse, "description": "Job not finished yet"}},
)
def get_queued_job(task_id: str):
    """Return the job's terminal message once available."""
    from policy_ingest.huey_app import get_job_message

    message = get_job_message(task_id)
    if message is None:
        return JSONResponse(
            status_code=202,
            content=JobPendingResponse(task_id=task_id).model_dump(),
        )
    return message


@app.get("/health", summary="Health check")
def health_check():
    """Simple health check endpoint."""
    return {"status": "ok"}
