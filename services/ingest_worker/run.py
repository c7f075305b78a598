"""Policy Ingest - Ingestion worker command line.

Runs one ingestion job for a local file in an isolated process and prints
its terminal message as JSON.

Usage:
    python -m services.ingest_worker.run policies.xlsx
    python -m services.ingest_worker.run export.txt --type .csv --db /tmp/test.db

Exit codes:
- 0: job completed (row errors, if any, are listed in the output)
- 1: job failed as a whole
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from policy_ingest.config import JOB_TIMEOUT_SECONDS
from policy_ingest.schemas import is_job_error
from policy_ingest.worker import run_job_isolated

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Ingest a CSV or Excel policy file.")
    parser.add_argument("file", type=Path, help="File to ingest")
    parser.add_argument(
        "--type",
        dest="declared_type",
        default=None,
        help="Declared file type (.csv, .xlsx, .xls); defaults to the file extension",
    )
    parser.add_argument("--db", dest="db_path", default=None, help="SQLite database path")
    parser.add_argument(
        "--timeout",
        type=float,
        default=JOB_TIMEOUT_SECONDS,
        help="Abort the job after this many seconds",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    declared_type = args.declared_type or args.file.suffix.lower()

    message = run_job_isolated(
        args.file,
        declared_type,
        db_path=args.db_path,
        timeout=args.timeout,
    )
    print(json.dumps(message, indent=2))

    if is_job_error(message):
        logger.error("Ingestion failed: %s", message["error"])
        return 1
    return 0


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    sys.exit(main())
