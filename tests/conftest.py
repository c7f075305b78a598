"""Shared pytest fixtures for Policy Ingest tests.

This module contains common fixtures used across multiple test files,
reducing duplication and improving test maintainability.
"""

import csv
import tempfile
from pathlib import Path

import openpyxl
import pytest
from fastapi.testclient import TestClient

from policy_ingest.db import init_db

HEADER = [
    "Agent",
    "First Name",
    "Email",
    "DOB",
    "Address",
    "Phone",
    "State",
    "Zip",
    "Gender",
    "User Type",
    "Account Name",
    "Category",
    "Carrier",
    "Policy Number",
    "Start Date",
    "End Date",
]


def make_row(overrides: dict | None = None) -> dict:
    """Build a complete, valid row record, with some columns replaced."""
    row = {
        "Agent": "Alex Watts",
        "First Name": "Lura",
        "Email": "lura@example.com",
        "DOB": "03/15/1990",
        "Address": "170 MATTHEWS DR",
        "Phone": "8677356559",
        "State": "SC",
        "Zip": "29702",
        "Gender": "",
        "User Type": "Active Client",
        "Account Name": "Lura Lucca & Owen Dodson",
        "Category": "Commercial Auto",
        "Carrier": "Integon Gen Ins Corp",
        "Policy Number": "YEEX9MOIBU7X",
        "Start Date": "11/02/2018",
        "End Date": "11/02/2019",
    }
    row.update(overrides or {})
    return row


def write_csv(path: Path, rows: list[dict], header: list[str] = HEADER) -> Path:
    """Write rows to a CSV file with the given header."""
    with open(path, "w", newline="", encoding="utf-8") as fh:
        writer = csv.DictWriter(fh, fieldnames=header, extrasaction="ignore")
        writer.writeheader()
        for row in rows:
            writer.writerow(row)
    return path


def write_xlsx(path: Path, rows: list[list], header: list[str] = HEADER) -> Path:
    """Write raw cell values to the first sheet of an XLSX workbook."""
    workbook = openpyxl.Workbook()
    sheet = workbook.active
    sheet.append(header)
    for values in rows:
        sheet.append(values)
    workbook.save(path)
    return path


@pytest.fixture
def tmp_dir():
    """Temporary directory removed after the test."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def temp_db(tmp_dir):
    """Create a temporary database for testing.

    Creates an isolated SQLite database in a temporary directory.
    The database is cleaned up after the test completes.

    Yields:
        tuple: (db_path, engine, SessionFactory)
    """
    db_path = tmp_dir / "test.db"
    engine, SessionFactory = init_db(db_path)
    yield db_path, engine, SessionFactory
    engine.dispose()


@pytest.fixture
def session(temp_db):
    """A session on the temporary database, closed after the test."""
    _, _, SessionFactory = temp_db
    session = SessionFactory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def sample_csv(tmp_dir):
    """A three-row CSV file covering every entity kind."""
    rows = [
        make_row(),
        make_row(
            {
                "Agent": "Dana Ruiz",
                "First Name": "Torie",
                "Email": "torie@example.com",
                "Account Name": "Torie Buchanan",
                "Category": "Commercial General Liability",
                "Carrier": "Lloyds",
                "Policy Number": "CLM100",
            }
        ),
        make_row({"Policy Number": "YEEX9MOIBU7Y", "Start Date": "2019-11-02"}),
    ]
    return write_csv(tmp_dir / "policies.csv", rows)


@pytest.fixture
def client(tmp_dir):
    """Create a FastAPI test client whose jobs run in-process.

    The job runner is replaced with the in-process coordinator pointed at a
    temporary database, so endpoint tests do not spawn processes.

    Yields:
        tuple: (test_client, db_path)
    """
    from policy_ingest.worker import JobDescriptor, execute_job
    from services.upload_api.main import app, override_job_runner

    db_path = tmp_dir / "api.db"

    def run_in_process(file_ref, declared_type, **kwargs):
        return execute_job(JobDescriptor(str(file_ref), declared_type, str(db_path)))

    override_job_runner(run_in_process)

    with TestClient(app) as test_client:
        yield test_client, db_path

    override_job_runner(None)
