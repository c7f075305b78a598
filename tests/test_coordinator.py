"""Tests for policy_ingest.coordinator (one ingestion job, in-process)."""

from pathlib import Path
from unittest import mock

import pytest
from sqlalchemy import func, select

from policy_ingest import rows as rows_module
from policy_ingest.coordinator import JobResult, JobSummary, error_to_message, run_job
from policy_ingest.errors import (
    EmptyDatasetError,
    FileReadError,
    StoreConnectionError,
    UnsupportedFormatError,
)
from policy_ingest.models import Agent, Carrier, Policy, User
from policy_ingest.upserter import EntityKind
from tests.conftest import HEADER, make_row, write_csv, write_xlsx

FIXTURES = Path(__file__).parent / "fixtures"


def _count(SessionFactory, model) -> int:
    session = SessionFactory()
    try:
        return session.execute(select(func.count()).select_from(model)).scalar_one()
    finally:
        session.close()


def _failing_upsert(kind_to_fail, key_to_fail, message):
    """Wrap upsert so one (kind, key) pair raises."""
    real_upsert = rows_module.upsert

    def upsert(session, kind, natural_key_value, fields=None):
        if kind == kind_to_fail and natural_key_value == key_to_fail:
            raise RuntimeError(message)
        return real_upsert(session, kind, natural_key_value, fields)

    return upsert


class TestRunJob:
    """Tests for a job that runs to completion."""

    def test_counts_every_applied_row(self, temp_db, sample_csv):
        db_path, _, SessionFactory = temp_db

        result = run_job(sample_csv, ".csv", db_path)

        assert result.records_processed == 3
        assert result.summary == JobSummary(
            agents=3, users=3, accounts=3, lobs=3, carriers=3, policies=3, errors=0
        )
        assert result.row_errors == []

        # Counters count writes, the store holds distinct entities
        assert _count(SessionFactory, Agent) == 2
        assert _count(SessionFactory, User) == 2
        assert _count(SessionFactory, Policy) == 3

    def test_rerun_is_idempotent(self, temp_db, sample_csv):
        """Ingesting the same file twice leaves the same stored state."""
        db_path, _, SessionFactory = temp_db

        first = run_job(sample_csv, ".csv", db_path)
        counts = [_count(SessionFactory, m) for m in (Agent, User, Carrier, Policy)]
        second = run_job(sample_csv, ".csv", db_path)

        assert second.summary == first.summary
        assert [_count(SessionFactory, m) for m in (Agent, User, Carrier, Policy)] == counts

    def test_row_failure_does_not_stop_job(self, temp_db, sample_csv):
        """Row 2 fails; rows 1 and 3 are still applied."""
        db_path, _, SessionFactory = temp_db

        with mock.patch.object(
            rows_module,
            "upsert",
            _failing_upsert(EntityKind.USER, "torie@example.com", "duplicate key"),
        ):
            result = run_job(sample_csv, ".csv", db_path)

        assert result.records_processed == 3
        assert result.summary.errors == 1
        assert result.summary.policies == 2
        assert result.summary.agents == 2
        assert result.row_errors == ["Row 2: duplicate key"]

        # Row 2 rolled back entirely, including its agent and user
        session = SessionFactory()
        try:
            emails = session.execute(select(User.email)).scalars().all()
            agents = session.execute(select(Agent.name)).scalars().all()
        finally:
            session.close()
        assert emails == ["lura@example.com"]
        assert agents == ["Alex Watts"]

    def test_every_row_failing_still_completes(self, temp_db, tmp_dir):
        db_path, _, _ = temp_db
        path = write_csv(tmp_dir / "bad.csv", [make_row(), make_row()])

        with mock.patch.object(
            rows_module,
            "upsert",
            _failing_upsert(EntityKind.AGENT, "Alex Watts", "agent rejected"),
        ):
            result = run_job(path, ".csv", db_path)

        assert result.records_processed == 2
        assert result.summary.errors == 2
        assert result.summary.agents == 0
        assert result.row_errors == ["Row 1: agent rejected", "Row 2: agent rejected"]

    def test_xlsx_file(self, temp_db, tmp_dir):
        db_path, _, SessionFactory = temp_db
        row = make_row()
        path = write_xlsx(tmp_dir / "policies.xlsx", [[row[col] for col in HEADER]])

        result = run_job(path, ".xlsx", db_path)

        assert result.records_processed == 1
        assert result.summary.policies == 1
        assert _count(SessionFactory, Policy) == 1

    def test_xls_file(self, temp_db):
        """Only agents are written: the sheet has no First Name column."""
        db_path, _, SessionFactory = temp_db

        result = run_job(FIXTURES / "policies.xls", ".xls", db_path)

        assert result.records_processed == 2
        assert result.summary == JobSummary(agents=2)
        assert _count(SessionFactory, Agent) == 2

    def test_missing_columns_write_only_present_kinds(self, temp_db, tmp_dir):
        db_path, _, _ = temp_db
        path = write_csv(
            tmp_dir / "carriers.csv",
            [{"Carrier": "Lloyds"}, {"Carrier": "Integon Gen Ins Corp"}],
            header=["Carrier"],
        )

        result = run_job(path, ".csv", db_path)

        assert result.summary == JobSummary(carriers=2)


class TestRunJobFailures:
    """Tests for job-fatal errors."""

    def test_header_only_file_is_empty_dataset(self, temp_db, tmp_dir):
        db_path, _, _ = temp_db
        path = write_csv(tmp_dir / "empty.csv", [])

        with pytest.raises(EmptyDatasetError) as exc_info:
            run_job(path, ".csv", db_path)
        assert exc_info.value.error_code == "EMPTY_DATASET"

    def test_zero_byte_file_is_empty_dataset(self, temp_db, tmp_dir):
        db_path, _, _ = temp_db
        path = tmp_dir / "zero.csv"
        path.write_bytes(b"")

        with pytest.raises(EmptyDatasetError):
            run_job(path, ".csv", db_path)

    def test_unsupported_type(self, temp_db, sample_csv):
        db_path, _, _ = temp_db

        with pytest.raises(UnsupportedFormatError):
            run_job(sample_csv, ".json", db_path)

    def test_unreadable_file(self, temp_db, tmp_dir):
        db_path, _, _ = temp_db

        with pytest.raises(FileReadError):
            run_job(tmp_dir / "missing.csv", ".csv", db_path)

    def test_store_unavailable(self, tmp_dir, sample_csv):
        """No row is processed when the store cannot be reached."""
        # A directory cannot be opened as a database file
        db_path = tmp_dir

        with pytest.raises(StoreConnectionError) as exc_info:
            run_job(sample_csv, ".csv", db_path)

        assert exc_info.value.error_code == "CONNECTION_ERROR"
        assert exc_info.value.message.startswith("Failed to connect to database")


class TestMessages:
    """Tests for terminal message rendering."""

    def test_result_message_without_errors(self):
        result = JobResult(records_processed=2, summary=JobSummary(agents=2, users=1))

        assert result.to_message() == {
            "recordsProcessed": 2,
            "summary": {
                "agents": 2,
                "users": 1,
                "accounts": 0,
                "lobs": 0,
                "carriers": 0,
                "policies": 0,
                "errors": 0,
            },
        }

    def test_result_message_with_errors(self):
        result = JobResult(
            records_processed=3,
            summary=JobSummary(errors=1),
            row_errors=["Row 2: boom"],
        )

        message = result.to_message()

        assert message["rowErrors"] == ["Row 2: boom"]
        assert message["summary"]["errors"] == 1

    def test_error_message(self):
        message = error_to_message(EmptyDatasetError("policies.csv"))

        assert message == {
            "error": "No data found in file: policies.csv",
            "errorCode": "EMPTY_DATASET",
            "recordsProcessed": 0,
            "summary": {},
        }
