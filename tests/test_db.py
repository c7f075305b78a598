"""Tests for policy_ingest.db module."""

import pytest
from sqlalchemy import inspect, text

from policy_ingest.db import get_database_url, init_db, job_store
from policy_ingest.errors import StoreConnectionError


class TestInitDb:
    """Tests for database initialization."""

    def test_creates_database_file(self, temp_db):
        """init_db should create the database file."""
        db_path, _, _ = temp_db
        assert db_path.exists()

    def test_creates_all_tables(self, temp_db):
        """init_db should create one table per entity kind."""
        _, engine, _ = temp_db

        tables = inspect(engine).get_table_names()

        for table in ("agents", "users", "accounts", "lines_of_business", "carriers", "policies"):
            assert table in tables

    def test_idempotent(self, temp_db):
        """init_db should be safe to call multiple times."""
        db_path, _, _ = temp_db

        engine2, _ = init_db(db_path)

        assert "policies" in inspect(engine2).get_table_names()
        engine2.dispose()


class TestDatabaseUrl:
    """Tests for URL resolution."""

    def test_explicit_path_wins(self, tmp_dir):
        with pytest.MonkeyPatch.context() as mp:
            mp.setattr("policy_ingest.db.DATABASE_URL", "postgresql://example/db")
            assert get_database_url(tmp_dir / "x.db") == f"sqlite:///{tmp_dir / 'x.db'}"

    def test_configured_url(self):
        with pytest.MonkeyPatch.context() as mp:
            mp.setattr("policy_ingest.db.DATABASE_URL", "postgresql://example/db")
            assert get_database_url() == "postgresql://example/db"


class TestJobStore:
    """Tests for the per-job store scope."""

    def test_creates_schema_and_yields_session(self, tmp_dir):
        db_path = tmp_dir / "fresh.db"

        with job_store(db_path) as session:
            assert session.execute(text("SELECT count(*) FROM policies")).scalar_one() == 0

    def test_unreachable_store(self, tmp_dir):
        with pytest.raises(StoreConnectionError):
            with job_store(tmp_dir):
                pass

    def test_creates_missing_data_directory(self, tmp_dir):
        db_path = tmp_dir / "data" / "nested" / "store.db"

        with job_store(db_path) as session:
            session.execute(text("SELECT 1"))

        assert db_path.exists()
