"""
Unit tests for the PostgreSQL store and the job log lifecycle
"""

import asyncio
import pytest
from datetime import datetime
from unittest.mock import AsyncMock, MagicMock
from sqlalchemy.exc import IntegrityError, OperationalError
from core.exceptions import (
    DatabaseConnectionError,
    DatabaseError,
    JobLogError,
    OrchestrationFatalError,
)
from ingestion.loaders.job_log import JobLogger
from ingestion.loaders.postgres_store import PostgresStore
from models.base import JobStatus, JobType
from models.raw_data import RawData


def session_factory(session):
    factory = MagicMock()
    factory.return_value.__aenter__ = AsyncMock(return_value=session)
    factory.return_value.__aexit__ = AsyncMock(return_value=False)
    return factory


def mock_session(execute_result=None):
    session = AsyncMock()
    session.add = MagicMock()
    session.execute = AsyncMock(return_value=execute_result)
    session.commit = AsyncMock()
    return session


class TestPostgresStore:
    """Test PostgreSQL store operations against a mocked session"""

    @pytest.mark.asyncio
    async def test_insert_raw_commits_and_returns_id(self):
        session = mock_session()

        def assign_id(record):
            record.id = 7

        session.add.side_effect = assign_id
        store = PostgresStore(session_factory(session))

        record = RawData(source="youtube", source_id="c1", payload={"comment": {}})
        result = await store.insert_raw(record)

        assert result == 7
        session.add.assert_called_once_with(record)
        session.commit.assert_called_once()

    @pytest.mark.asyncio
    async def test_mark_raw_processed_skips_empty_list(self):
        factory = session_factory(mock_session())
        store = PostgresStore(factory)

        await store.mark_raw_processed([], datetime.utcnow())

        factory.assert_not_called()

    @pytest.mark.asyncio
    async def test_close_job_log_requires_running_row(self):
        session = mock_session(execute_result=MagicMock(rowcount=0))
        store = PostgresStore(session_factory(session))

        with pytest.raises(JobLogError):
            await store.close_job_log("job-1", "completed", datetime.utcnow(), 3)

    @pytest.mark.asyncio
    async def test_close_job_log_updates_running_row(self):
        session = mock_session(execute_result=MagicMock(rowcount=1))
        store = PostgresStore(session_factory(session))

        await store.close_job_log("job-1", "completed", datetime.utcnow(), 3, metadata={"sources": []})

        session.execute.assert_called_once()
        session.commit.assert_called_once()

    @pytest.mark.asyncio
    async def test_operational_error_is_connection_error(self):
        session = mock_session()
        session.execute.side_effect = OperationalError("SELECT 1", {}, Exception("connection refused"))
        store = PostgresStore(session_factory(session))

        with pytest.raises(DatabaseConnectionError) as exc_info:
            await store.ping()

        assert exc_info.value.retryable is True
        assert exc_info.value.context["operation"] == "ping"

    @pytest.mark.asyncio
    async def test_other_sqlalchemy_errors_are_database_errors(self):
        session = mock_session()
        session.commit.side_effect = IntegrityError("INSERT", {}, Exception("duplicate key"))
        store = PostgresStore(session_factory(session))

        with pytest.raises(DatabaseError) as exc_info:
            await store.insert_processed(MagicMock())

        assert not isinstance(exc_info.value, DatabaseConnectionError)
        assert exc_info.value.context["table_name"] == "processed_data"

    @pytest.mark.asyncio
    async def test_slow_operation_times_out(self):
        async def slow(*args, **kwargs):
            await asyncio.sleep(1)

        session = mock_session()
        session.execute.side_effect = slow
        store = PostgresStore(session_factory(session), timeout_seconds=0.01)

        with pytest.raises(DatabaseConnectionError):
            await store.raw_exists("youtube", "c1")

    @pytest.mark.asyncio
    async def test_acquire_lease_compares_returned_holder(self):
        result = MagicMock()
        result.scalar_one_or_none.return_value = "job-1"
        store = PostgresStore(session_factory(mock_session(execute_result=result)))

        assert await store.acquire_lease("etl_pipeline", "job-1", 60) is True

        result.scalar_one_or_none.return_value = None
        assert await store.acquire_lease("etl_pipeline", "job-2", 60) is False


class TestJobLogger:
    """Test job log transitions"""

    @pytest.mark.asyncio
    async def test_open_then_close_completed(self, store):
        job_log = JobLogger(store)

        await job_log.open(JobType.FULL_RUN, "job-1", metadata={"sources": ["youtube"]})
        assert job_log.is_open
        assert store.job_logs["job-1"]["status"] == "running"

        await job_log.close(JobStatus.COMPLETED, records_processed=4, error_message="ignored")

        log = store.job_logs["job-1"]
        assert log["status"] == "completed"
        assert log["records_processed"] == 4
        assert log["error_message"] is None
        assert log["end_time"] >= log["start_time"]

    @pytest.mark.asyncio
    async def test_failed_close_always_has_message(self, store):
        job_log = JobLogger(store)
        await job_log.open(JobType.EXTRACT, "job-2")

        await job_log.close(JobStatus.FAILED, records_processed=0)

        assert store.job_logs["job-2"]["error_message"] == "unknown error"

    @pytest.mark.asyncio
    async def test_close_twice_rejected(self, store):
        job_log = JobLogger(store)
        await job_log.open(JobType.FULL_RUN, "job-3")
        await job_log.close(JobStatus.COMPLETED, records_processed=0)

        with pytest.raises(JobLogError):
            await job_log.close(JobStatus.FAILED, records_processed=0, error_message="late")

        assert store.job_logs["job-3"]["status"] == "completed"

    @pytest.mark.asyncio
    async def test_invalid_transitions_rejected(self, store):
        job_log = JobLogger(store)

        with pytest.raises(JobLogError):
            await job_log.close(JobStatus.COMPLETED, records_processed=0)

        await job_log.open(JobType.FULL_RUN, "job-4")

        with pytest.raises(JobLogError):
            await job_log.open(JobType.FULL_RUN, "job-4")
        with pytest.raises(JobLogError):
            await job_log.close(JobStatus.RUNNING, records_processed=0)
        with pytest.raises(JobLogError):
            await job_log.close(JobStatus.COMPLETED, records_processed=-1)

    @pytest.mark.asyncio
    async def test_store_failure_is_fatal(self, store):
        store.reachable = False

        with pytest.raises(OrchestrationFatalError):
            await JobLogger(store).open(JobType.FULL_RUN, "job-5")

        assert store.job_logs == {}
