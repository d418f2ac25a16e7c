"""
PostgreSQL implementation of the pipeline store.

Every operation runs in its own short-lived session so concurrent source
tasks never share one, and is bounded by the persistence timeout.
"""

import asyncio
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar
from sqlalchemy import delete, or_, select, text, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import InterfaceError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from core.exceptions import DatabaseConnectionError, DatabaseError, JobLogError
from models.base import JobStatus
from models.etl_log import ETLLog
from models.lease import ETLLease
from models.processed_data import ProcessedData
from models.raw_data import RawData
import logging

logger = logging.getLogger(__name__)

T = TypeVar("T")


class PostgresStore:
    """
    Pipeline persistence on SQLAlchemy async sessions.

    Ensures:
    - raw_data rows are only ever inserted (payload never updated)
    - job logs close exactly once (UPDATE ... WHERE status = 'running')
    - the run lease is taken atomically with INSERT ... ON CONFLICT
    """

    def __init__(self, session_factory: async_sessionmaker, timeout_seconds: float = 10.0):
        self.session_factory = session_factory
        self.timeout_seconds = timeout_seconds

    async def _run(
        self,
        operation: str,
        table_name: str,
        work: Callable[[AsyncSession], Awaitable[T]]
    ) -> T:
        context = {"operation": operation, "table_name": table_name}

        async def _in_session() -> T:
            async with self.session_factory() as session:
                return await work(session)

        try:
            return await asyncio.wait_for(_in_session(), timeout=self.timeout_seconds)
        except asyncio.TimeoutError as e:
            raise DatabaseConnectionError(
                f"{operation} timed out after {self.timeout_seconds}s",
                context=context,
                original_exception=e
            )
        except (OSError, InterfaceError, OperationalError) as e:
            raise DatabaseConnectionError(
                f"Database unreachable during {operation}",
                context=context,
                original_exception=e
            )
        except SQLAlchemyError as e:
            raise DatabaseError(f"{operation} failed", context=context, original_exception=e)

    # --------------------------------------------------
    # Health
    # --------------------------------------------------

    async def ping(self) -> None:
        async def work(session):
            await session.execute(text("SELECT 1"))

        await self._run("ping", "-", work)

    # --------------------------------------------------
    # Raw data
    # --------------------------------------------------

    async def insert_raw(self, record: RawData) -> int:
        async def work(session):
            session.add(record)
            await session.commit()
            return record.id

        return await self._run("insert_raw", "raw_data", work)

    async def raw_exists(self, source: str, external_id: str) -> bool:
        async def work(session):
            result = await session.execute(
                select(RawData.id)
                .where(RawData.source == source, RawData.source_id == external_id)
                .limit(1)
            )
            return result.scalar_one_or_none() is not None

        return await self._run("raw_exists", "raw_data", work)

    async def list_unprocessed_raw(self, source: str, limit: int) -> List[RawData]:
        async def work(session):
            result = await session.execute(
                select(RawData)
                .where(RawData.source == source, RawData.processed.is_(False))
                .order_by(RawData.extracted_at, RawData.id)
                .limit(limit)
            )
            return list(result.scalars().all())

        return await self._run("list_unprocessed_raw", "raw_data", work)

    async def mark_raw_processed(self, raw_ids: List[int], processed_at: datetime) -> None:
        if not raw_ids:
            return

        async def work(session):
            await session.execute(
                update(RawData)
                .where(RawData.id.in_(raw_ids))
                .values(processed=True, processed_at=processed_at, updated_at=processed_at)
            )
            await session.commit()

        await self._run("mark_raw_processed", "raw_data", work)

    # --------------------------------------------------
    # Processed data
    # --------------------------------------------------

    async def insert_processed(self, record: ProcessedData) -> int:
        async def work(session):
            session.add(record)
            await session.commit()
            return record.id

        return await self._run("insert_processed", "processed_data", work)

    async def list_processed_batch(
        self,
        after_id: int,
        limit: int,
        source: Optional[str] = None,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None
    ) -> List[ProcessedData]:
        async def work(session):
            query = select(ProcessedData).where(ProcessedData.id > after_id)
            if source:
                query = query.where(ProcessedData.source == source)
            if since:
                query = query.where(ProcessedData.processed_at >= since)
            if until:
                query = query.where(ProcessedData.processed_at <= until)
            result = await session.execute(query.order_by(ProcessedData.id).limit(limit))
            return list(result.scalars().all())

        return await self._run("list_processed_batch", "processed_data", work)

    async def update_sentiment(
        self, record_id: int, sentiment: str, score: float, confidence: float
    ) -> None:
        async def work(session):
            await session.execute(
                update(ProcessedData)
                .where(ProcessedData.id == record_id)
                .values(
                    sentiment=sentiment,
                    sentiment_score=score,
                    sentiment_confidence=confidence,
                    updated_at=datetime.utcnow()
                )
            )
            await session.commit()

        await self._run("update_sentiment", "processed_data", work)

    # --------------------------------------------------
    # Job logs
    # --------------------------------------------------

    async def open_job_log(
        self, job_id: str, job_type: str, start_time: datetime, metadata: Optional[Dict[str, Any]] = None
    ) -> None:
        async def work(session):
            session.add(ETLLog(
                job_id=job_id,
                job_type=job_type,
                status=JobStatus.RUNNING.value,
                start_time=start_time,
                records_processed=0,
                job_metadata=metadata or {},
                created_at=start_time,
            ))
            await session.commit()

        await self._run("open_job_log", "etl_logs", work)

    async def close_job_log(
        self,
        job_id: str,
        status: str,
        end_time: datetime,
        records_processed: int,
        error_message: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> None:
        async def work(session):
            values = {
                "status": status,
                "end_time": end_time,
                "records_processed": records_processed,
                "error_message": error_message,
            }
            if metadata is not None:
                values["job_metadata"] = metadata

            result = await session.execute(
                update(ETLLog)
                .where(ETLLog.job_id == job_id, ETLLog.status == JobStatus.RUNNING.value)
                .values(**values)
            )
            await session.commit()
            return result.rowcount

        updated = await self._run("close_job_log", "etl_logs", work)
        if not updated:
            raise JobLogError(
                "Job log is not open",
                context={"job_id": job_id, "status": status}
            )

    # --------------------------------------------------
    # Run lease
    # --------------------------------------------------

    async def acquire_lease(self, name: str, holder: str, ttl_seconds: int) -> bool:
        async def work(session):
            now = datetime.utcnow()
            stmt = insert(ETLLease).values(
                name=name,
                holder=holder,
                acquired_at=now,
                expires_at=now + timedelta(seconds=ttl_seconds)
            )
            # Take over only leases whose holder stopped renewing them
            stmt = stmt.on_conflict_do_update(
                index_elements=[ETLLease.name],
                set_={
                    "holder": stmt.excluded.holder,
                    "acquired_at": stmt.excluded.acquired_at,
                    "expires_at": stmt.excluded.expires_at,
                },
                where=or_(ETLLease.expires_at < now, ETLLease.holder == holder)
            ).returning(ETLLease.holder)

            result = await session.execute(stmt)
            acquired_by = result.scalar_one_or_none()
            await session.commit()
            return acquired_by == holder

        return await self._run("acquire_lease", "etl_leases", work)

    async def renew_lease(self, name: str, holder: str, ttl_seconds: int) -> bool:
        async def work(session):
            result = await session.execute(
                update(ETLLease)
                .where(ETLLease.name == name, ETLLease.holder == holder)
                .values(expires_at=datetime.utcnow() + timedelta(seconds=ttl_seconds))
            )
            await session.commit()
            return result.rowcount > 0

        return await self._run("renew_lease", "etl_leases", work)

    async def release_lease(self, name: str, holder: str) -> None:
        async def work(session):
            await session.execute(
                delete(ETLLease).where(ETLLease.name == name, ETLLease.holder == holder)
            )
            await session.commit()

        await self._run("release_lease", "etl_leases", work)

    async def lease_holder(self, name: str) -> Optional[str]:
        async def work(session):
            result = await session.execute(
                select(ETLLease.holder).where(
                    ETLLease.name == name,
                    ETLLease.expires_at >= datetime.utcnow()
                )
            )
            return result.scalar_one_or_none()

        return await self._run("lease_holder", "etl_leases", work)
