# ============================================================================
# File: ingestion/runner.py
# Description: ETL orchestrator with single-active-run lease and per-source isolation
# ============================================================================
"""
ETL Orchestrator - sequences Extract → Transform for every configured source.

This module provides:
- Mutual exclusion across server instances via the etl_leases row
- One job log per run, opened before any work and closed exactly once
- Concurrent, isolated per-source processing bounded by a semaphore
- Cooperative cancellation that closes the job log as failed
"""

import asyncio
import time
import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from core.config import Settings
from core.exceptions import (
    ETLException,
    AlreadyRunningError,
    OrchestrationFatalError,
    RunCancelledError,
)
from ingestion.connectors.base import Connector
from ingestion.extraction import ExtractionStage
from ingestion.loaders.job_log import JobLogger
from ingestion.transformation import TransformationStage
from ingestion.transformers.deriver import Deriver
from models.base import JobStatus, JobType
from schemas.etl import RunResult, SourceRunResult, SourceStatus
import logging

logger = logging.getLogger(__name__)

LEASE_NAME = "etl_pipeline"
CANCEL_MESSAGE = "run cancelled"
LEASE_LOST_MESSAGE = "run lease lost"


class OrchestratorState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class ETLOrchestrator:
    """
    Production-grade ETL orchestrator

    States: idle → running → {completed, failed}

    Responsibilities:
    - Refuse to start while another run holds the lease (AlreadyRunningError)
    - Open the job log before touching any source
    - Run every source, capturing failures instead of aborting siblings
    - Merge per-source outcomes and close the job log once
    - Always release the lease
    """

    def __init__(
        self,
        store,
        connectors: List[Connector],
        settings: Settings,
        deriver: Optional[Deriver] = None
    ):
        self.store = store
        self.connectors = connectors
        self.settings = settings
        self.query = settings.ETL_QUERY
        self.concurrency = max(1, settings.ETL_CONCURRENCY)
        self.lease_ttl_seconds = settings.ETL_LEASE_TTL_SECONDS
        self.transform_selection = settings.ETL_TRANSFORM_SELECTION
        self.batch_size = settings.ETL_BATCH_SIZE

        self.extraction = ExtractionStage(
            store,
            timeout_seconds=settings.ETL_TIMEOUT_SECONDS,
            deduplicate=settings.ETL_DEDUPLICATE
        )
        self.transformation = TransformationStage(store, deriver)

        self.state = OrchestratorState.IDLE
        self.current_job_id: Optional[str] = None
        self.last_result: Optional[RunResult] = None
        self._task: Optional[asyncio.Task] = None
        self._cancel_requested = False
        self._lease_lost = False

    @property
    def sources(self) -> List[str]:
        return [connector.source for connector in self.connectors]

    # --------------------------------------------------
    # Lease
    # --------------------------------------------------

    async def _acquire_lease(self, job_id: str) -> None:
        try:
            acquired = await self.store.acquire_lease(LEASE_NAME, job_id, self.lease_ttl_seconds)
            holder = None if acquired else await self.store.lease_holder(LEASE_NAME)
        except ETLException as e:
            raise OrchestrationFatalError(
                "Persistence layer unreachable, run not started",
                context={"job_id": job_id},
                original_exception=e
            )

        if not acquired:
            logger.warning(f"Run {job_id} rejected: run {holder} is in progress")
            raise AlreadyRunningError(
                "An ETL run is already in progress",
                context={"holder": holder}
            )

    async def _release_lease(self, job_id: str) -> None:
        try:
            await self.store.release_lease(LEASE_NAME, job_id)
        except ETLException as e:
            # The lease expires on its own after the TTL
            logger.error(
                f"Could not release lease for {job_id}: {e.message}",
                extra={"error_context": e.to_dict()}
            )

    async def _keep_lease(self, job_id: str) -> None:
        interval = max(0.1, self.lease_ttl_seconds / 3)
        while True:
            await asyncio.sleep(interval)
            try:
                renewed = await self.store.renew_lease(LEASE_NAME, job_id, self.lease_ttl_seconds)
            except ETLException as e:
                logger.warning(f"Lease renewal failed for {job_id}: {e.message}")
                continue

            if not renewed:
                # Another instance may already hold the lease; stop writing
                logger.error(f"Lease for {job_id} was lost, stopping the run")
                self._lease_lost = True
                if self._task is not None and not self._task.done():
                    self._task.cancel()
                return

    # --------------------------------------------------
    # Per-source work
    # --------------------------------------------------

    async def _process_source(
        self,
        connector: Connector,
        job_type: JobType,
        job_id: str,
        semaphore: asyncio.Semaphore
    ) -> SourceRunResult:
        source = connector.source
        outcome = SourceRunResult(source=source)

        async with semaphore:
            started = time.monotonic()
            try:
                records = []
                if job_type in (JobType.FULL_RUN, JobType.EXTRACT):
                    extracted = await self.extraction.run(connector, self.query, job_id)
                    outcome.records_extracted = extracted.records_persisted
                    outcome.duplicates_skipped = extracted.duplicates
                    records = extracted.records

                if job_type == JobType.EXTRACT:
                    outcome.records_processed = outcome.records_extracted
                else:
                    if job_type == JobType.TRANSFORM or self.transform_selection == "unprocessed":
                        records = await self.store.list_unprocessed_raw(source, self.batch_size)

                    transformed = await self.transformation.run(source, records, job_id)
                    outcome.records_processed = transformed.succeeded
                    outcome.records_failed = transformed.failed
                    outcome.average_relevance = transformed.average_relevance
                    outcome.errors.extend(transformed.errors)

            except ETLException as e:
                outcome.status = SourceStatus.FAILED.value
                outcome.retryable = bool(e.retryable)
                outcome.errors.append(e.to_dict())
                logger.error(
                    f"Source {source} failed: {e.message}",
                    extra={"error_context": e.to_dict()}
                )
            except Exception as e:
                outcome.status = SourceStatus.FAILED.value
                outcome.errors.append({
                    "error_type": type(e).__name__,
                    "message": str(e),
                    "retryable": False,
                })
                logger.exception(f"Unexpected error processing source {source}")
            finally:
                outcome.duration_seconds = round(time.monotonic() - started, 3)

        return outcome

    async def _execute(self, job_type: JobType, job_id: str) -> List[SourceRunResult]:
        semaphore = asyncio.Semaphore(self.concurrency)
        return list(await asyncio.gather(*[
            self._process_source(connector, job_type, job_id, semaphore)
            for connector in self.connectors
        ]))

    # --------------------------------------------------
    # Run
    # --------------------------------------------------

    @staticmethod
    def _average_relevance(results: List[SourceRunResult]) -> Optional[float]:
        weighted = [
            (r.average_relevance, r.records_processed) for r in results
            if r.average_relevance is not None and r.records_processed
        ]
        total = sum(count for _, count in weighted)
        if not total:
            return None
        return round(min(1.0, sum(avg * count for avg, count in weighted) / total), 4)

    def _run_metadata(
        self,
        results: List[SourceRunResult],
        elapsed: float,
        average_relevance: Optional[float]
    ) -> Dict[str, Any]:
        return {
            "query": self.query,
            "sources": self.sources,
            "duration_seconds": round(elapsed, 3),
            "average_relevance": average_relevance,
            "failed_sources": [r.source for r in results if r.status == SourceStatus.FAILED.value],
            "per_source": {r.source: r.dict() for r in results},
        }

    @staticmethod
    async def _close_failed(job_log: JobLogger, records_processed: int, error_message: str) -> None:
        """Second attempt after closing as completed failed"""
        try:
            await job_log.close(
                JobStatus.FAILED,
                records_processed=records_processed,
                error_message=error_message
            )
        except ETLException as e:
            logger.error(
                f"Job log {job_log.job_id} could not be closed: {e.message}",
                extra={"error_context": e.to_dict()}
            )

    async def run(
        self,
        job_type: JobType = JobType.FULL_RUN,
        job_id: Optional[str] = None
    ) -> RunResult:
        """
        Run one orchestration.

        Returns:
            RunResult with per-source outcomes; per-source failures do not
            fail the run

        Raises:
            AlreadyRunningError: Another run holds the lease (no job log written)
            OrchestrationFatalError: Job log or persistence unavailable
            RunCancelledError: cancel() was called or the lease was lost; the job
                log is closed failed
        """
        if job_type == JobType.LOAD:
            raise ValueError("Loading happens inside transformation; use full_run or transform")

        job_id = job_id or uuid.uuid4().hex
        await self._acquire_lease(job_id)

        started_at = datetime.utcnow()
        started = time.monotonic()
        job_log = JobLogger(self.store)
        self.state = OrchestratorState.RUNNING
        self.current_job_id = job_id
        self._cancel_requested = False
        self._lease_lost = False
        keeper = asyncio.ensure_future(self._keep_lease(job_id))

        try:
            # --------------------------------------------------
            # OPEN JOB LOG
            # --------------------------------------------------
            await job_log.open(
                job_type,
                job_id,
                metadata={"query": self.query, "sources": self.sources}
            )

            # --------------------------------------------------
            # PROCESS SOURCES
            # --------------------------------------------------
            self._task = asyncio.ensure_future(self._execute(job_type, job_id))
            if self._lease_lost:
                self._task.cancel()
            try:
                results = await self._task
            except asyncio.CancelledError:
                message = LEASE_LOST_MESSAGE if self._lease_lost else CANCEL_MESSAGE
                await job_log.close(
                    JobStatus.FAILED,
                    records_processed=0,
                    error_message=message,
                    metadata={"query": self.query, "sources": self.sources, "cancelled": True}
                )
                logger.warning(f"Run {job_id} stopped: {message}")
                if self._lease_lost:
                    raise RunCancelledError("Run lease was lost", context={"job_id": job_id})
                if self._cancel_requested:
                    raise RunCancelledError("Run was cancelled", context={"job_id": job_id})
                raise
            except Exception as e:
                await job_log.close(JobStatus.FAILED, records_processed=0, error_message=str(e))
                raise OrchestrationFatalError(
                    "Run aborted by an unexpected error",
                    context={"job_id": job_id},
                    original_exception=e
                )

            # --------------------------------------------------
            # MERGE + CLOSE JOB LOG
            # --------------------------------------------------
            elapsed = time.monotonic() - started
            total = sum(r.records_processed for r in results)
            average_relevance = self._average_relevance(results)

            try:
                await job_log.close(
                    JobStatus.COMPLETED,
                    records_processed=total,
                    metadata=self._run_metadata(results, elapsed, average_relevance)
                )
            except OrchestrationFatalError as e:
                if job_log.is_open:
                    await self._close_failed(job_log, total, str(e))
                raise

            result = RunResult(
                job_id=job_id,
                job_type=job_type,
                status=JobStatus.COMPLETED,
                started_at=started_at,
                finished_at=datetime.utcnow(),
                elapsed_seconds=round(elapsed, 3),
                records_processed=total,
                sources=results,
                average_relevance=average_relevance,
            )
            self.state = OrchestratorState.COMPLETED
            self.last_result = result

            logger.info(
                f"Run {job_id} completed: {total} records processed "
                f"across {len(results)} sources ({len(result.failed_sources)} failed)"
            )
            return result

        except BaseException:
            self.state = OrchestratorState.FAILED
            raise

        finally:
            keeper.cancel()
            self._task = None
            self.current_job_id = None
            await self._release_lease(job_id)

    def cancel(self) -> bool:
        """
        Request cancellation of the in-flight run in this process.

        Returns False when nothing is running here.
        """
        if self._task is None or self._task.done():
            return False
        logger.info(f"Cancellation requested for run {self.current_job_id}")
        self._cancel_requested = True
        self._task.cancel()
        return True

    @property
    def is_running(self) -> bool:
        return self.state == OrchestratorState.RUNNING
