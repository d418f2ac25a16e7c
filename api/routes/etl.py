"""
ETL trigger and control endpoints
"""

from fastapi import APIRouter, Body, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from api.dependencies import get_db, get_orchestrator, get_store, get_cleanup_service
from core.exceptions import ETLException
from ingestion.runner import ETLOrchestrator, LEASE_NAME
from ingestion.sentiment_cleanup import SentimentCleanupService
from models.base import JobType
from models.etl_log import ETLLog
from schemas.api import (
    CancelResponse,
    CleanupResponse,
    ETLStatusResponse,
    JobLogInfo,
    RunRequest,
)
from schemas.etl import RunResult
from typing import Optional
from datetime import datetime
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/etl", tags=["ETL"])


async def _trigger(
    request: Request,
    orchestrator: ETLOrchestrator,
    job_type: JobType,
    body: Optional[RunRequest]
) -> RunResult:
    request_id = getattr(request.state, "request_id", "-")
    job_id = body.job_id if body else None

    logger.info(f"[{request_id}] Triggering {job_type.value} run")

    # AlreadyRunningError / OrchestrationFatalError are mapped by app exception handlers
    return await orchestrator.run(job_type=job_type, job_id=job_id)


@router.post("/run", response_model=RunResult)
async def run_pipeline(
    request: Request,
    body: Optional[RunRequest] = Body(None),
    orchestrator: ETLOrchestrator = Depends(get_orchestrator)
):
    """
    Run extraction and transformation for every configured source.

    Returns 200 with per-source outcomes even when some sources failed.
    """
    return await _trigger(request, orchestrator, JobType.FULL_RUN, body)


@router.post("/extract", response_model=RunResult)
async def run_extraction(
    request: Request,
    body: Optional[RunRequest] = Body(None),
    orchestrator: ETLOrchestrator = Depends(get_orchestrator)
):
    """Extract raw documents only"""
    return await _trigger(request, orchestrator, JobType.EXTRACT, body)


@router.post("/transform", response_model=RunResult)
async def run_transformation(
    request: Request,
    body: Optional[RunRequest] = Body(None),
    orchestrator: ETLOrchestrator = Depends(get_orchestrator)
):
    """Transform stored unprocessed raw records only"""
    return await _trigger(request, orchestrator, JobType.TRANSFORM, body)


@router.post("/cancel", response_model=CancelResponse)
async def cancel_run(orchestrator: ETLOrchestrator = Depends(get_orchestrator)):
    """Cancel the run in progress on this instance"""
    job_id = orchestrator.current_job_id
    if orchestrator.cancel():
        return CancelResponse(cancelled=True, job_id=job_id, detail="Cancellation requested")
    return CancelResponse(cancelled=False, detail="No run in progress on this instance")


@router.get("/status", response_model=ETLStatusResponse)
async def get_status(
    limit: int = Query(5, ge=1, le=50, description="Number of recent job logs"),
    orchestrator: ETLOrchestrator = Depends(get_orchestrator),
    store=Depends(get_store),
    db: AsyncSession = Depends(get_db)
):
    """Lease holder, in-process run and recent job logs"""
    lease_holder = None
    try:
        lease_holder = await store.lease_holder(LEASE_NAME)
    except ETLException as e:
        logger.error(f"Could not read run lease: {e.message}")

    result = await db.execute(
        select(ETLLog).order_by(ETLLog.start_time.desc()).limit(limit)
    )
    recent = [JobLogInfo.from_orm(log) for log in result.scalars().all()]

    return ETLStatusResponse(
        running=lease_holder is not None or orchestrator.is_running,
        lease_holder=lease_holder,
        current_job_id=orchestrator.current_job_id,
        sources=orchestrator.sources,
        last_result=orchestrator.last_result,
        recent_jobs=recent
    )


@router.post("/cleanup/sentiment", response_model=CleanupResponse)
async def cleanup_sentiment(
    source: Optional[str] = Query(None, description="Only re-score this source"),
    since: Optional[datetime] = Query(None, description="Processed at or after"),
    until: Optional[datetime] = Query(None, description="Processed at or before"),
    service: SentimentCleanupService = Depends(get_cleanup_service)
):
    """Re-score sentiment for stored processed records"""
    result = await service.run(source=source, since=since, until=until)
    return CleanupResponse(source=source, **result.to_dict())
