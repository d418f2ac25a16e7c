"""
Health check endpoint with database and last-run status
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, text
from api.dependencies import get_db
from schemas.api import HealthCheckResponse, JobLogInfo
from models.etl_log import ETLLog
from datetime import datetime
import logging

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthCheckResponse)
@router.get("/api/health", response_model=HealthCheckResponse)
async def health_check(db: AsyncSession = Depends(get_db)):
    """
    Health check endpoint.

    Returns:
    - Database connectivity status
    - The most recent job log entry
    """

    db_connected = False

    try:
        await db.execute(text("SELECT 1"))
        db_connected = True
    except Exception as e:
        logger.error(f"Database connection failed: {str(e)}")

    last_job = None
    if db_connected:
        try:
            result = await db.execute(
                select(ETLLog).order_by(ETLLog.start_time.desc()).limit(1)
            )
            latest = result.scalars().first()
            if latest is not None:
                last_job = JobLogInfo.from_orm(latest)
        except Exception as e:
            logger.error(f"Failed to fetch latest job log: {str(e)}")

    return HealthCheckResponse(
        timestamp=datetime.utcnow(),
        database_connected=db_connected,
        last_job=last_job
    )
