"""
FastAPI dependencies
"""

from typing import AsyncGenerator
from fastapi import HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession
from core.config import settings
from core.database import async_session_maker
from ingestion.runner import ETLOrchestrator
from ingestion.sentiment_cleanup import SentimentCleanupService


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield a database session for read endpoints"""
    async with async_session_maker() as session:
        yield session


def get_orchestrator(request: Request) -> ETLOrchestrator:
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise HTTPException(status_code=503, detail="ETL orchestrator not initialized")
    return orchestrator


def get_store(request: Request):
    store = getattr(request.app.state, "store", None)
    if store is None:
        raise HTTPException(status_code=503, detail="Pipeline store not initialized")
    return store


def get_cleanup_service(request: Request) -> SentimentCleanupService:
    return SentimentCleanupService(get_store(request), batch_size=settings.ETL_BATCH_SIZE)
