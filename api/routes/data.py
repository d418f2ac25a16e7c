"""
Data retrieval endpoints with pagination and filtering
"""

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, and_, or_
from api.dependencies import get_db
from schemas.api import (
    DataResponse,
    RawDataResponse,
    ProcessedRecordResponse,
    RawRecordResponse,
    PaginationMetadata,
)
from models.base import Sentiment
from models.processed_data import ProcessedData
from models.raw_data import RawData
from typing import Optional
from datetime import datetime
import time
import uuid
import math
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/etl", tags=["Data"])


def _pagination(page: int, page_size: int, total_items: int) -> PaginationMetadata:
    total_pages = math.ceil(total_items / page_size) if total_items > 0 else 0
    return PaginationMetadata(
        current_page=page,
        page_size=page_size,
        total_items=total_items,
        total_pages=total_pages,
        has_next=page < total_pages,
        has_previous=page > 1
    )


async def _processed_page(
    db: AsyncSession,
    request_id: str,
    page: int,
    page_size: int,
    source: Optional[str] = None,
    sentiment: Optional[Sentiment] = None,
    min_relevance: Optional[float] = None,
    search: Optional[str] = None,
    processed_after: Optional[datetime] = None,
) -> DataResponse:
    start_time = time.time()

    filters = []
    if source:
        filters.append(ProcessedData.source == source)
    if sentiment:
        filters.append(ProcessedData.sentiment == Sentiment(sentiment).value)
    if min_relevance is not None:
        filters.append(ProcessedData.relevance_score >= min_relevance)
    if search:
        filters.append(or_(
            ProcessedData.title.ilike(f"%{search}%"),
            ProcessedData.content.ilike(f"%{search}%")
        ))
    if processed_after:
        filters.append(ProcessedData.processed_at >= processed_after)

    # Get total count
    count_query = select(func.count()).select_from(ProcessedData)
    if filters:
        count_query = count_query.where(and_(*filters))
    count_result = await db.execute(count_query)
    total_items = count_result.scalar() or 0

    query = select(ProcessedData)
    if filters:
        query = query.where(and_(*filters))
    query = (
        query.order_by(ProcessedData.processed_at.desc(), ProcessedData.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )

    result = await db.execute(query)
    items = [ProcessedRecordResponse.from_orm(item) for item in result.scalars().all()]

    api_latency_ms = (time.time() - start_time) * 1000
    logger.info(f"[{request_id}] Returned {len(items)} processed records ({api_latency_ms:.2f}ms)")

    return DataResponse(
        items=items,
        pagination=_pagination(page, page_size, total_items),
        filters_applied={k: v for k, v in {
            "source": source,
            "sentiment": Sentiment(sentiment).value if sentiment else None,
            "min_relevance": min_relevance,
            "search": search,
            "processed_after": processed_after,
        }.items() if v is not None}
    )


@router.get("/data", response_model=DataResponse)
async def get_data(
    request: Request,
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=1000, description="Items per page"),
    source: Optional[str] = Query(None, description="Filter by source"),
    sentiment: Optional[Sentiment] = Query(None, description="Filter by sentiment"),
    min_relevance: Optional[float] = Query(None, ge=0, le=1, description="Minimum relevance score"),
    search: Optional[str] = Query(None, description="Search in title and content"),
    processed_after: Optional[datetime] = Query(None, description="Processed after date"),
    db: AsyncSession = Depends(get_db)
):
    """
    Latest processed records, newest first.

    Features:
    - Pagination
    - Source, sentiment and relevance filters
    - Text search over title and content
    """
    request_id = getattr(request.state, "request_id", f"req_{uuid.uuid4().hex[:12]}")
    logger.info(
        f"[{request_id}] GET /api/etl/data - page={page}, page_size={page_size}, "
        f"source={source}, sentiment={sentiment}, search={search}"
    )
    return await _processed_page(
        db, request_id, page, page_size,
        source=source,
        sentiment=sentiment,
        min_relevance=min_relevance,
        search=search,
        processed_after=processed_after,
    )


@router.get("/data/source/{source}", response_model=DataResponse)
async def get_data_by_source(
    source: str,
    request: Request,
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=1000),
    db: AsyncSession = Depends(get_db)
):
    """Processed records for one source"""
    request_id = getattr(request.state, "request_id", f"req_{uuid.uuid4().hex[:12]}")
    return await _processed_page(db, request_id, page, page_size, source=source)


@router.get("/data/raw", response_model=RawDataResponse)
async def get_raw_data(
    request: Request,
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=1000),
    source: Optional[str] = Query(None, description="Filter by source"),
    processed: Optional[bool] = Query(None, description="Filter by processed flag"),
    db: AsyncSession = Depends(get_db)
):
    """Raw documents as extracted, newest first"""
    request_id = getattr(request.state, "request_id", f"req_{uuid.uuid4().hex[:12]}")

    filters = []
    if source:
        filters.append(RawData.source == source)
    if processed is not None:
        filters.append(RawData.processed.is_(processed))

    count_query = select(func.count()).select_from(RawData)
    if filters:
        count_query = count_query.where(and_(*filters))
    count_result = await db.execute(count_query)
    total_items = count_result.scalar() or 0

    query = select(RawData)
    if filters:
        query = query.where(and_(*filters))
    query = (
        query.order_by(RawData.extracted_at.desc(), RawData.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    result = await db.execute(query)
    items = [RawRecordResponse.from_orm(item) for item in result.scalars().all()]

    logger.info(f"[{request_id}] Returned {len(items)} raw records")

    return RawDataResponse(
        items=items,
        pagination=_pagination(page, page_size, total_items),
        filters_applied={k: v for k, v in {
            "source": source,
            "processed": processed,
        }.items() if v is not None}
    )
