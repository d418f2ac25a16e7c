"""
Summary, sentiment, word-frequency and job statistics endpoints
"""
from collections import defaultdict
from datetime import datetime
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from api.dependencies import get_db
from ingestion.transformers.text import frequency_words
from models.base import JobStatus, Sentiment
from models.etl_log import ETLLog
from models.processed_data import ProcessedData
from models.raw_data import RawData
from schemas.api import (
    DataSummaryResponse,
    JobLogInfo,
    SentimentDistributionResponse,
    StatsResponse,
    WordFrequencyItem,
    WordFrequencyResponse,
)
from typing import Optional
import uuid
import logging

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Statistics"])


@router.get("/api/etl/data/summary", response_model=DataSummaryResponse)
async def get_summary(db: AsyncSession = Depends(get_db)):
    """
    Record counts per source, average relevance and latest update.
    """
    raw_result = await db.execute(
        select(RawData.source, func.count()).group_by(RawData.source)
    )
    raw_counts = {source: count for source, count in raw_result.all()}

    processed_result = await db.execute(
        select(ProcessedData.source, func.count()).group_by(ProcessedData.source)
    )
    source_counts = {source: count for source, count in processed_result.all()}

    aggregate_result = await db.execute(
        select(func.avg(ProcessedData.relevance_score), func.max(ProcessedData.processed_at))
    )
    average_relevance, latest_update = aggregate_result.one()

    return DataSummaryResponse(
        timestamp=datetime.utcnow(),
        total_raw_records=sum(raw_counts.values()),
        total_processed_records=sum(source_counts.values()),
        raw_counts=raw_counts,
        source_counts=source_counts,
        average_relevance=round(float(average_relevance), 4) if average_relevance is not None else None,
        latest_update=latest_update
    )


@router.get("/api/etl/data/sentiment", response_model=SentimentDistributionResponse)
async def get_sentiment_distribution(
    source: Optional[str] = Query(None, description="Only this source"),
    db: AsyncSession = Depends(get_db)
):
    """Sentiment counts per source plus totals"""
    query = select(ProcessedData.source, ProcessedData.sentiment, func.count()).group_by(
        ProcessedData.source, ProcessedData.sentiment
    )
    if source:
        query = query.where(ProcessedData.source == source)
    result = await db.execute(query)

    empty = {s.value: 0 for s in Sentiment}
    per_source = {}
    totals = dict(empty)

    for row_source, sentiment, count in result.all():
        bucket = per_source.setdefault(row_source, dict(empty))
        bucket[sentiment] = bucket.get(sentiment, 0) + count
        totals[sentiment] = totals.get(sentiment, 0) + count

    return SentimentDistributionResponse(
        per_source=per_source,
        totals=totals,
        total_records=sum(totals.values())
    )


@router.get("/api/etl/data/word-frequency", response_model=WordFrequencyResponse)
async def get_word_frequency(
    top: int = Query(100, ge=1, le=500, description="Number of words to return"),
    sample: int = Query(1000, ge=1, le=10000, description="Most recent records to scan"),
    source: Optional[str] = Query(None, description="Only this source"),
    db: AsyncSession = Depends(get_db)
):
    """
    Most frequent words in recent processed records.

    Stop words (English, Indonesian, COVID domain) are removed. Each word
    carries its sentiment split and per-source counts.
    """
    query = select(
        ProcessedData.source,
        ProcessedData.title,
        ProcessedData.content,
        ProcessedData.sentiment,
        ProcessedData.sentiment_score,
    )
    if source:
        query = query.where(ProcessedData.source == source)
    query = query.order_by(ProcessedData.processed_at.desc()).limit(sample)
    result = await db.execute(query)
    rows = result.all()

    stats = defaultdict(lambda: {
        "count": 0, "positive": 0, "negative": 0, "neutral": 0,
        "sources": defaultdict(int), "score_total": 0.0,
    })

    for row_source, title, content, sentiment, sentiment_score in rows:
        for word in frequency_words(f"{title or ''} {content or ''}"):
            entry = stats[word]
            entry["count"] += 1
            if sentiment in (Sentiment.POSITIVE.value, Sentiment.NEGATIVE.value, Sentiment.NEUTRAL.value):
                entry[sentiment] += 1
            entry["sources"][row_source] += 1
            entry["score_total"] += sentiment_score or 0.0

    ranked = sorted(stats.items(), key=lambda item: (-item[1]["count"], item[0]))[:top]

    return WordFrequencyResponse(
        words=[
            WordFrequencyItem(
                word=word,
                count=entry["count"],
                positive=entry["positive"],
                negative=entry["negative"],
                neutral=entry["neutral"],
                sources=dict(entry["sources"]),
                avg_sentiment=round(entry["score_total"] / entry["count"], 4),
            )
            for word, entry in ranked
        ],
        records_scanned=len(rows)
    )


@router.get("/stats", response_model=StatsResponse)
async def get_stats(
    limit: int = Query(10, ge=1, le=100, description="Number of recent runs to return"),
    db: AsyncSession = Depends(get_db)
):
    """
    Get ETL job statistics.

    Returns:
    - Runs by status and by job type
    - Last success/failure and average duration
    - Recent job log history
    """
    request_id = f"req_{uuid.uuid4().hex[:12]}"

    logger.info(f"[{request_id}] GET /stats")

    # ========== Counts ==========

    status_result = await db.execute(
        select(ETLLog.status, func.count()).group_by(ETLLog.status)
    )
    runs_by_status = {status: count for status, count in status_result.all()}

    type_result = await db.execute(
        select(ETLLog.job_type, func.count()).group_by(ETLLog.job_type)
    )
    runs_by_type = {job_type: count for job_type, count in type_result.all()}

    records_result = await db.execute(select(func.sum(ETLLog.records_processed)))
    total_records = records_result.scalar() or 0

    # ========== Timing ==========

    last_success_result = await db.execute(
        select(func.max(ETLLog.end_time)).where(ETLLog.status == JobStatus.COMPLETED.value)
    )
    last_success = last_success_result.scalar()

    last_failure_result = await db.execute(
        select(func.max(ETLLog.end_time)).where(ETLLog.status == JobStatus.FAILED.value)
    )
    last_failure = last_failure_result.scalar()

    avg_duration_result = await db.execute(
        select(func.avg(func.extract("epoch", ETLLog.end_time - ETLLog.start_time))).where(
            ETLLog.status == JobStatus.COMPLETED.value,
            ETLLog.end_time.isnot(None)
        )
    )
    avg_duration = avg_duration_result.scalar()

    # ========== Recent Runs ==========

    recent_runs_result = await db.execute(
        select(ETLLog).order_by(ETLLog.start_time.desc()).limit(limit)
    )
    recent_runs = [JobLogInfo.from_orm(run) for run in recent_runs_result.scalars().all()]

    total_runs = sum(runs_by_status.values())
    logger.info(f"[{request_id}] Stats: {total_runs} runs, {total_records} records processed")

    return StatsResponse(
        timestamp=datetime.utcnow(),
        total_runs=total_runs,
        runs_by_status=runs_by_status,
        runs_by_type=runs_by_type,
        total_records_processed=int(total_records),
        last_success=last_success,
        last_failure=last_failure,
        avg_duration_seconds=round(float(avg_duration), 2) if avg_duration is not None else None,
        recent_runs=recent_runs
    )
