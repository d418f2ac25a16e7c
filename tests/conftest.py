"""
Pytest configuration and fixtures
"""

import asyncio
import itertools
import pytest
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional
from core.config import Settings
from core.exceptions import DatabaseConnectionError, JobLogError
from ingestion.connectors.base import SourceDocument
from models.base import JobStatus
from models.processed_data import ProcessedData
from models.raw_data import RawData


class InMemoryStore:
    """
    PipelineStore kept in dictionaries.

    Set ``reachable = False`` to make every call fail, or add operation
    names to ``fail_on`` to fail only those.
    """

    def __init__(self):
        self.raw: Dict[int, RawData] = {}
        self.processed: Dict[int, ProcessedData] = {}
        self.job_logs: Dict[str, Dict[str, Any]] = {}
        self.leases: Dict[str, Dict[str, Any]] = {}
        self.reachable = True
        self.fail_on = set()
        self.calls: List[str] = []
        self._raw_ids = itertools.count(1)
        self._processed_ids = itertools.count(1)

    def _check(self, operation: str) -> None:
        self.calls.append(operation)
        if not self.reachable or operation in self.fail_on:
            raise DatabaseConnectionError(
                f"Database unreachable during {operation}",
                context={"operation": operation}
            )

    async def ping(self) -> None:
        self._check("ping")

    async def insert_raw(self, record: RawData) -> int:
        self._check("insert_raw")
        record.id = next(self._raw_ids)
        self.raw[record.id] = record
        return record.id

    async def raw_exists(self, source: str, external_id: str) -> bool:
        self._check("raw_exists")
        return any(r.source == source and r.source_id == external_id for r in self.raw.values())

    async def list_unprocessed_raw(self, source: str, limit: int) -> List[RawData]:
        self._check("list_unprocessed_raw")
        rows = [r for r in self.raw.values() if r.source == source and not r.processed]
        return sorted(rows, key=lambda r: r.id)[:limit]

    async def mark_raw_processed(self, raw_ids: List[int], processed_at: datetime) -> None:
        self._check("mark_raw_processed")
        for raw_id in raw_ids:
            self.raw[raw_id].processed = True
            self.raw[raw_id].processed_at = processed_at

    async def insert_processed(self, record: ProcessedData) -> int:
        self._check("insert_processed")
        record.id = next(self._processed_ids)
        self.processed[record.id] = record
        return record.id

    async def list_processed_batch(
        self,
        after_id: int,
        limit: int,
        source: Optional[str] = None,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None
    ) -> List[ProcessedData]:
        self._check("list_processed_batch")
        rows = [
            r for r in sorted(self.processed.values(), key=lambda r: r.id)
            if r.id > after_id
            and (source is None or r.source == source)
            and (since is None or r.processed_at >= since)
            and (until is None or r.processed_at <= until)
        ]
        return rows[:limit]

    async def update_sentiment(self, record_id: int, sentiment: str, score: float, confidence: float) -> None:
        self._check("update_sentiment")
        record = self.processed[record_id]
        record.sentiment = sentiment
        record.sentiment_score = score
        record.sentiment_confidence = confidence

    async def open_job_log(self, job_id, job_type, start_time, metadata=None) -> None:
        self._check("open_job_log")
        self.job_logs[job_id] = {
            "job_id": job_id,
            "job_type": job_type,
            "status": JobStatus.RUNNING.value,
            "start_time": start_time,
            "end_time": None,
            "records_processed": 0,
            "error_message": None,
            "metadata": metadata or {},
        }

    async def close_job_log(
        self, job_id, status, end_time, records_processed, error_message=None, metadata=None
    ) -> None:
        self._check("close_job_log")
        log = self.job_logs.get(job_id)
        if log is None or log["status"] != JobStatus.RUNNING.value:
            raise JobLogError("Job log is not open", context={"job_id": job_id})
        log.update(
            status=status,
            end_time=end_time,
            records_processed=records_processed,
            error_message=error_message,
        )
        if metadata is not None:
            log["metadata"] = metadata

    async def acquire_lease(self, name: str, holder: str, ttl_seconds: int) -> bool:
        self._check("acquire_lease")
        now = datetime.utcnow()
        lease = self.leases.get(name)
        if lease and lease["holder"] != holder and lease["expires_at"] > now:
            return False
        self.leases[name] = {"holder": holder, "expires_at": now + timedelta(seconds=ttl_seconds)}
        return True

    async def renew_lease(self, name: str, holder: str, ttl_seconds: int) -> bool:
        self._check("renew_lease")
        lease = self.leases.get(name)
        if not lease or lease["holder"] != holder:
            return False
        lease["expires_at"] = datetime.utcnow() + timedelta(seconds=ttl_seconds)
        return True

    async def release_lease(self, name: str, holder: str) -> None:
        self._check("release_lease")
        lease = self.leases.get(name)
        if lease and lease["holder"] == holder:
            del self.leases[name]

    async def lease_holder(self, name: str) -> Optional[str]:
        self._check("lease_holder")
        lease = self.leases.get(name)
        if lease and lease["expires_at"] >= datetime.utcnow():
            return lease["holder"]
        return None


class FakeConnector:
    """
    Yields the given documents.

    ``error`` is raised once ``fail_after`` documents were yielded;
    ``gate`` blocks before the first document until it is set.
    """

    def __init__(
        self,
        source: str,
        documents: Optional[List[SourceDocument]] = None,
        error: Optional[Exception] = None,
        fail_after: int = 0,
        gate: Optional[asyncio.Event] = None
    ):
        self.source = source
        self.documents = documents or []
        self.error = error
        self.fail_after = fail_after
        self.gate = gate
        self.queries: List[str] = []

    async def fetch(self, query: str):
        self.queries.append(query)
        if self.gate is not None:
            await self.gate.wait()
        for index, document in enumerate(self.documents):
            if self.error is not None and index == self.fail_after:
                raise self.error
            yield document
        if self.error is not None and self.fail_after >= len(self.documents):
            raise self.error


def youtube_document(comment_id: str, text: str, video_title: str = "COVID-19 vaccine update") -> SourceDocument:
    return SourceDocument(
        external_id=comment_id,
        payload={
            "comment": {
                "commentId": comment_id,
                "content": text,
                "author": "@viewer",
                "publishedTimeText": "2 days ago",
                "stats": {"votes": 12, "replies": "3"},
            },
            "video": {
                "videoId": "vid123",
                "title": video_title,
                "url": "https://www.youtube.com/watch?v=vid123",
                "author": "Health Channel",
            },
        }
    )


def news_document(article_id: str, title: str, summary: str = "") -> SourceDocument:
    return SourceDocument(
        external_id=article_id,
        payload={
            "id": article_id,
            "title": title,
            "summary": summary,
            "link": f"https://news.example.com/{article_id}",
            "publisher": "Example News",
            "published": "2024-01-15T10:00:00",
            "categories": ["health"],
        }
    )


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def test_settings():
    """Settings isolated from the environment and .env file"""
    return Settings(
        _env_file=None,
        RAPIDAPI_KEY="test-key",
        ETL_SOURCES=["youtube", "news"],
        ETL_QUERY="covid19",
        ETL_TIMEOUT_SECONDS=2.0,
        ETL_PERSISTENCE_TIMEOUT_SECONDS=1.0,
        ETL_CONCURRENCY=3,
        ETL_LEASE_TTL_SECONDS=60,
        YOUTUBE_MAX_VIDEOS=2,
        INDONESIA_NEWS_OUTLETS=["kompas", "detik"],
    )


@pytest.fixture
def youtube_documents():
    return [
        youtube_document("c1", "The vaccine is effective and recovery is great"),
        youtube_document("c2", "Lockdown again, this pandemic is a terrible crisis"),
    ]


@pytest.fixture
def news_documents():
    return [
        news_document("n1", "Indonesia expands COVID vaccination", "Jakarta reports fewer cases"),
        news_document("n2", "Quarantine rules eased", "Mask mandate remains in Jakarta"),
    ]
