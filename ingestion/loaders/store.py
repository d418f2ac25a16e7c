"""
Persistence contract consumed by the pipeline stages and the orchestrator.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol
from models.raw_data import RawData
from models.processed_data import ProcessedData


class PipelineStore(Protocol):
    """
    Every method may raise LoadError (DatabaseError, or
    DatabaseConnectionError when the database is unreachable or slow).
    """

    async def ping(self) -> None: ...

    async def insert_raw(self, record: RawData) -> int: ...

    async def raw_exists(self, source: str, external_id: str) -> bool: ...

    async def list_unprocessed_raw(self, source: str, limit: int) -> List[RawData]: ...

    async def mark_raw_processed(self, raw_ids: List[int], processed_at: datetime) -> None: ...

    async def insert_processed(self, record: ProcessedData) -> int: ...

    async def list_processed_batch(
        self,
        after_id: int,
        limit: int,
        source: Optional[str] = None,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None
    ) -> List[ProcessedData]: ...

    async def update_sentiment(
        self, record_id: int, sentiment: str, score: float, confidence: float
    ) -> None: ...

    async def open_job_log(
        self, job_id: str, job_type: str, start_time: datetime, metadata: Optional[Dict[str, Any]] = None
    ) -> None: ...

    async def close_job_log(
        self,
        job_id: str,
        status: str,
        end_time: datetime,
        records_processed: int,
        error_message: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> None: ...

    async def acquire_lease(self, name: str, holder: str, ttl_seconds: int) -> bool: ...

    async def renew_lease(self, name: str, holder: str, ttl_seconds: int) -> bool: ...

    async def release_lease(self, name: str, holder: str) -> None: ...

    async def lease_holder(self, name: str) -> Optional[str]: ...
