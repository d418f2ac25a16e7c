"""
Pydantic schemas for orchestration results
"""

from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import datetime
from models.base import JobType, JobStatus
import enum


class SourceStatus(str, enum.Enum):
    """Outcome of one source within a run"""
    COMPLETED = "completed"
    FAILED = "failed"


class SourceRunResult(BaseModel):
    """Per-source outcome captured by the orchestrator"""
    source: str
    status: SourceStatus = SourceStatus.COMPLETED
    records_extracted: int = Field(0, ge=0)
    duplicates_skipped: int = Field(0, ge=0)
    records_processed: int = Field(0, ge=0)
    records_failed: int = Field(0, ge=0)
    average_relevance: Optional[float] = Field(None, ge=0.0, le=1.0)
    errors: List[Dict[str, Any]] = Field(default_factory=list)
    retryable: bool = False
    duration_seconds: float = 0.0

    class Config:
        use_enum_values = True


class RunResult(BaseModel):
    """What the API layer serializes for a finished run"""
    job_id: str
    job_type: JobType
    status: JobStatus
    started_at: datetime
    finished_at: datetime
    elapsed_seconds: float
    records_processed: int = Field(0, ge=0)
    sources: List[SourceRunResult] = Field(default_factory=list)
    average_relevance: Optional[float] = Field(None, ge=0.0, le=1.0)

    @property
    def failed_sources(self) -> List[str]:
        return [s.source for s in self.sources if s.status == SourceStatus.FAILED.value]

    class Config:
        use_enum_values = True
