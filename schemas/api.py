"""
Pydantic schemas for API request/response models
"""

from pydantic import BaseModel, Field, validator
from typing import Optional, List, Dict, Any
from datetime import datetime
from schemas.etl import RunResult


# ============================================================================
# Job Log Schemas
# ============================================================================

class JobLogInfo(BaseModel):
    """One etl_logs row"""
    job_id: str
    job_type: str
    status: str
    start_time: datetime
    end_time: Optional[datetime] = None
    records_processed: int = 0
    error_message: Optional[str] = None
    job_metadata: Optional[Dict[str, Any]] = None

    class Config:
        from_attributes = True


# ============================================================================
# Health Check Schemas
# ============================================================================

class HealthCheckResponse(BaseModel):
    """Health check response model"""
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    database_connected: bool
    last_job: Optional[JobLogInfo] = None
    status: str = Field("healthy", description="Overall system status: healthy, degraded, unhealthy")

    @validator("status", pre=True, always=True)
    def determine_status(cls, v, values):
        """Determine overall health status"""
        if not values.get("database_connected", False):
            return "unhealthy"

        last_job = values.get("last_job")
        if last_job is not None and last_job.status == "failed":
            return "degraded"

        return "healthy"

    class Config:
        json_schema_extra = {
            "example": {
                "status": "healthy",
                "timestamp": "2024-01-15T10:30:00Z",
                "database_connected": True,
                "last_job": {
                    "job_id": "3f2c9a0e6d1b4e2f",
                    "job_type": "full_run",
                    "status": "completed",
                    "start_time": "2024-01-15T10:00:00Z",
                    "end_time": "2024-01-15T10:00:42Z",
                    "records_processed": 120
                }
            }
        }


# ============================================================================
# ETL Control Schemas
# ============================================================================

class RunRequest(BaseModel):
    """Optional body for run triggers"""
    job_id: Optional[str] = Field(None, min_length=1, max_length=100)


class ETLStatusResponse(BaseModel):
    """Current run state"""
    running: bool
    lease_holder: Optional[str] = None
    current_job_id: Optional[str] = None
    sources: List[str] = Field(default_factory=list)
    last_result: Optional[RunResult] = None
    recent_jobs: List[JobLogInfo] = Field(default_factory=list)


class CancelResponse(BaseModel):
    cancelled: bool
    job_id: Optional[str] = None
    detail: str


class CleanupResponse(BaseModel):
    """Sentiment re-scoring summary"""
    scanned: int
    updated: int
    unchanged: int
    batches: int
    source: Optional[str] = None


# ============================================================================
# Data Query Schemas
# ============================================================================

class ProcessedRecordResponse(BaseModel):
    """Response model for a processed record"""
    id: int
    source: str
    raw_data_id: Optional[int] = None
    external_id: Optional[str] = None
    title: Optional[str] = None
    content: Optional[str] = None
    language: Optional[str] = None
    word_count: int = 0
    relevance_score: float
    sentiment: str
    sentiment_score: float = 0.0
    sentiment_confidence: float = 0.0
    payload: Dict[str, Any] = Field(default_factory=dict)
    processed_at: datetime
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
        json_schema_extra = {
            "example": {
                "id": 1,
                "source": "youtube",
                "raw_data_id": 10,
                "external_id": "UgxK2...",
                "title": "COVID-19 What You Need to Know",
                "content": "Very informative video about vaccine safety",
                "language": "en",
                "word_count": 6,
                "relevance_score": 0.14,
                "sentiment": "positive",
                "sentiment_score": 0.12,
                "sentiment_confidence": 0.17,
                "payload": {"url": "https://www.youtube.com/watch?v=abc", "engagement": {"votes": 45}},
                "processed_at": "2024-01-15T10:30:00Z"
            }
        }


class RawRecordResponse(BaseModel):
    """Response model for a raw record"""
    id: int
    source: str
    source_id: Optional[str] = None
    query: Optional[str] = None
    payload: Dict[str, Any]
    processed: bool = False
    etl_job_id: Optional[str] = None
    extracted_at: datetime

    class Config:
        from_attributes = True


class PaginationMetadata(BaseModel):
    """Pagination metadata"""
    total_items: int
    total_pages: int
    current_page: int
    page_size: int
    has_next: bool
    has_previous: bool


class DataResponse(BaseModel):
    """Paginated processed data response"""
    items: List[ProcessedRecordResponse]
    pagination: PaginationMetadata
    filters_applied: Dict[str, Any] = Field(default_factory=dict)


class RawDataResponse(BaseModel):
    """Paginated raw data response"""
    items: List[RawRecordResponse]
    pagination: PaginationMetadata
    filters_applied: Dict[str, Any] = Field(default_factory=dict)


# ============================================================================
# Summary Schemas
# ============================================================================

class DataSummaryResponse(BaseModel):
    """Counts and averages over stored data"""
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    total_raw_records: int
    total_processed_records: int
    raw_counts: Dict[str, int] = Field(default_factory=dict)
    source_counts: Dict[str, int] = Field(default_factory=dict)
    average_relevance: Optional[float] = None
    latest_update: Optional[datetime] = None


class SentimentDistributionResponse(BaseModel):
    """Sentiment counts per source plus totals"""
    per_source: Dict[str, Dict[str, int]] = Field(default_factory=dict)
    totals: Dict[str, int] = Field(default_factory=dict)
    total_records: int = 0


class WordFrequencyItem(BaseModel):
    word: str
    count: int
    positive: int = 0
    negative: int = 0
    neutral: int = 0
    sources: Dict[str, int] = Field(default_factory=dict)
    avg_sentiment: float = 0.0


class WordFrequencyResponse(BaseModel):
    words: List[WordFrequencyItem]
    records_scanned: int


# ============================================================================
# Statistics Schemas
# ============================================================================

class StatsResponse(BaseModel):
    """Job log statistics"""
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    total_runs: int
    runs_by_status: Dict[str, int] = Field(default_factory=dict)
    runs_by_type: Dict[str, int] = Field(default_factory=dict)
    total_records_processed: int = 0
    last_success: Optional[datetime] = None
    last_failure: Optional[datetime] = None
    avg_duration_seconds: Optional[float] = None
    recent_runs: List[JobLogInfo] = Field(default_factory=list)

    class Config:
        json_schema_extra = {
            "example": {
                "timestamp": "2024-01-15T10:30:00Z",
                "total_runs": 12,
                "runs_by_status": {"completed": 11, "failed": 1},
                "runs_by_type": {"full_run": 10, "transform": 2},
                "total_records_processed": 1830,
                "last_success": "2024-01-15T10:00:00Z",
                "avg_duration_seconds": 45.2
            }
        }


# ============================================================================
# Error Response Schema
# ============================================================================

class ErrorResponse(BaseModel):
    """Standard error response"""
    error: str
    detail: Optional[str] = None
    context: Dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=datetime.utcnow)

    class Config:
        json_schema_extra = {
            "example": {
                "error": "AlreadyRunningError",
                "detail": "An ETL run is already in progress",
                "context": {"holder": "3f2c9a0e6d1b4e2f"},
                "timestamp": "2024-01-15T10:30:00Z"
            }
        }
