"""
SQLAlchemy ORM models for database tables.

This package defines the database schema using SQLAlchemy ORM models:

Models:
    base: Base declarative class and shared enums (JobType, JobStatus, Sentiment)
    raw_data: Raw documents exactly as fetched from a source
    processed_data: Normalized, scored and sentiment-tagged records
    etl_log: One audit entry per orchestration run
    lease: Single-active-run token shared by every server instance

Database Schema:
    All models inherit from the Base declarative class and use
    PostgreSQL-specific features like JSONB for document storage.

Usage:
    from models import RawData, ProcessedData, ETLLog, ETLLease
    from models.base import JobType, JobStatus

Example:
    # Create a raw data record
    raw = RawData(
        source="youtube",
        source_id="Ugx123",
        query="covid19",
        payload={"comment": {...}, "video": {...}}
    )
    session.add(raw)
    await session.commit()

Relationships:
    - RawData → ProcessedData (processed_data.raw_data_id foreign key)
    - ETLLog → RawData / ProcessedData (by etl_job_id, not enforced)
"""

from models.base import Base, JobType, JobStatus, Sentiment
from models.raw_data import RawData
from models.processed_data import ProcessedData
from models.etl_log import ETLLog
from models.lease import ETLLease

__all__ = [
    "Base",
    "JobType",
    "JobStatus",
    "Sentiment",
    "RawData",
    "ProcessedData",
    "ETLLog",
    "ETLLease",
]
