from sqlalchemy import Column, String, Integer, DateTime, Text, Index
from sqlalchemy.dialects.postgresql import JSONB
from datetime import datetime
from models.base import Base, JobStatus


class ETLLog(Base):
    """
    Audit entry for one orchestration run.

    Lifecycle:
    - inserted with status=running when the run starts
    - updated exactly once to completed or failed when it ends
    - never deleted by the pipeline
    """
    __tablename__ = "etl_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    job_id = Column(String(100), nullable=False, unique=True, index=True)
    job_type = Column(String(50), nullable=False)
    status = Column(String(20), nullable=False, default=JobStatus.RUNNING.value, index=True)

    start_time = Column(DateTime, nullable=False, default=datetime.utcnow)
    end_time = Column(DateTime, nullable=True)

    records_processed = Column(Integer, nullable=False, default=0)
    error_message = Column(Text, nullable=True)
    job_metadata = Column("metadata", JSONB, nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        Index("idx_etl_logs_status_start", "status", "start_time"),
    )

    def __repr__(self) -> str:
        return f"<ETLLog job_id={self.job_id} type={self.job_type} status={self.status}>"
