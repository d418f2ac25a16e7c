from sqlalchemy import Column, String, Integer, DateTime, Boolean, Index
from sqlalchemy.dialects.postgresql import JSONB
from datetime import datetime
from models.base import Base


class RawData(Base):
    """
    Stores documents exactly as a connector produced them.

    Purpose:
    - Immutable audit trail of what each provider returned
    - Reprocessing capability (transform again with a new deriver)

    Design Decisions:
    - payload and source are written once and never updated
    - source_id keeps the provider's own identifier for deduplication
    - processed flags records already turned into processed_data
    """
    __tablename__ = "raw_data"

    id = Column(Integer, primary_key=True, autoincrement=True)

    # Source identification
    source = Column(String(50), nullable=False, index=True)
    source_id = Column(String(255), nullable=True)
    query = Column(String(255), nullable=True)

    # Raw document
    payload = Column("raw_data", JSONB, nullable=False)

    # Processing tracking
    processed = Column(Boolean, nullable=False, default=False)
    processed_at = Column(DateTime, nullable=True)
    etl_job_id = Column(String(100), nullable=True, index=True)

    # Timestamps
    extracted_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("idx_raw_data_source_external", "source", "source_id"),
        Index("idx_raw_data_unprocessed", "source", "processed", "extracted_at"),
    )

    def __repr__(self) -> str:
        return f"<RawData id={self.id} source={self.source} source_id={self.source_id}>"
