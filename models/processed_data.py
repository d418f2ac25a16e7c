from sqlalchemy import (
    Column, String, Integer, Float, Text, DateTime, ForeignKey, Index, CheckConstraint
)
from sqlalchemy.dialects.postgresql import JSONB
from datetime import datetime
from models.base import Base, Sentiment


class ProcessedData(Base):
    """
    Normalized record derived from exactly one raw_data row.

    Field Mapping Strategy (see ingestion.transformers.deriver):

    youtube:
    - video.title -> title
    - comment.content -> content
    - comment.stats -> payload.engagement

    news (RSS):
    - title -> title
    - summary -> content
    - link -> payload.url

    google_news / indonesia_news:
    - title -> title
    - snippet / content / description -> content
    - url / link -> payload.url

    instagram:
    - "Instagram Post by @<user>" -> title
    - caption_text -> content
    - like_count, comment_count -> payload.engagement
    """
    __tablename__ = "processed_data"

    id = Column(Integer, primary_key=True, autoincrement=True)

    # Lineage
    source = Column(String(50), nullable=False, index=True)
    raw_data_id = Column(Integer, ForeignKey("raw_data.id", ondelete="SET NULL"), nullable=True, index=True)
    external_id = Column(String(255), nullable=True)

    # Derived text
    title = Column(Text, nullable=True)
    content = Column(Text, nullable=True)
    language = Column(String(16), nullable=True)
    word_count = Column(Integer, nullable=False, default=0)

    # Scores
    relevance_score = Column(Float, nullable=False, default=0.0, index=True)
    sentiment = Column(String(20), nullable=False, default=Sentiment.NEUTRAL.value, index=True)
    sentiment_score = Column(Float, nullable=False, default=0.0)
    sentiment_confidence = Column(Float, nullable=False, default=0.0)

    # Derived metadata (engagement, url, author, ...)
    payload = Column("processed_data", JSONB, nullable=False)

    # ETL tracking
    etl_job_id = Column(String(100), nullable=True, index=True)

    # Timestamps
    processed_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        CheckConstraint("relevance_score >= 0 AND relevance_score <= 1", name="ck_processed_relevance_range"),
        CheckConstraint("sentiment_score >= -1 AND sentiment_score <= 1", name="ck_processed_sentiment_range"),
        Index("idx_processed_source_processed_at", "source", "processed_at"),
    )

    def __repr__(self) -> str:
        return f"<ProcessedData id={self.id} source={self.source} sentiment={self.sentiment}>"
