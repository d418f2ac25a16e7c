"""
Pydantic schema for derived (processed) fields with validation
"""

from pydantic import BaseModel, Field, validator
from typing import Optional, Dict, Any
from models.base import Sentiment


class ProcessedFields(BaseModel):
    """
    Output of a deriver for one raw record.

    Ensures:
    - relevance_score lies in [0, 1]
    - sentiment_score lies in [-1, 1]
    - blank text fields become None
    """

    # Lineage
    source: str = Field(..., min_length=1, max_length=50)
    raw_data_id: Optional[int] = None
    external_id: Optional[str] = Field(None, max_length=255)

    # Derived text
    title: Optional[str] = None
    content: Optional[str] = None
    language: str = "unknown"
    word_count: int = Field(0, ge=0)

    # Scores
    relevance_score: float = Field(..., ge=0.0, le=1.0)
    sentiment: Sentiment = Sentiment.NEUTRAL
    sentiment_score: float = Field(0.0, ge=-1.0, le=1.0)
    sentiment_confidence: float = Field(0.0, ge=0.0, le=1.0)

    # Engagement counts, url, author, publish time...
    payload: Dict[str, Any] = Field(default_factory=dict)

    @validator("title", "content")
    def blank_to_none(cls, v):
        """Strip text and drop empty strings"""
        if v is None:
            return None
        v = v.strip()
        return v or None

    @validator("payload", pre=True)
    def ensure_dict(cls, v):
        if not isinstance(v, dict):
            return {}
        return v

    class Config:
        use_enum_values = True
