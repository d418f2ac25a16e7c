from sqlalchemy.orm import declarative_base
import enum

Base = declarative_base()


# ============================================================================
# ENUMS
# ============================================================================

class JobType(str, enum.Enum):
    """Kind of orchestration run recorded in etl_logs"""
    EXTRACT = "extract"
    TRANSFORM = "transform"
    LOAD = "load"
    FULL_RUN = "full_run"


class JobStatus(str, enum.Enum):
    """Job log status"""
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class Sentiment(str, enum.Enum):
    """Sentiment classes for processed records"""
    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"
