from sqlalchemy import Column, String, DateTime
from datetime import datetime
from models.base import Base


class ETLLease(Base):
    """
    Mutual-exclusion token for orchestration runs.

    A row exists while a run holds the lease. Rows whose expires_at has
    passed belong to crashed runs and may be taken over.
    """
    __tablename__ = "etl_leases"

    name = Column(String(100), primary_key=True)
    holder = Column(String(100), nullable=False)
    acquired_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    expires_at = Column(DateTime, nullable=False)

    def __repr__(self) -> str:
        return f"<ETLLease name={self.name} holder={self.holder} expires_at={self.expires_at}>"
