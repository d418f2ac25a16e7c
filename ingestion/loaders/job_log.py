"""
Job log lifecycle: opened once at run start, closed exactly once at run end.
"""

from datetime import datetime
from typing import Any, Dict, Optional
from core.exceptions import ETLException, JobLogError, OrchestrationFatalError
from models.base import JobStatus, JobType
import logging

logger = logging.getLogger(__name__)


class JobLogger:
    """
    Single writer for one etl_logs row.

    Transitions:
    - (none) -> running   via open()
    - running -> completed | failed   via close()
    Anything else raises JobLogError. Store failures become
    OrchestrationFatalError.
    """

    def __init__(self, store):
        self.store = store
        self.job_id: Optional[str] = None
        self.job_type: Optional[JobType] = None
        self.status: Optional[JobStatus] = None
        self.start_time: Optional[datetime] = None

    @property
    def is_open(self) -> bool:
        return self.status == JobStatus.RUNNING

    async def open(
        self,
        job_type: JobType,
        job_id: str,
        metadata: Optional[Dict[str, Any]] = None
    ) -> str:
        if self.status is not None:
            raise JobLogError(
                "Job log already opened",
                context={"job_id": self.job_id, "status": self.status.value}
            )

        start_time = datetime.utcnow()
        try:
            await self.store.open_job_log(job_id, job_type.value, start_time, metadata)
        except ETLException as e:
            logger.error(
                f"Could not open job log {job_id}: {e.message}",
                extra={"error_context": e.to_dict()}
            )
            raise OrchestrationFatalError(
                "Could not open job log",
                context={"job_id": job_id, "job_type": job_type.value},
                original_exception=e
            )

        self.job_id = job_id
        self.job_type = job_type
        self.start_time = start_time
        self.status = JobStatus.RUNNING
        logger.info(f"Job log opened: {job_id} ({job_type.value})")
        return job_id

    async def close(
        self,
        status: JobStatus,
        records_processed: int,
        error_message: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> None:
        if self.status is None:
            raise JobLogError("Job log was never opened")
        if self.status != JobStatus.RUNNING:
            raise JobLogError(
                "Job log already closed",
                context={"job_id": self.job_id, "status": self.status.value}
            )
        if status == JobStatus.RUNNING:
            raise JobLogError(
                "Job log cannot be closed as running",
                context={"job_id": self.job_id}
            )
        if records_processed < 0:
            raise JobLogError(
                "records_processed must be non-negative",
                context={"job_id": self.job_id, "records_processed": records_processed}
            )

        # error_message is present iff the job failed
        if status == JobStatus.FAILED:
            error_message = error_message or "unknown error"
        else:
            error_message = None

        try:
            await self.store.close_job_log(
                self.job_id,
                status.value,
                datetime.utcnow(),
                records_processed,
                error_message,
                metadata
            )
        except ETLException as e:
            logger.error(
                f"Could not close job log {self.job_id}: {e.message}",
                extra={"error_context": e.to_dict()}
            )
            raise OrchestrationFatalError(
                "Could not close job log",
                context={"job_id": self.job_id, "status": status.value},
                original_exception=e
            )

        self.status = status
        logger.info(
            f"Job log closed: {self.job_id} -> {status.value} "
            f"({records_processed} records)"
        )
