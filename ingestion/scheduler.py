import logging
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from core.exceptions import AlreadyRunningError, OrchestrationFatalError
from ingestion.runner import ETLOrchestrator

logger = logging.getLogger(__name__)


class ETLScheduler:
    def __init__(self, orchestrator: ETLOrchestrator, interval_minutes: int = 60):
        self.orchestrator = orchestrator
        self.interval_minutes = interval_minutes
        self.scheduler = AsyncIOScheduler()

    async def run_etl_job(self):
        """Job to run a full ETL orchestration"""
        logger.info("Scheduler: Starting ETL job")
        try:
            result = await self.orchestrator.run()
            logger.info(
                f"Scheduler: ETL job {result.job_id} finished, "
                f"{result.records_processed} records processed"
            )
        except AlreadyRunningError as e:
            logger.info(f"Scheduler: skipped, {e.message} ({e.context.get('holder')})")
        except OrchestrationFatalError as e:
            logger.error(
                f"Scheduler: ETL job failed - {e.message}",
                extra={"error_context": e.to_dict()}
            )

    def start(self):
        """Start the scheduler"""
        self.scheduler.add_job(
            self.run_etl_job,
            trigger=IntervalTrigger(minutes=self.interval_minutes),
            id="etl_job",
            replace_existing=True,
            max_instances=1,
            coalesce=True
        )
        self.scheduler.start()
        logger.info(f"ETL Scheduler started (every {self.interval_minutes} minutes)")

    def stop(self):
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        logger.info("ETL Scheduler stopped")
