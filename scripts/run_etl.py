"""
Script to run one ETL orchestration for the configured sources
"""

import argparse
import asyncio
import sys
import os
import logging

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

from core.config import settings
from core.database import async_session_maker, dispose_engine
from core.exceptions import AlreadyRunningError, OrchestrationFatalError
from core.logging import setup_logging
from ingestion.connectors.registry import available_sources, build_connectors
from ingestion.loaders.postgres_store import PostgresStore
from ingestion.runner import ETLOrchestrator
from models.base import JobType

logger = logging.getLogger(__name__)

RUNNABLE_JOB_TYPES = [JobType.FULL_RUN.value, JobType.EXTRACT.value, JobType.TRANSFORM.value]


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Run the COVID-19 KMS ETL pipeline once")
    parser.add_argument("--job-type", choices=RUNNABLE_JOB_TYPES, default=JobType.FULL_RUN.value)
    parser.add_argument("--job-id", default=None, help="Job id to record (generated when omitted)")
    parser.add_argument(
        "--sources",
        nargs="+",
        choices=available_sources(),
        default=None,
        help="Override ETL_SOURCES for this run"
    )
    parser.add_argument("--query", default=None, help="Override ETL_QUERY for this run")
    return parser.parse_args(argv)


async def run_etl(args) -> int:
    """Run ETL and return the process exit code"""
    run_settings = settings
    overrides = {}
    if args.sources:
        overrides["ETL_SOURCES"] = args.sources
    if args.query:
        overrides["ETL_QUERY"] = args.query
    if overrides:
        run_settings = settings.model_copy(update=overrides)

    store = PostgresStore(async_session_maker, timeout_seconds=run_settings.ETL_PERSISTENCE_TIMEOUT_SECONDS)
    connectors = build_connectors(run_settings.ETL_SOURCES, run_settings)
    if not connectors:
        logger.warning("No data sources configured. Skipping ETL.")
        return 0

    orchestrator = ETLOrchestrator(store, connectors, run_settings)

    try:
        result = await orchestrator.run(job_type=JobType(args.job_type), job_id=args.job_id)
    except AlreadyRunningError as e:
        logger.error(f"{e.message} (holder: {e.context.get('holder')})")
        return 2
    except OrchestrationFatalError as e:
        logger.error(f"ETL pipeline error: {e}")
        return 1
    finally:
        await dispose_engine()

    print(result.model_dump_json(indent=2))
    for source in result.sources:
        logger.info(
            f"{source.source}: {source.status}, extracted={source.records_extracted}, "
            f"processed={source.records_processed}, failed={source.records_failed}"
        )
    return 0


if __name__ == "__main__":
    setup_logging()
    sys.exit(asyncio.run(run_etl(parse_args())))
