"""
ETL pipeline components for COVID-19 discourse ingestion.

Modules:
    extraction: Persists connector documents as raw_data rows
    transformation: Derives processed_data rows from raw_data
    runner: ETL orchestrator (lease, job log, per-source isolation)
    scheduler: APScheduler integration for periodic runs
    sentiment_cleanup: Re-scores sentiment of stored processed records

Subpackages:
    connectors: Source connectors (YouTube, news RSS, Google News,
        Instagram, Indonesian news) and the connector registry
    transformers: Text helpers, sentiment lexicon and the keyword deriver
    loaders: Persistence contract, PostgreSQL store and job log lifecycle

Architecture:
    Each run acquires the pipeline lease, opens one job log, then runs
    Extract → Transform for every configured source concurrently. A
    failing source is reported in the run result and does not abort its
    siblings. The job log is closed exactly once.

Usage:
    from core.config import settings
    from core.database import async_session_maker
    from ingestion.connectors.registry import build_connectors
    from ingestion.loaders.postgres_store import PostgresStore
    from ingestion.runner import ETLOrchestrator

    store = PostgresStore(async_session_maker)
    orchestrator = ETLOrchestrator(store, build_connectors(settings.ETL_SOURCES, settings), settings)
    result = await orchestrator.run()

    print(f"Processed {result.records_processed} records")

Error Handling:
    All components raise exceptions from core.exceptions. Connector
    errors carry a ``retryable`` flag; nothing retries automatically.
"""

__all__ = [
    "ETLOrchestrator",
    "ETLScheduler",
    "ExtractionStage",
    "TransformationStage",
    "SentimentCleanupService",
]
